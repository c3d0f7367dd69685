"""Output saving utilities for docpipe.

This module writes the artifacts of a conversion: the joined markdown and,
optionally, the full JSON result.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from pathlib import Path

from ..exceptions import FileSaveError
from ..misc import tz_now
from ..types import ConversionResult, Page

logger = logging.getLogger(__name__)

MARKDOWN_PAGE_JOINER = "\n\n"


class OutputSaver:
    """Handles saving of conversion results.

    Attributes:
        output_dir: Directory receiving the artifacts (created on first save)
    """

    def __init__(self, output_dir: str | Path):
        self.output_dir = Path(output_dir)

    def _ensure_dir(self) -> None:
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FileSaveError(f"Cannot create output directory {self.output_dir}: {e}") from e

    def save_markdown(self, file_name: str, pages: Sequence[Page]) -> Path:
        """Write all page contents, separated by a blank line, to ``<file_name>.md``.

        Args:
            file_name: Sanitized base name
            pages: Pages in caller page order

        Returns:
            Path of the written file
        """
        self._ensure_dir()
        output_path = self.output_dir / f"{file_name}.md"
        text = MARKDOWN_PAGE_JOINER.join(page.content for page in pages)
        try:
            output_path.write_text(text, encoding="utf-8")
        except OSError as e:
            raise FileSaveError(f"Failed to write {output_path}: {e}") from e

        logger.info("Saved markdown: %s", output_path)
        return output_path

    def save_json(self, result: ConversionResult) -> Path:
        """Write the full conversion result to ``<file_name>.json``."""
        self._ensure_dir()
        output_path = self.output_dir / f"{result.file_name}.json"
        payload = {**result.to_dict(), "saved_at": tz_now().isoformat()}
        try:
            with output_path.open("w", encoding="utf-8") as f:
                json.dump(payload, f, ensure_ascii=False, indent=2)
        except OSError as e:
            raise FileSaveError(f"Failed to write {output_path}: {e}") from e

        logger.info("Saved JSON result: %s", output_path)
        return output_path
