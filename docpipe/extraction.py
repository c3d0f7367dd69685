"""
Structured extraction tracks and result merging.

A split schema yields up to two tracks: per-page fields are extracted once
per page and tagged with the page number, full-document fields are extracted
once from the whole document. Both tracks share the run counters.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path
from typing import Any

from .constants import DEFAULT_CONCURRENCY, PAGE_SEPARATOR
from .exceptions import ExtractionError
from .retry import RetryExecutor
from .state import RunState
from .types import CompletionModel, ExtractionRequest, ExtractionResponse, Page

logger = logging.getLogger(__name__)

__all__ = ["ExtractionRunner", "merge_extraction_results", "tag_per_page"]


def tag_per_page(extracted: Mapping[str, Any], page_number: int) -> dict[str, list[dict[str, Any]]]:
    """Wrap each non-null per-page value as ``[{"page": n, "value": v}]``."""
    return {key: [{"page": page_number, "value": value}] for key, value in extracted.items() if value is not None}


def merge_extraction_results(results: Iterable[Mapping[str, Any]]) -> dict[str, Any]:
    """Merge extraction task results into one field-keyed mapping.

    - new key: inserted (lists are copied)
    - list value for an existing list: concatenated
    - anything else: overwrites

    Per-page entries (lists of ``{"page": n, ...}``) are then ordered by page
    so the result does not depend on task completion order.

    Example:
        >>> merge_extraction_results([
        ...     {"items": [{"page": 2, "value": "b"}]},
        ...     {"items": [{"page": 1, "value": "a"}], "total": 10},
        ... ])
        {'items': [{'page': 1, 'value': 'a'}, {'page': 2, 'value': 'b'}], 'total': 10}
    """
    merged: dict[str, Any] = {}
    for result in results:
        for key, value in result.items():
            if key not in merged:
                merged[key] = list(value) if isinstance(value, list) else value
            elif isinstance(value, list) and isinstance(merged[key], list):
                merged[key].extend(value)
            else:
                merged[key] = value

    for key, value in merged.items():
        if isinstance(value, list) and value and all(_is_page_entry(entry) for entry in value):
            merged[key] = sorted(value, key=lambda entry: entry["page"])
    return merged


def _is_page_entry(entry: Any) -> bool:
    return isinstance(entry, Mapping) and isinstance(entry.get("page"), int) and "value" in entry


class ExtractionRunner:
    """Run the per-page and full-document extraction tracks.

    Input comes either from OCR pages (text) or, in extraction-only mode,
    from the page images themselves.
    """

    def __init__(
        self,
        model: CompletionModel,
        state: RunState,
        retry: RetryExecutor,
        *,
        concurrency: int = DEFAULT_CONCURRENCY,
        prompt: str | None = None,
    ):
        if concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {concurrency}")
        self.model = model
        self.state = state
        self.retry = retry
        self.concurrency = concurrency
        self.prompt = prompt

    async def run(
        self,
        per_page_schema: dict[str, Any] | None,
        full_doc_schema: dict[str, Any] | None,
        pages: Sequence[Page] | None = None,
        image_paths: Sequence[Path] | None = None,
        page_numbers: Sequence[int] | None = None,
    ) -> dict[str, Any]:
        """Run both extraction tracks concurrently and merge their results.

        Args:
            per_page_schema: Schema for per-page fields, or None to skip the track
            full_doc_schema: Schema for full-document fields, or None to skip the track
            pages: OCR pages (text input)
            image_paths: Page images (extraction-only input)
            page_numbers: Caller page numbers of ``image_paths`` (default: 1..n)

        Returns:
            Merged field-keyed extraction result

        Raises:
            ExtractionError: If neither pages nor image_paths is given
            Exception: The first track error, after the sibling track finished
        """
        if pages is None and image_paths is None:
            raise ExtractionError("Extraction needs either OCR pages or page images")

        tracks = []
        if per_page_schema is not None:
            tracks.append(self._per_page_track(per_page_schema, pages, image_paths, page_numbers))
        if full_doc_schema is not None:
            tracks.append(self._full_document_track(full_doc_schema, pages, image_paths))
        if not tracks:
            return {}

        outcomes = await asyncio.gather(*tracks, return_exceptions=True)

        results: list[dict[str, Any]] = []
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome
            results.extend(outcome)
        return merge_extraction_results(results)

    # ==================== Tracks ====================

    async def _per_page_track(
        self,
        schema: dict[str, Any],
        pages: Sequence[Page] | None,
        image_paths: Sequence[Path] | None,
        page_numbers: Sequence[int] | None,
    ) -> list[dict[str, Any]]:
        inputs: list[tuple[int, str | Path]]
        if pages is not None:
            inputs = [(page.page, page.content) for page in pages if page.succeeded]
            skipped = len(pages) - len(inputs)
            if skipped:
                logger.info("Per-page extraction skips %d failed page(s)", skipped)
        else:
            assert image_paths is not None
            numbers = page_numbers or range(1, len(image_paths) + 1)
            inputs = list(zip(numbers, image_paths, strict=True))

        logger.info("Per-page extraction: %d page(s), fields=%s", len(inputs), list(schema["properties"]))
        semaphore = asyncio.Semaphore(self.concurrency)

        async def extract_with_semaphore(page_number: int, source: str | Path) -> dict[str, Any]:
            async with semaphore:
                data = source if isinstance(source, str) else [await asyncio.to_thread(source.read_bytes)]
                response = await self._extract(data, schema, context=f"page {page_number}")
                return tag_per_page(response.extracted, page_number)

        outcomes = await asyncio.gather(
            *(extract_with_semaphore(n, source) for n, source in inputs),
            return_exceptions=True,
        )
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome
        return list(outcomes)

    async def _full_document_track(
        self,
        schema: dict[str, Any],
        pages: Sequence[Page] | None,
        image_paths: Sequence[Path] | None,
    ) -> list[dict[str, Any]]:
        data: str | list[bytes]
        if pages is not None:
            data = PAGE_SEPARATOR.join(page.content for page in pages if page.succeeded)
        else:
            assert image_paths is not None
            data = [await asyncio.to_thread(path.read_bytes) for path in image_paths]

        logger.info("Full-document extraction: fields=%s", list(schema["properties"]))
        response = await self._extract(data, schema, context="full document")
        return [dict(response.extracted)]

    async def _extract(self, data: str | list[bytes], schema: dict[str, Any], context: str) -> ExtractionResponse:
        request = ExtractionRequest(input=data, schema=schema, prompt=self.prompt)
        try:
            response = await self.retry.run(lambda: self.model.extract(request), context=context)
        except Exception as e:
            self.state.record_extraction(success=False)
            logger.error("Extraction failed (%s): %s", context, e)
            raise
        self.state.add_tokens(response.input_tokens, response.output_tokens)
        self.state.record_extraction(success=True)
        return response
