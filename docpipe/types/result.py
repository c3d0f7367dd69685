"""Run summary and conversion result types."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .page import Page


@dataclass(frozen=True)
class PhaseCounts:
    """Success/failure counts for one processing phase."""

    successful: int = 0
    failed: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"successful": self.successful, "failed": self.failed}


@dataclass(frozen=True)
class Summary:
    """Immutable snapshot of a run's progress.

    Attributes:
        total_pages: Number of page images in the run
        ocr: OCR counts, or None when the OCR phase was skipped (extraction-only)
        extraction: Extraction counts, or None when no schema was supplied
    """

    total_pages: int
    ocr: PhaseCounts | None = None
    extraction: PhaseCounts | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_pages": self.total_pages,
            "ocr": self.ocr.to_dict() if self.ocr is not None else None,
            "extraction": self.extraction.to_dict() if self.extraction is not None else None,
        }


@dataclass(frozen=True)
class ConversionResult:
    """Result returned by a full conversion.

    Attributes:
        completion_time: Wall-clock duration in milliseconds
        file_name: Sanitized base name of the input file
        input_tokens: Total input tokens across OCR and extraction
        output_tokens: Total output tokens across OCR and extraction
        pages: Pages in ascending caller page-number order
        extracted: Field-keyed extraction result, or None without a schema
        summary: Final run summary
    """

    completion_time: float
    file_name: str
    input_tokens: int
    output_tokens: int
    pages: list[Page]
    extracted: dict[str, Any] | None
    summary: Summary

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return {
            "completion_time": self.completion_time,
            "file_name": self.file_name,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "pages": [page.to_dict() for page in self.pages],
            "extracted": self.extracted,
            "summary": self.summary.to_dict(),
        }
