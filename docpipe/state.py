"""Per-invocation run counters and summary building."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .types import PhaseCounts, Summary

logger = logging.getLogger(__name__)


@dataclass
class RunState:
    """Running counters for one conversion.

    Mutated by concurrent page and extraction tasks. All tasks run on one
    event loop thread and never await between a read and its write, so the
    increments need no lock.
    """

    input_token_count: int = 0
    output_token_count: int = 0
    num_successful_ocr: int = 0
    num_failed_ocr: int = 0
    num_successful_extraction: int = 0
    num_failed_extraction: int = 0

    def add_tokens(self, input_tokens: int, output_tokens: int) -> None:
        """Add the token usage of one successful task."""
        if input_tokens < 0 or output_tokens < 0:
            raise ValueError("Token counts must be non-negative")
        self.input_token_count += input_tokens
        self.output_token_count += output_tokens

    def record_ocr(self, *, success: bool) -> None:
        if success:
            self.num_successful_ocr += 1
        else:
            self.num_failed_ocr += 1

    def record_extraction(self, *, success: bool) -> None:
        if success:
            self.num_successful_extraction += 1
        else:
            self.num_failed_extraction += 1

    def snapshot(self, total_pages: int, *, ocr_ran: bool = True, extraction_ran: bool = False) -> Summary:
        """Return a live summary of the counters so far."""
        return build_summary(self, total_pages, ocr_ran=ocr_ran, extraction_ran=extraction_ran)


def build_summary(state: RunState, total_pages: int, *, ocr_ran: bool, extraction_ran: bool) -> Summary:
    """Fold run counters into an immutable Summary.

    Args:
        state: Counters accumulated during the run
        total_pages: Number of page images in the run
        ocr_ran: False in extraction-only mode, which reports ``ocr=None``
        extraction_ran: False when no schema was supplied, which reports ``extraction=None``

    Returns:
        Summary snapshot

    Example:
        >>> state = RunState(num_successful_ocr=3)
        >>> build_summary(state, 3, ocr_ran=True, extraction_ran=False).extraction is None
        True
    """
    ocr = PhaseCounts(state.num_successful_ocr, state.num_failed_ocr) if ocr_ran else None
    extraction = (
        PhaseCounts(state.num_successful_extraction, state.num_failed_extraction) if extraction_ran else None
    )
    return Summary(total_pages=total_pages, ocr=ocr, extraction=extraction)
