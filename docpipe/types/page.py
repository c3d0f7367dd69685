"""Page dataclass - single page processing result."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any


class PageStatus(str, Enum):
    """Outcome of a single page task."""

    SUCCESS = "SUCCESS"
    ERROR = "ERROR"


class ErrorMode(str, Enum):
    """Policy applied when a page task fails after all retries.

    THROW aborts the whole run, IGNORE records an ERROR page and continues.
    """

    THROW = "THROW"
    IGNORE = "IGNORE"


@dataclass(frozen=True)
class Page:
    """Single page processing result.

    Created once per image by the scheduler and never mutated afterwards.
    Renumbering produces a new instance (see ``with_page_number``).

    Core fields:
    - page: Caller-facing page number (1-indexed)
    - content: Recognized markdown, empty for failed pages
    - status: SUCCESS or ERROR

    Status-dependent fields:
    - error: Error text, present only on ERROR pages
    - input_tokens / output_tokens: Token usage, present only on SUCCESS pages
    """

    page: int
    content: str = ""
    status: PageStatus = PageStatus.SUCCESS
    error: str | None = None
    input_tokens: int | None = None
    output_tokens: int | None = None

    def __post_init__(self) -> None:
        if self.page < 1:
            raise ValueError(f"Page number must be >= 1, got {self.page}")
        if (self.status is PageStatus.ERROR) != (self.error is not None):
            raise ValueError("Page error must be set exactly when status is ERROR")
        if self.status is PageStatus.SUCCESS:
            if self.input_tokens is None or self.output_tokens is None:
                raise ValueError("Successful pages must carry token counts")
            if self.input_tokens < 0 or self.output_tokens < 0:
                raise ValueError("Token counts must be non-negative")
        elif self.input_tokens is not None or self.output_tokens is not None:
            raise ValueError("Failed pages must not carry token counts")

    @classmethod
    def success(cls, page: int, content: str, input_tokens: int, output_tokens: int) -> Page:
        """Build a SUCCESS page."""
        return cls(
            page=page,
            content=content,
            status=PageStatus.SUCCESS,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )

    @classmethod
    def failure(cls, page: int, error: str) -> Page:
        """Build an ERROR page with empty content."""
        return cls(page=page, content="", status=PageStatus.ERROR, error=error)

    @property
    def content_length(self) -> int:
        """Length of the recognized content."""
        return len(self.content)

    @property
    def succeeded(self) -> bool:
        return self.status is PageStatus.SUCCESS

    def with_page_number(self, page: int) -> Page:
        """Return a copy carrying a different page number."""
        return replace(self, page=page)

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dict.

        Example:
            >>> Page.success(1, "# Title", 10, 3).to_dict()["content_length"]
            7
        """
        result: dict[str, Any] = {
            "page": self.page,
            "content": self.content,
            "content_length": self.content_length,
            "status": self.status.value,
        }
        if self.error is not None:
            result["error"] = self.error
        if self.input_tokens is not None:
            result["input_tokens"] = self.input_tokens
        if self.output_tokens is not None:
            result["output_tokens"] = self.output_tokens
        return result
