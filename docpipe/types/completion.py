"""Request/response types exchanged with completion models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class CompletionRequest:
    """OCR request for one page image.

    Attributes:
        image: PNG bytes of the page
        maintain_format: Whether the prompt should ask for formatting consistent with prior_page
        prior_page: Markdown of the previous page (format continuity mode only)
    """

    image: bytes
    maintain_format: bool = False
    prior_page: str = ""


@dataclass(frozen=True)
class CompletionResponse:
    """OCR response for one page image."""

    content: str
    input_tokens: int = 0
    output_tokens: int = 0


@dataclass(frozen=True)
class ExtractionRequest:
    """Structured extraction request.

    Attributes:
        input: Page text (str) or page images (list of PNG bytes)
        schema: JSON-schema object describing the fields to extract
        prompt: Optional instructions replacing the default extraction prompt
    """

    input: str | list[bytes]
    schema: dict[str, Any]
    prompt: str | None = None

    @property
    def is_image_input(self) -> bool:
        return not isinstance(self.input, str)


@dataclass(frozen=True)
class ExtractionResponse:
    """Structured extraction response."""

    extracted: dict[str, Any] = field(default_factory=dict)
    input_tokens: int = 0
    output_tokens: int = 0
