"""Component interface definitions for docpipe.

This module defines Protocol interfaces for the capabilities the
orchestration core consumes but does not implement:
- CompletionModel: Vision model with OCR and extraction entry points
- OrientationWorkerPool: Pool of workers fixing page rotation
- PreProcessHook / PostProcessHook: Optional caller callbacks
"""

from __future__ import annotations

from collections.abc import Awaitable
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .completion import CompletionRequest, CompletionResponse, ExtractionRequest, ExtractionResponse
    from .page import Page
    from .result import Summary


@runtime_checkable
class CompletionModel(Protocol):
    """Vision-capable model interface.

    One implementation exists per provider (OpenAI, Azure, Google, Bedrock);
    the provider is chosen at construction time by ``create_model``.
    Both calls must be safe to retry.

    Example:
        >>> model = create_model("OPENAI", "gpt-4o-mini", {"api_key": "..."})
        >>> response = await model.ocr(CompletionRequest(image=png_bytes))
        >>> response.content
        '# Invoice ...'
    """

    provider: str
    model: str

    async def ocr(self, request: CompletionRequest) -> CompletionResponse:
        """Recognize one page image as markdown."""
        ...

    async def extract(self, request: ExtractionRequest) -> ExtractionResponse:
        """Extract schema fields from page text or page images."""
        ...

    async def close(self) -> None:
        """Release network resources."""
        ...


@runtime_checkable
class OrientationWorkerPool(Protocol):
    """Pool of orientation correction workers.

    Created before the first page task needs it and terminated exactly once
    after the last task of both OCR and extraction phases.
    """

    def scale(self, target_workers: int) -> None:
        """Grow or shrink the pool to ``target_workers`` workers."""
        ...

    async def correct(self, image: bytes) -> bytes:
        """Return the image rotated upright (or unchanged)."""
        ...

    def terminate(self) -> None:
        """Stop all workers."""
        ...


class PreProcessHook(Protocol):
    """Called before a page is sent to the model."""

    def __call__(self, *, image_path: Path, page_number: int) -> Awaitable[None] | None: ...


class PostProcessHook(Protocol):
    """Called with each finished page and a live summary snapshot."""

    def __call__(self, *, page: Page, summary: Summary) -> Awaitable[None] | None: ...
