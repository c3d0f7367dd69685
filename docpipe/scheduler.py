"""
Page scheduling for the OCR phase.

Runs one task per page image, either strictly in order (format continuity)
or concurrently within a fixed number of slots, and returns the pages in index order.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

from .constants import DEFAULT_CONCURRENCY
from .exceptions import PageProcessingError
from .misc import format_markdown
from .orientation import correct_page_file
from .retry import RetryExecutor
from .state import RunState
from .types import (
    CompletionModel,
    CompletionRequest,
    ErrorMode,
    OrientationWorkerPool,
    Page,
    PostProcessHook,
    PreProcessHook,
    Summary,
)

logger = logging.getLogger(__name__)

__all__ = ["PageScheduler", "call_hook", "error_text"]


async def call_hook(hook: Callable[..., Any] | None, **kwargs: Any) -> None:
    """Call an optional sync or async hook, awaiting it when needed."""
    if hook is None:
        return
    result = hook(**kwargs)
    if inspect.isawaitable(result):
        await result


def error_text(error: BaseException) -> str:
    """Message recorded on an ERROR page."""
    return str(error) or error.__class__.__name__


class PageScheduler:
    """Drive per-page OCR through the model.

    Two modes:
    - maintain_format=True: sequential, each page receives the previous page's
      markdown; the run stops at the first ERROR page
    - maintain_format=False: up to ``concurrency`` pages in flight, admitted
      in index order

    Example:
        >>> scheduler = PageScheduler(model, RunState(), RetryExecutor(2), concurrency=5)
        >>> pages = await scheduler.run(image_paths)
        >>> [p.page for p in pages]
        [1, 2, 3]
    """

    def __init__(
        self,
        model: CompletionModel,
        state: RunState,
        retry: RetryExecutor,
        *,
        concurrency: int = DEFAULT_CONCURRENCY,
        maintain_format: bool = False,
        error_mode: ErrorMode = ErrorMode.IGNORE,
        orientation_pool: OrientationWorkerPool | None = None,
        on_pre_process: PreProcessHook | None = None,
        on_post_process: PostProcessHook | None = None,
        summary_provider: Callable[[int], Summary] | None = None,
    ):
        """
        Initialize PageScheduler.

        Args:
            model: Completion model used for page OCR
            state: Run counters, shared with the extraction phase
            retry: Retry executor wrapping each model call
            concurrency: Maximum pages in flight (concurrent mode only)
            maintain_format: Process sequentially, passing the prior page as context
            error_mode: THROW aborts the run on a failed page, IGNORE records it
            orientation_pool: Rotates page images upright before OCR when set
            on_pre_process: Called with (image_path, page_number) before each model call
            on_post_process: Called with (page, summary) after each page
            summary_provider: Builds the live summary from the page count
                (default: ``state.snapshot``)
        """
        if concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {concurrency}")
        self.model = model
        self.state = state
        self.retry = retry
        self.concurrency = concurrency
        self.maintain_format = maintain_format
        self.error_mode = ErrorMode(error_mode)
        self.orientation_pool = orientation_pool
        self.on_pre_process = on_pre_process
        self.on_post_process = on_post_process
        self.summary_provider = summary_provider or state.snapshot

    async def run(self, image_paths: Sequence[Path]) -> list[Page]:
        """Process all page images and return pages in index order.

        Args:
            image_paths: Page images in processing order

        Returns:
            Pages numbered by processing position (index + 1)

        Raises:
            Exception: The first page error when error_mode is THROW
        """
        if not image_paths:
            return []

        logger.info(
            "OCR phase: %d page(s), %s",
            len(image_paths),
            "sequential (format continuity)" if self.maintain_format else f"concurrency={self.concurrency}",
        )
        if self.maintain_format:
            return await self._run_sequential(image_paths)
        return await self._run_concurrent(image_paths)

    # ==================== Modes ====================

    async def _run_sequential(self, image_paths: Sequence[Path]) -> list[Page]:
        pages: list[Page] = []
        prior_page = ""
        for index, image_path in enumerate(image_paths):
            page = await self._process_page(image_path, index, len(image_paths), prior_page)
            pages.append(page)
            if not page.succeeded:
                logger.warning("Stopping sequential OCR at page %d after a failure", page.page)
                break
            prior_page = page.content
        return pages

    async def _run_concurrent(self, image_paths: Sequence[Path]) -> list[Page]:
        semaphore = asyncio.Semaphore(self.concurrency)
        results: list[Page | None] = [None] * len(image_paths)
        errors: list[BaseException] = []

        async def process_with_semaphore(index: int, image_path: Path) -> None:
            async with semaphore:
                # Queued tasks skip the model once a THROW failure has occurred
                if errors:
                    return
                try:
                    results[index] = await self._process_page(image_path, index, len(image_paths), "")
                except Exception as e:
                    errors.append(e)

        await asyncio.gather(*(process_with_semaphore(i, path) for i, path in enumerate(image_paths)))

        if errors:
            raise errors[0]
        return [page for page in results if page is not None]

    # ==================== Page Task ====================

    async def _process_page(self, image_path: Path, index: int, total_pages: int, prior_page: str) -> Page:
        page_number = index + 1

        try:
            if self.orientation_pool is not None:
                await correct_page_file(self.orientation_pool, image_path)

            await call_hook(self.on_pre_process, image_path=image_path, page_number=page_number)

            try:
                image = await asyncio.to_thread(image_path.read_bytes)
            except OSError as e:
                raise PageProcessingError(f"Cannot read image for page {page_number}: {e}") from e
            request = CompletionRequest(
                image=image,
                maintain_format=self.maintain_format,
                prior_page=prior_page,
            )
            response = await self.retry.run(lambda: self.model.ocr(request), context=page_number)
        except Exception as e:
            self.state.record_ocr(success=False)
            logger.error("OCR failed for page %d: %s", page_number, e)
            if self.error_mode is ErrorMode.THROW:
                raise
            page = Page.failure(page_number, error_text(e))
        else:
            self.state.add_tokens(response.input_tokens, response.output_tokens)
            self.state.record_ocr(success=True)
            page = Page.success(
                page_number,
                format_markdown(response.content),
                response.input_tokens,
                response.output_tokens,
            )
            logger.debug("Page %d recognized (%d chars)", page_number, page.content_length)

        await call_hook(self.on_post_process, page=page, summary=self.summary_provider(total_pages))
        return page

