"""
Page orientation correction with Tesseract OSD.

Tesseract is CPU-bound and blocking, so detection runs in a thread pool
sized to the number of pages (optionally capped).
"""

from __future__ import annotations

import asyncio
import io
import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytesseract
from PIL import Image

from .exceptions import DependencyError
from .types import OrientationWorkerPool

logger = logging.getLogger(__name__)

__all__ = [
    "TesseractOrientationPool",
    "correct_image_orientation",
    "correct_page_file",
    "create_orientation_pool",
    "resolve_worker_count",
]


def resolve_worker_count(cap: int | None, num_pages: int) -> int:
    """Number of orientation workers for a run.

    One worker per page; a non-negative cap lowers that. Never below 1.

    Example:
        >>> resolve_worker_count(None, 12)
        12
        >>> resolve_worker_count(4, 12)
        4
        >>> resolve_worker_count(8, 2)
        2
    """
    if cap is None or cap < 0:
        return max(1, num_pages)
    return max(1, min(cap, num_pages))


def correct_image_orientation(image: bytes) -> bytes:
    """Rotate a page image upright using Tesseract orientation detection.

    Returns the input unchanged when no rotation is needed or detection
    fails (blank pages and pages with too little text cannot be classified).
    """
    with Image.open(io.BytesIO(image)) as pil_image:
        try:
            osd = pytesseract.image_to_osd(pil_image, output_type=pytesseract.Output.DICT)
        except pytesseract.TesseractError as e:
            logger.debug("Orientation detection skipped: %s", e)
            return image

        rotation = int(osd.get("rotate", 0)) % 360
        if rotation == 0:
            return image

        # Tesseract reports the clockwise rotation; PIL rotates counter-clockwise
        rotated = pil_image.rotate(-rotation, expand=True)
        buffer = io.BytesIO()
        rotated.save(buffer, format="PNG")

    logger.debug("Rotated page image by %d degrees", rotation)
    return buffer.getvalue()


class TesseractOrientationPool:
    """Thread pool running Tesseract orientation detection.

    Example:
        >>> pool = TesseractOrientationPool(workers=4)
        >>> upright = await pool.correct(png_bytes)
        >>> pool.terminate()
    """

    def __init__(self, workers: int = 1):
        self.workers = max(1, workers)
        self._executor: ThreadPoolExecutor | None = ThreadPoolExecutor(
            max_workers=self.workers, thread_name_prefix="orientation"
        )
        logger.debug("Orientation pool started with %d worker(s)", self.workers)

    def scale(self, target_workers: int) -> None:
        """Resize the pool. Work already submitted finishes on the old executor."""
        target_workers = max(1, target_workers)
        if self._executor is None:
            raise RuntimeError("Orientation pool has been terminated")
        if target_workers == self.workers:
            return

        old_executor = self._executor
        self._executor = ThreadPoolExecutor(max_workers=target_workers, thread_name_prefix="orientation")
        old_executor.shutdown(wait=False)
        logger.debug("Orientation pool scaled from %d to %d worker(s)", self.workers, target_workers)
        self.workers = target_workers

    async def correct(self, image: bytes) -> bytes:
        if self._executor is None:
            raise RuntimeError("Orientation pool has been terminated")
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, correct_image_orientation, image)

    def terminate(self) -> None:
        if self._executor is None:
            return
        self._executor.shutdown(wait=True)
        self._executor = None
        logger.debug("Orientation pool terminated")

    @property
    def terminated(self) -> bool:
        return self._executor is None


def create_orientation_pool(num_pages: int, max_workers: int | None = None) -> TesseractOrientationPool:
    """Create an orientation pool sized for ``num_pages`` pages.

    Raises:
        DependencyError: If the tesseract binary is not installed
    """
    try:
        version = pytesseract.get_tesseract_version()
    except pytesseract.TesseractNotFoundError as e:
        raise DependencyError(
            "Orientation correction requires the tesseract binary (or disable correct_orientation)"
        ) from e
    logger.debug("Using tesseract %s for orientation correction", version)
    return TesseractOrientationPool(workers=resolve_worker_count(max_workers, num_pages))


async def correct_page_file(pool: OrientationWorkerPool, image_path: Path) -> bool:
    """Run a page image file through the pool, rewriting it when rotated.

    Returns:
        True if the file was rewritten
    """
    original = await asyncio.to_thread(image_path.read_bytes)
    corrected = await pool.correct(original)
    if corrected == original:
        return False
    await asyncio.to_thread(image_path.write_bytes, corrected)
    logger.debug("Orientation corrected: %s", image_path.name)
    return True
