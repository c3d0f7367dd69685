"""Resource management utilities with async context managers.

Both resources of a conversion (the orientation pool and the staging
directory) must be released even when the run fails part way.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
import tempfile
import uuid
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from pathlib import Path

from .types import OrientationWorkerPool

logger = logging.getLogger(__name__)


# ==================== Orientation Pool Context Manager ====================


@asynccontextmanager
async def managed_orientation_pool(
    factory: Callable[[], OrientationWorkerPool] | None,
) -> AsyncIterator[OrientationWorkerPool | None]:
    """Create an orientation pool and terminate it exactly once on exit.

    Args:
        factory: Builds the pool; None disables orientation correction

    Yields:
        The pool, or None when disabled

    Example:
        >>> async with managed_orientation_pool(lambda: create_orientation_pool(5)) as pool:
        ...     pages = await scheduler.run(paths)
        ... # pool terminated here, even if the run failed
    """
    if factory is None:
        yield None
        return

    pool = factory()
    try:
        yield pool
    finally:
        pool.terminate()
        logger.debug("Orientation pool released")


# ==================== Staging Directory Context Manager ====================


@asynccontextmanager
async def staging_directory(base_dir: str | Path | None = None, cleanup: bool = True) -> AsyncIterator[Path]:
    """Create a unique per-run directory for page images.

    Args:
        base_dir: Parent directory (default: the system temp directory)
        cleanup: Remove the directory and its contents on exit

    Yields:
        Path of the staging directory
    """
    parent = Path(base_dir) if base_dir is not None else Path(tempfile.gettempdir())
    staging = parent / f"docpipe-{uuid.uuid4().hex}"
    await asyncio.to_thread(staging.mkdir, parents=True, exist_ok=False)
    logger.debug("Created staging directory: %s", staging)
    try:
        yield staging
    finally:
        if cleanup:
            await asyncio.to_thread(shutil.rmtree, staging, ignore_errors=True)
            logger.debug("Removed staging directory: %s", staging)
        else:
            logger.info("Kept staging directory: %s", staging)
