"""Input preparation: turn a document into one PNG image per selected page.

- PDF: rasterized with pdf2image (poppler)
- Image: normalized to PNG with Pillow (a single page)
- Anything else: converted to PDF with LibreOffice first
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from pathlib import Path

from ..constants import ALL_PAGES, DEFAULT_IMAGE_DENSITY, DEFAULT_IMAGE_HEIGHT, IMAGE_SUFFIXES
from ..exceptions import FileLoadError
from .image import normalize_image, trim_edges
from .office import convert_to_pdf
from .pdf import get_page_count, rasterize_pdf, select_pages

logger = logging.getLogger(__name__)

__all__ = [
    "prepare_page_images",
    "rasterize_pdf",
    "normalize_image",
    "trim_edges",
    "convert_to_pdf",
    "get_page_count",
    "select_pages",
]


async def prepare_page_images(
    file_path: Path,
    staging_dir: Path,
    selector: int | Sequence[int] = ALL_PAGES,
    density: int = DEFAULT_IMAGE_DENSITY,
    height: int | None = DEFAULT_IMAGE_HEIGHT,
    trim: bool = False,
) -> list[Path]:
    """Produce the page images of a document, in page order.

    Args:
        file_path: Input document
        staging_dir: Directory receiving the page images (and any converted PDF)
        selector: Pages to convert (ALL_PAGES, one page number, or page numbers)
        density: PDF rendering DPI
        height: Target pixel height of rendered PDF pages
        trim: Crop uniform borders from each page image

    Returns:
        Paths of the page images, one per selected page

    Raises:
        FileLoadError: If the input file does not exist
        ConversionError, DependencyError, FileFormatError: On conversion failures
    """
    if not file_path.is_file():
        raise FileLoadError(f"Input file not found: {file_path}")

    suffix = file_path.suffix.lower()
    if suffix in IMAGE_SUFFIXES:
        image_paths = [await asyncio.to_thread(normalize_image, file_path, staging_dir)]
    else:
        pdf_path = file_path if suffix == ".pdf" else await convert_to_pdf(file_path, staging_dir)
        image_paths = await asyncio.to_thread(rasterize_pdf, pdf_path, staging_dir, selector, density, height)

    if trim:
        for image_path in image_paths:
            await asyncio.to_thread(trim_edges, image_path)

    logger.info("Prepared %d page image(s) from %s", len(image_paths), file_path.name)
    return sorted(image_paths)
