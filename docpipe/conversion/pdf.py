"""PDF rasterization utilities."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

from pdf2image import convert_from_path, pdfinfo_from_path
from pdf2image.exceptions import PDFInfoNotInstalledError, PDFPageCountError, PDFSyntaxError

from ..constants import ALL_PAGES, DEFAULT_IMAGE_DENSITY, DEFAULT_IMAGE_HEIGHT
from ..exceptions import ConversionError, DependencyError, InvalidConfigError

logger = logging.getLogger(__name__)


def get_page_count(pdf_path: Path) -> int:
    """Get the number of pages of a PDF.

    Raises:
        DependencyError: If poppler is not installed
        ConversionError: If the PDF cannot be read
    """
    try:
        info = pdfinfo_from_path(str(pdf_path))
    except PDFInfoNotInstalledError as e:
        raise DependencyError("PDF rasterization requires poppler (pdfinfo/pdftoppm)") from e
    except (PDFPageCountError, PDFSyntaxError) as e:
        raise ConversionError(f"Could not read PDF {pdf_path.name}: {e}") from e
    return int(info["Pages"])


def select_pages(selector: int | Sequence[int], page_count: int) -> list[int]:
    """Return the 1-indexed page numbers to rasterize, in ascending order.

    Raises:
        InvalidConfigError: If a selected page does not exist

    Example:
        >>> select_pages(-1, 3)
        [1, 2, 3]
        >>> select_pages([3, 1], 5)
        [1, 3]
    """
    if isinstance(selector, int):
        pages = list(range(1, page_count + 1)) if selector == ALL_PAGES else [selector]
    else:
        pages = sorted(set(selector))

    out_of_range = [page for page in pages if page > page_count]
    if out_of_range:
        raise InvalidConfigError(f"Page(s) {out_of_range} out of range: document has {page_count} page(s)")
    return pages


def rasterize_pdf(
    pdf_path: Path,
    output_dir: Path,
    selector: int | Sequence[int] = ALL_PAGES,
    density: int = DEFAULT_IMAGE_DENSITY,
    height: int | None = DEFAULT_IMAGE_HEIGHT,
) -> list[Path]:
    """Render the selected PDF pages to PNG files.

    File names are zero-padded page numbers so lexical order is page order.

    Args:
        pdf_path: Path to the PDF file
        output_dir: Directory receiving the page images
        selector: ALL_PAGES, one page number, or page numbers
        density: Rendering DPI
        height: Target pixel height (None keeps the DPI-derived size)

    Returns:
        Paths of the page images in page order

    Example:
        >>> paths = rasterize_pdf(Path("doc.pdf"), Path("/tmp/run"), selector=[1, 3])
        >>> [p.name for p in paths]
        ['doc_page_1.png', 'doc_page_3.png']
    """
    page_count = get_page_count(pdf_path)
    pages = select_pages(selector, page_count)
    width = len(str(page_count))
    size = (None, height) if height else None

    paths: list[Path] = []
    for page_num in pages:
        try:
            images = convert_from_path(
                str(pdf_path),
                dpi=density,
                first_page=page_num,
                last_page=page_num,
                size=size,
            )
        except (PDFPageCountError, PDFSyntaxError) as e:
            raise ConversionError(f"Failed to render page {page_num} of {pdf_path.name}: {e}") from e
        if not images:
            raise ConversionError(f"Failed to render page {page_num} of {pdf_path.name}")

        image_path = output_dir / f"{pdf_path.stem}_page_{page_num:0{width}d}.png"
        images[0].save(image_path, format="PNG")
        paths.append(image_path)
        logger.debug("Rendered PDF page %d to %s", page_num, image_path.name)

    logger.info("Rendered %d of %d page(s) from %s", len(paths), page_count, pdf_path.name)
    return paths
