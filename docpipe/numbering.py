"""Mapping from processing order back to caller page numbers.

The rasterizer emits one image per selected page, in page order. A page's
zero-based processing index therefore identifies it through the selector:

- ``ALL_PAGES`` (-1): index ``i`` is page ``i + 1``
- a list of page numbers: index ``i`` is ``sorted(selector)[i]``
- a single page number: every index maps to that number
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from .constants import ALL_PAGES
from .exceptions import InvalidConfigError
from .types import Page

logger = logging.getLogger(__name__)

PageSelector = int | Sequence[int]


def normalize_page_selector(selector: PageSelector) -> int | list[int]:
    """Validate a page selector and sort list selectors once.

    Args:
        selector: ``ALL_PAGES``, a single page number, or page numbers

    Returns:
        ``ALL_PAGES``, the page number, or an ascending de-duplicated list

    Raises:
        InvalidConfigError: If a page number is below 1 or the list is empty
    """
    if isinstance(selector, bool):
        raise InvalidConfigError(f"Invalid page selector: {selector!r}")

    if isinstance(selector, int):
        if selector != ALL_PAGES and selector < 1:
            raise InvalidConfigError(f"Page number must be positive or {ALL_PAGES} (all pages): {selector}")
        return selector

    pages = list(selector)
    if not pages:
        raise InvalidConfigError("Page selector list must not be empty")
    for page in pages:
        if isinstance(page, bool) or not isinstance(page, int) or page < 1:
            raise InvalidConfigError(f"Page number must be a positive integer: {page!r}")
    return sorted(set(pages))


def resolve_page_number(index: int, selector: PageSelector) -> int:
    """Return the caller-facing page number for a processing index.

    Example:
        >>> resolve_page_number(0, ALL_PAGES)
        1
        >>> resolve_page_number(1, [3, 7, 9])
        7
        >>> resolve_page_number(0, 5)
        5
    """
    if index < 0:
        raise IndexError(f"Processing index must be >= 0, got {index}")
    if isinstance(selector, int):
        if selector == ALL_PAGES:
            return index + 1
        return selector
    return selector[index]


def remap_pages(pages: Sequence[Page], selector: PageSelector) -> list[Page]:
    """Renumber pages (in processing order) to caller page numbers."""
    remapped = [page.with_page_number(resolve_page_number(index, selector)) for index, page in enumerate(pages)]
    logger.debug("Remapped %d page(s) with selector %s", len(remapped), selector)
    return remapped
