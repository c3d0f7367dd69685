"""Miscellaneous helpers for docpipe."""

from __future__ import annotations

import re
from datetime import datetime

from .constants import MAX_FILE_NAME_LENGTH

_MARKDOWN_FENCE_RE = re.compile(r"^```(?:markdown|md)?[ \t]*\n(.*?)\n?```[ \t]*$", re.DOTALL | re.IGNORECASE)


def tz_now() -> datetime:
    """Return the current local time as a timezone-aware datetime."""
    return datetime.now().astimezone()


def sanitize_file_name(raw_name: str) -> str:
    """Derive a safe output file name from an input base name.

    Non-word characters are stripped, whitespace runs become underscores,
    the result is lower-cased and truncated.

    Example:
        >>> sanitize_file_name("Q3 Report (final)")
        'q3_report_final'
    """
    name = re.sub(r"[^\w\s]", "", raw_name)
    name = re.sub(r"\s+", "_", name)
    return name.lower()[:MAX_FILE_NAME_LENGTH]


def format_markdown(text: str) -> str:
    """Strip a surrounding ```markdown fence that models sometimes add."""
    stripped = text.strip()
    match = _MARKDOWN_FENCE_RE.match(stripped)
    if match:
        return match.group(1).strip()
    return stripped
