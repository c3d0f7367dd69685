"""Bounded re-attempts for a single async unit of work."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

logger = logging.getLogger(__name__)

__all__ = ["RetryExecutor"]

T = TypeVar("T")


class RetryExecutor:
    """Run an async operation up to ``max_attempts`` times.

    Each attempt is a fresh call of the operation; nothing is shared between
    attempts beyond what the operation closes over. When the attempts are
    exhausted the last exception is re-raised with a note naming the context.

    Example:
        >>> retry = RetryExecutor(max_attempts=2)
        >>> response = await retry.run(lambda: model.ocr(request), context=3)
    """

    def __init__(self, max_attempts: int = 1, backoff_seconds: float = 0.0):
        """Initialize RetryExecutor.

        Args:
            max_attempts: Total attempts including the first (1 means no retry)
            backoff_seconds: Delay between attempts (0 retries immediately)
        """
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
        if backoff_seconds < 0:
            raise ValueError(f"backoff_seconds must be >= 0, got {backoff_seconds}")
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds

    @classmethod
    def from_max_retries(cls, max_retries: int, backoff_seconds: float = 0.0) -> RetryExecutor:
        """Build an executor allowing ``max_retries`` re-attempts after the first call."""
        return cls(max_attempts=max_retries + 1, backoff_seconds=backoff_seconds)

    async def run(self, operation: Callable[[], Awaitable[T]], context: object = None) -> T:
        """Run ``operation`` until it succeeds or attempts are exhausted.

        Args:
            operation: Zero-argument callable returning an awaitable
            context: Diagnostic label (usually the page number)

        Returns:
            The operation's result

        Raises:
            Exception: The last error raised by ``operation``
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                return await operation()
            except Exception as e:
                if attempt >= self.max_attempts:
                    e.add_note(f"Failed after {attempt} attempt(s) (context: {context})")
                    raise
                logger.warning(
                    "Attempt %d/%d failed (context: %s): %s. Retrying...",
                    attempt,
                    self.max_attempts,
                    context,
                    e,
                )
                if self.backoff_seconds:
                    await asyncio.sleep(self.backoff_seconds)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(max_attempts={self.max_attempts})"
