"""Output writers."""

from .saver import OutputSaver

__all__ = ["OutputSaver"]
