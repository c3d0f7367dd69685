"""Unified type definitions for docpipe.

This module provides:
- Page, PageStatus, ErrorMode: Per-page outcome and failure policy
- PhaseCounts, Summary, ConversionResult: Run statistics and returned result
- CompletionRequest/Response, ExtractionRequest/Response: Model messages
- CompletionModel, OrientationWorkerPool, hooks: Capability interfaces
"""

from .completion import CompletionRequest, CompletionResponse, ExtractionRequest, ExtractionResponse
from .interfaces import CompletionModel, OrientationWorkerPool, PostProcessHook, PreProcessHook
from .page import ErrorMode, Page, PageStatus
from .result import ConversionResult, PhaseCounts, Summary

__all__ = [
    # Page types
    "Page",
    "PageStatus",
    "ErrorMode",
    # Result types
    "PhaseCounts",
    "Summary",
    "ConversionResult",
    # Model messages
    "CompletionRequest",
    "CompletionResponse",
    "ExtractionRequest",
    "ExtractionResponse",
    # Component interfaces
    "CompletionModel",
    "OrientationWorkerPool",
    "PreProcessHook",
    "PostProcessHook",
]
