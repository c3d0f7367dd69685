"""Custom exception classes for docpipe.

This module defines a hierarchy of custom exceptions to provide better
error handling and more specific error messages throughout the converter.

Exception Hierarchy:
    PipelineError (base)
    ├── ConfigurationError
    │   ├── InvalidConfigError
    │   ├── MissingConfigError
    │   └── InvalidSchemaError
    ├── APIError
    │   ├── APIClientError
    │   ├── APIAuthenticationError
    │   ├── APIRateLimitError
    │   ├── APITimeoutError
    │   └── APIResponseError
    ├── ProcessingError
    │   ├── PageProcessingError
    │   ├── ExtractionError
    │   └── ConversionError
    ├── FileError
    │   ├── FileLoadError
    │   ├── FileSaveError
    │   └── FileFormatError
    └── DependencyError

Usage:
    try:
        result = await converter.convert()
    except APIRateLimitError as e:
        logger.warning("Rate limit exceeded: %s", e)
    except APIError as e:
        logger.error("API error: %s", e)
"""

from __future__ import annotations


class PipelineError(Exception):
    """Base exception for all docpipe errors.

    All custom exceptions in the package inherit from this class.
    This allows catching all converter-specific errors with a single handler.
    """


# ============================================================================
# Configuration Errors
# ============================================================================


class ConfigurationError(PipelineError):
    """Base exception for configuration-related errors.

    Raised before any page is processed. Never retried.
    """


class InvalidConfigError(ConfigurationError):
    """Raised when configuration values are invalid or incompatible.

    Examples:
        - Extraction-only mode without a schema
        - Format continuity combined with extraction-only mode
        - Unknown model provider or LLM parameter
        - Invalid page selector
    """


class MissingConfigError(ConfigurationError):
    """Raised when required configuration is missing.

    Examples:
        - Missing API key or region
        - Missing input file path
    """


class InvalidSchemaError(ConfigurationError):
    """Raised when an extraction schema is not a JSON-schema object."""


# ============================================================================
# API Errors
# ============================================================================


class APIError(PipelineError):
    """Base exception for model provider errors.

    Raised when interacting with external APIs (OpenAI, Azure, Gemini, Bedrock).
    These are the errors the retry executor is expected to see.
    """


class APIClientError(APIError):
    """Raised when the provider rejects a request as malformed.

    Examples:
        - Unknown model or deployment name
        - Image or schema the model does not accept
    """


class APIAuthenticationError(APIError):
    """Raised when API authentication fails.

    Examples:
        - Invalid API key
        - Expired credentials
        - Insufficient permissions
    """


class APIRateLimitError(APIError):
    """Raised when provider rate limits or throttling are hit."""


class APITimeoutError(APIError):
    """Raised when API requests time out or the connection drops."""


class APIResponseError(APIError):
    """Raised when a provider response cannot be interpreted.

    Examples:
        - Empty completion
        - Extraction output that is not a JSON object
    """


# ============================================================================
# Processing Errors
# ============================================================================


class ProcessingError(PipelineError):
    """Base exception for document processing errors."""


class PageProcessingError(ProcessingError):
    """Raised when processing a specific page fails."""


class ExtractionError(ProcessingError):
    """Raised when a structured extraction track fails."""


class ConversionError(ProcessingError):
    """Raised when the input document cannot be turned into page images.

    Examples:
        - PDF rasterization failure
        - LibreOffice conversion failure
        - Document produced no pages
    """


# ============================================================================
# File Errors
# ============================================================================


class FileError(PipelineError):
    """Base exception for file operation errors."""


class FileLoadError(FileError):
    """Raised when loading a file fails."""


class FileSaveError(FileError):
    """Raised when saving a file fails."""


class FileFormatError(FileError):
    """Raised when the input file format is unsupported."""


# ============================================================================
# Dependency Errors
# ============================================================================


class DependencyError(PipelineError):
    """Raised when an external tool (Tesseract, Poppler, LibreOffice) is unavailable."""
