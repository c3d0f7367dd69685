"""Shared constants for docpipe."""

# =============================================================================
# Scheduling
# =============================================================================
DEFAULT_CONCURRENCY = 10
"""Default number of page tasks in flight at once."""

DEFAULT_MAX_RETRIES = 1
"""Default number of re-attempts after a failed model call."""

ALL_PAGES = -1
"""Page selector sentinel meaning "convert every page"."""

# =============================================================================
# Models
# =============================================================================
DEFAULT_MODEL = "gpt-4o-mini"
"""Default model used when none is configured."""

DEFAULT_MAX_TOKENS = 4096
"""Default max_tokens for a single completion."""

DEFAULT_AZURE_API_VERSION = "2024-10-21"
"""Default API version for Azure OpenAI deployments."""

BEDROCK_ANTHROPIC_VERSION = "bedrock-2023-05-31"
"""Anthropic message API version expected by Bedrock."""

# =============================================================================
# Extraction
# =============================================================================
PER_PAGE_KEY = "perPage"
"""Schema property annotation marking a field for per-page extraction."""

PAGE_SEPARATOR = "\n<hr><hr>\n"
"""Separator placed between pages in full-document extraction input."""

# =============================================================================
# Image Conversion
# =============================================================================
DEFAULT_IMAGE_DENSITY = 300
"""DPI used when rasterizing PDF pages."""

DEFAULT_IMAGE_HEIGHT = 2048
"""Target pixel height of rasterized pages."""

IMAGE_SUFFIXES = frozenset({".png", ".jpg", ".jpeg", ".webp", ".tif", ".tiff", ".bmp", ".gif"})
"""Input suffixes handled as single-page images."""

LIBREOFFICE_TIMEOUT_SECONDS = 120
"""Upper bound on an office-to-PDF conversion."""

# =============================================================================
# Output
# =============================================================================
MAX_FILE_NAME_LENGTH = 255
"""Maximum length of the derived output file name."""
