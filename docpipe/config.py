"""Converter configuration module.

This module provides:
- ConverterConfig: Dataclass for all conversion options
- YAML and CLI loaders
- Validation run before any processing starts
"""

from __future__ import annotations

import argparse
import json
import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from .constants import (
    ALL_PAGES,
    DEFAULT_CONCURRENCY,
    DEFAULT_IMAGE_DENSITY,
    DEFAULT_IMAGE_HEIGHT,
    DEFAULT_MAX_RETRIES,
)
from .exceptions import FileLoadError, InvalidConfigError, MissingConfigError
from .models import LLMParams, ModelProvider, resolve_credentials
from .numbering import PageSelector, normalize_page_selector
from .schema import schema_fields
from .types import ErrorMode, PostProcessHook, PreProcessHook

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = Path("settings") / "config.yaml"


def _load_yaml_config(config_path: Path) -> dict[str, Any]:
    """Load YAML configuration file with error handling.

    Args:
        config_path: Path to YAML config file

    Returns:
        Configuration dict, or empty dict if file not found or invalid
    """
    try:
        if config_path.exists():
            with open(config_path, encoding="utf-8") as f:
                loaded = yaml.safe_load(f) or {}
            if not isinstance(loaded, dict):
                logger.warning("Ignoring config file %s: top level must be a mapping", config_path)
                return {}
            return loaded
        logger.debug("Config file not found: %s", config_path)
        return {}
    except yaml.YAMLError as e:
        logger.warning("Failed to parse config file %s: %s", config_path, e)
        return {}
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Failed to read config file %s: %s", config_path, e)
        return {}


def load_schema_file(schema_path: str | Path) -> dict[str, Any]:
    """Load an extraction schema from a JSON file.

    Raises:
        FileLoadError: If the file cannot be read or is not valid JSON
    """
    path = Path(schema_path)
    try:
        with path.open(encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise FileLoadError(f"Failed to load schema file {path}: {e}") from e


@dataclass
class ConverterConfig:
    """Converter configuration with validation.

    Configuration Sources (in order of precedence):
    1. Constructor arguments (highest priority)
    2. CLI arguments via from_cli()
    3. YAML configuration files via from_yaml()
    4. Default values (lowest priority)

    Example:
        >>> config = ConverterConfig(file_path="invoice.pdf", model_provider="OPENAI")
        >>> config.validate()

        >>> config = ConverterConfig.from_yaml(Path("settings/config.yaml"), file_path="invoice.pdf")
    """

    # ==================== Input ====================
    file_path: Path | None = None
    pages_to_convert_as_images: PageSelector = ALL_PAGES

    # ==================== Paths ====================
    output_dir: Path | None = None
    temp_dir: Path | None = None
    cleanup: bool = True

    # ==================== Scheduling ====================
    concurrency: int = DEFAULT_CONCURRENCY
    maintain_format: bool = False
    error_mode: ErrorMode | str = ErrorMode.IGNORE
    max_retries: int = DEFAULT_MAX_RETRIES

    # ==================== Image Preparation ====================
    correct_orientation: bool = True
    trim_edges: bool = True
    max_tesseract_workers: int | None = None
    image_density: int = DEFAULT_IMAGE_DENSITY
    image_height: int | None = DEFAULT_IMAGE_HEIGHT

    # ==================== Model ====================
    model: str | None = None
    model_provider: ModelProvider | str = ModelProvider.OPENAI
    credentials: dict[str, Any] = field(default_factory=dict)
    llm_params: LLMParams | dict[str, Any] | None = None
    prompt: str | None = None

    # ==================== Extraction ====================
    schema: dict[str, Any] | None = None
    extract_only: bool = False
    extract_per_page: bool = False
    direct_image_extraction: bool = False
    extraction_prompt: str | None = None
    extraction_model: str | None = None
    extraction_model_provider: ModelProvider | str | None = None
    extraction_credentials: dict[str, Any] | None = None
    extraction_llm_params: LLMParams | dict[str, Any] | None = None

    # ==================== Hooks ====================
    on_pre_process: PreProcessHook | None = field(default=None, repr=False)
    on_post_process: PostProcessHook | None = field(default=None, repr=False)

    # ==================== Internal State (populated during validation) ====================
    _resolved_credentials: dict[str, Any] = field(default_factory=dict, repr=False)
    _resolved_extraction_credentials: dict[str, Any] = field(default_factory=dict, repr=False)

    def __post_init__(self) -> None:
        """Convert path strings to Path objects."""
        if isinstance(self.file_path, str):
            self.file_path = Path(self.file_path)
        if isinstance(self.output_dir, str):
            self.output_dir = Path(self.output_dir)
        if isinstance(self.temp_dir, str):
            self.temp_dir = Path(self.temp_dir)

    # ==================== Loaders ====================

    @classmethod
    def from_yaml(cls, config_path: Path, **overrides: Any) -> ConverterConfig:
        """Load configuration from YAML file.

        Keys matching config field names are used; unknown keys are logged
        and ignored. A ``schema_file`` key loads the schema from JSON.

        Args:
            config_path: Path to YAML configuration file
            **overrides: Values to override from file

        Returns:
            ConverterConfig instance
        """
        yaml_config = _load_yaml_config(config_path)
        known = {f.name for f in fields(cls) if not f.name.startswith("_")}

        kwargs: dict[str, Any] = {}
        for key, value in yaml_config.items():
            if key == "schema_file":
                kwargs["schema"] = load_schema_file(value)
            elif key in known:
                kwargs[key] = value
            else:
                logger.warning("Ignoring unknown config key in %s: %s", config_path, key)

        kwargs.update(overrides)
        return cls(**kwargs)

    @staticmethod
    def _get_arg(args: argparse.Namespace, name: str, default: Any = None) -> Any:
        return getattr(args, name, default)

    @classmethod
    def _extract_cli_kwargs(cls, args: argparse.Namespace) -> dict[str, Any]:
        """Extract configuration kwargs from CLI arguments.

        Args:
            args: Parsed CLI arguments

        Returns:
            Dictionary of config kwargs (only options given on the command line)
        """
        # Format: (cli_name, config_name, transform_func)
        mappings: list[tuple[str, str, Any]] = [
            ("input", "file_path", Path),
            ("output", "output_dir", Path),
            ("temp_dir", "temp_dir", Path),
            ("concurrency", "concurrency", None),
            ("pages", "pages_to_convert_as_images", None),
            ("provider", "model_provider", None),
            ("model", "model", None),
            ("error_mode", "error_mode", None),
            ("max_retries", "max_retries", None),
            ("max_tesseract_workers", "max_tesseract_workers", None),
            ("prompt", "prompt", None),
            ("extraction_prompt", "extraction_prompt", None),
            ("schema", "schema", load_schema_file),
        ]

        kwargs: dict[str, Any] = {}
        for cli_name, config_name, transform in mappings:
            value = cls._get_arg(args, cli_name)
            if value is not None:
                kwargs[config_name] = transform(value) if transform else value

        # Boolean flags only override when set
        for flag in ("maintain_format", "extract_only", "extract_per_page", "direct_image_extraction"):
            if cls._get_arg(args, flag):
                kwargs[flag] = True
        if cls._get_arg(args, "no_orientation"):
            kwargs["correct_orientation"] = False
        if cls._get_arg(args, "no_trim"):
            kwargs["trim_edges"] = False
        if cls._get_arg(args, "no_cleanup"):
            kwargs["cleanup"] = False

        return kwargs

    @classmethod
    def from_cli(cls, args: argparse.Namespace) -> ConverterConfig:
        """Create configuration from CLI arguments.

        CLI values are layered over the ``--config`` YAML file, or over
        settings/config.yaml when no file is given.
        """
        kwargs = cls._extract_cli_kwargs(args)
        config_path = cls._get_arg(args, "config") or DEFAULT_CONFIG_FILE
        return cls.from_yaml(Path(config_path), **kwargs)

    # ==================== Validation ====================

    @property
    def extraction_enabled(self) -> bool:
        return self.schema is not None

    def validate(self, require_credentials: bool = True) -> None:
        """Validate configuration and normalize values.

        Args:
            require_credentials: Fail when provider credentials are missing
                (disable when a model instance is supplied directly)

        Raises:
            MissingConfigError: If the file path or required credentials are missing
            InvalidConfigError: If an option is out of range or inconsistent
            InvalidSchemaError: If the schema is not an object with properties
        """
        if self.file_path is None:
            raise MissingConfigError("file_path is required")

        self._validate_scheduling()
        self._validate_image_options()
        self.pages_to_convert_as_images = normalize_page_selector(self.pages_to_convert_as_images)
        self._validate_extraction()

        self.model_provider = ModelProvider.parse(self.model_provider)
        self.llm_params = LLMParams.from_mapping(self.llm_params)
        self.extraction_llm_params = LLMParams.from_mapping(
            self.extraction_llm_params if self.extraction_llm_params is not None else self.llm_params
        )
        self._resolve_credentials(require_credentials)

        logger.info(
            "Configuration validated: provider=%s, model=%s, concurrency=%d, maintain_format=%s, "
            "error_mode=%s, max_retries=%d, extraction=%s",
            self.model_provider.value,
            self.model or "default",
            self.concurrency,
            self.maintain_format,
            self.error_mode.value,
            self.max_retries,
            "extract-only" if self.extract_only else ("on" if self.extraction_enabled else "off"),
        )

    def _validate_scheduling(self) -> None:
        if isinstance(self.concurrency, bool) or not isinstance(self.concurrency, int) or self.concurrency < 1:
            raise InvalidConfigError(f"concurrency must be a positive integer, got {self.concurrency!r}")
        if isinstance(self.max_retries, bool) or not isinstance(self.max_retries, int) or self.max_retries < 0:
            raise InvalidConfigError(f"max_retries must be a non-negative integer, got {self.max_retries!r}")
        try:
            self.error_mode = ErrorMode(str(getattr(self.error_mode, "value", self.error_mode)).upper())
        except ValueError:
            raise InvalidConfigError(
                f"Invalid error_mode: {self.error_mode!r}. Valid modes: {', '.join(m.value for m in ErrorMode)}"
            ) from None

    def _validate_image_options(self) -> None:
        if self.image_density < 1:
            raise InvalidConfigError(f"image_density must be positive, got {self.image_density}")
        if self.image_height is not None and self.image_height < 1:
            raise InvalidConfigError(f"image_height must be positive, got {self.image_height}")

    def _validate_extraction(self) -> None:
        if self.schema is None:
            if self.extract_only:
                raise InvalidConfigError("extract_only requires a schema")
            if self.extract_per_page or self.direct_image_extraction:
                raise InvalidConfigError("extract_per_page and direct_image_extraction require a schema")
            return

        schema_fields(self.schema)
        if self.extract_only and self.maintain_format:
            raise InvalidConfigError("maintain_format cannot be used with extract_only")

    def _resolve_credentials(self, require: bool) -> None:
        self._resolved_credentials = resolve_credentials(self.model_provider, self.credentials, require=require)

        if self.extraction_model_provider is None:
            self.extraction_model_provider = self.model_provider
        else:
            self.extraction_model_provider = ModelProvider.parse(self.extraction_model_provider)

        if self.extraction_enabled:
            extraction_credentials = self.extraction_credentials
            if extraction_credentials is None and self.extraction_model_provider is self.model_provider:
                extraction_credentials = self.credentials
            self._resolved_extraction_credentials = resolve_credentials(
                self.extraction_model_provider, extraction_credentials, require=require
            )

    @property
    def uses_separate_extraction_model(self) -> bool:
        """Whether extraction needs its own model instance."""
        return self.extraction_enabled and (
            self.extraction_model is not None
            or self.extraction_model_provider != self.model_provider
            or self.extraction_credentials is not None
            or self.extraction_llm_params != self.llm_params
        )
