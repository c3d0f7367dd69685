"""Model provider registry.

Maps provider names to completion model classes, loading provider modules
lazily so that only the SDK of the selected provider is imported.
"""

from __future__ import annotations

import importlib
import logging
import os
from collections.abc import Mapping
from enum import Enum
from typing import TYPE_CHECKING, Any

from ..exceptions import InvalidConfigError, MissingConfigError

if TYPE_CHECKING:
    from ..prompt import PromptManager
    from ..types import CompletionModel
    from .params import LLMParams

logger = logging.getLogger(__name__)

__all__ = ["ModelProvider", "ModelRegistry", "model_registry", "create_model", "resolve_credentials"]


class ModelProvider(str, Enum):
    """Supported model providers."""

    OPENAI = "OPENAI"
    AZURE = "AZURE"
    GOOGLE = "GOOGLE"
    BEDROCK = "BEDROCK"

    @classmethod
    def parse(cls, value: ModelProvider | str) -> ModelProvider:
        """Parse a provider name case-insensitively.

        Raises:
            InvalidConfigError: If the provider is unknown
        """
        if isinstance(value, ModelProvider):
            return value
        try:
            return cls(str(value).upper())
        except ValueError:
            available = ", ".join(p.value for p in cls)
            raise InvalidConfigError(f"Unknown model provider: '{value}'. Available: {available}") from None


# camelCase spellings accepted for credential mappings written for other clients
_CREDENTIAL_ALIASES = {
    "apiKey": "api_key",
    "baseUrl": "base_url",
    "azureEndpoint": "endpoint",
    "apiVersion": "api_version",
    "accessKeyId": "access_key_id",
    "secretAccessKey": "secret_access_key",
    "sessionToken": "session_token",
}

# provider -> (credential key, environment variable) pairs
_CREDENTIAL_ENV: dict[ModelProvider, tuple[tuple[str, str], ...]] = {
    ModelProvider.OPENAI: (("api_key", "OPENAI_API_KEY"), ("base_url", "OPENAI_BASE_URL")),
    ModelProvider.AZURE: (
        ("api_key", "AZURE_OPENAI_API_KEY"),
        ("endpoint", "AZURE_OPENAI_ENDPOINT"),
        ("api_version", "OPENAI_API_VERSION"),
    ),
    ModelProvider.GOOGLE: (("api_key", "GEMINI_API_KEY"),),
    ModelProvider.BEDROCK: (
        ("region", "AWS_REGION"),
        ("access_key_id", "AWS_ACCESS_KEY_ID"),
        ("secret_access_key", "AWS_SECRET_ACCESS_KEY"),
        ("session_token", "AWS_SESSION_TOKEN"),
    ),
}

_REQUIRED_CREDENTIALS: dict[ModelProvider, tuple[str, ...]] = {
    ModelProvider.OPENAI: ("api_key",),
    ModelProvider.AZURE: ("api_key", "endpoint"),
    ModelProvider.GOOGLE: ("api_key",),
    ModelProvider.BEDROCK: ("region",),
}


def resolve_credentials(
    provider: ModelProvider | str,
    credentials: Mapping[str, Any] | None = None,
    require: bool = True,
) -> dict[str, Any]:
    """Merge explicit credentials with environment variables.

    Explicit values win over the environment. Keys not used by the provider
    are rejected.

    Args:
        provider: Model provider
        credentials: Explicit credentials (snake_case or camelCase keys)
        require: Raise when a required credential is missing

    Returns:
        Dictionary of constructor keyword arguments for the provider model

    Raises:
        InvalidConfigError: If a credential key is not used by the provider
        MissingConfigError: If a required credential is missing and ``require`` is set

    Example:
        >>> resolve_credentials("OPENAI", {"apiKey": "sk-test"})
        {'api_key': 'sk-test'}
    """
    provider = ModelProvider.parse(provider)
    env_keys = _CREDENTIAL_ENV[provider]
    valid = {key for key, _ in env_keys}

    resolved: dict[str, Any] = {}
    for key, value in (credentials or {}).items():
        name = _CREDENTIAL_ALIASES.get(key, key)
        if name not in valid:
            raise InvalidConfigError(
                f"Invalid credential for {provider.value}: {key}. Valid credentials: {', '.join(sorted(valid))}"
            )
        if value:
            resolved[name] = value

    for key, env_var in env_keys:
        if key not in resolved and os.environ.get(env_var):
            resolved[key] = os.environ[env_var]

    if require:
        missing = [key for key in _REQUIRED_CREDENTIALS[provider] if not resolved.get(key)]
        if missing:
            hints = ", ".join(f"{key} ({env})" for key, env in env_keys if key in missing)
            raise MissingConfigError(f"Missing {provider.value} credentials: {hints}")

    # Bedrock keys only count as a pair; otherwise the boto3 credential chain applies
    if provider is ModelProvider.BEDROCK and not (
        resolved.get("access_key_id") and resolved.get("secret_access_key")
    ):
        for key in ("access_key_id", "secret_access_key", "session_token"):
            resolved.pop(key, None)

    return resolved


class ModelRegistry:
    """Registry for completion model implementations.

    Example:
        >>> from docpipe.models import model_registry
        >>> model = model_registry.create("OPENAI", model="gpt-4o-mini", api_key="...")
        >>> model_registry.list_available()
        ['AZURE', 'BEDROCK', 'GOOGLE', 'OPENAI']
    """

    # Built-in provider mappings (provider -> (module, class))
    _BUILTIN_MODELS: dict[ModelProvider, tuple[str, str]] = {
        ModelProvider.OPENAI: ("docpipe.models.openai_async", "AsyncOpenAIModel"),
        ModelProvider.AZURE: ("docpipe.models.openai_async", "AsyncAzureOpenAIModel"),
        ModelProvider.GOOGLE: ("docpipe.models.gemini_async", "AsyncGeminiModel"),
        ModelProvider.BEDROCK: ("docpipe.models.bedrock", "BedrockModel"),
    }

    def __init__(self) -> None:
        self._loaded_classes: dict[ModelProvider, type] = {}

    def get_class(self, provider: ModelProvider | str) -> type:
        """Get the model class for a provider (lazy loading).

        Raises:
            InvalidConfigError: If the provider is unknown
            ImportError: If the provider's SDK cannot be imported
        """
        provider = ModelProvider.parse(provider)
        if provider in self._loaded_classes:
            return self._loaded_classes[provider]

        module_path, class_name = self._BUILTIN_MODELS[provider]
        try:
            module = importlib.import_module(module_path)
        except ImportError as e:
            raise ImportError(f"Failed to import model provider '{provider.value}': {e}") from e

        model_class = getattr(module, class_name)
        self._loaded_classes[provider] = model_class
        return model_class

    def create(self, provider: ModelProvider | str, **kwargs: Any) -> CompletionModel:
        """Create a model instance for a provider."""
        model_class = self.get_class(provider)
        logger.debug("Creating %s model (%s)", ModelProvider.parse(provider).value, model_class.__name__)
        return model_class(**kwargs)

    def list_available(self) -> list[str]:
        """List all available provider names."""
        return sorted(p.value for p in self._BUILTIN_MODELS)

    def __contains__(self, provider: str) -> bool:
        try:
            return ModelProvider.parse(provider) in self._BUILTIN_MODELS
        except InvalidConfigError:
            return False

    def __repr__(self) -> str:
        return f"ModelRegistry(available={self.list_available()})"


# Global registry instance
model_registry = ModelRegistry()


def create_model(
    provider: ModelProvider | str,
    model: str | None = None,
    credentials: Mapping[str, Any] | None = None,
    llm_params: LLMParams | Mapping[str, Any] | None = None,
    prompts: PromptManager | None = None,
    custom_prompt: str | None = None,
) -> CompletionModel:
    """Create a completion model for the given provider.

    Args:
        provider: Provider name ("OPENAI", "AZURE", "GOOGLE", "BEDROCK")
        model: Model name (provider default when None)
        credentials: Explicit credentials; missing ones are read from the environment
        llm_params: Sampling parameters
        prompts: Prompt manager
        custom_prompt: OCR system prompt replacing the default one

    Returns:
        CompletionModel instance

    Example:
        >>> model = create_model("GOOGLE", "gemini-2.5-flash", {"api_key": "..."})
    """
    kwargs = resolve_credentials(provider, credentials)
    return model_registry.create(
        provider,
        model=model,
        llm_params=llm_params,
        prompts=prompts,
        custom_prompt=custom_prompt,
        **kwargs,
    )
