"""Completion model providers.

Provider classes are imported lazily through the registry so that only the
SDK of the selected provider is loaded.
"""

from .base import BaseCompletionModel
from .params import LLMParams
from .registry import ModelProvider, ModelRegistry, create_model, model_registry, resolve_credentials

__all__ = [
    "BaseCompletionModel",
    "LLMParams",
    "ModelProvider",
    "ModelRegistry",
    "create_model",
    "model_registry",
    "resolve_credentials",
]
