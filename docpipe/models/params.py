"""Sampling parameters shared by all providers."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, dataclass, fields
from typing import Any

from ..exceptions import InvalidConfigError

# camelCase spellings accepted for configs written for other clients
_CAMEL_CASE_ALIASES = {
    "maxTokens": "max_tokens",
    "topP": "top_p",
    "frequencyPenalty": "frequency_penalty",
    "presencePenalty": "presence_penalty",
}


@dataclass(frozen=True)
class LLMParams:
    """Sampling parameters passed through to the provider.

    Unset values are omitted from requests so the provider default applies.
    """

    max_tokens: int | None = None
    temperature: float | None = None
    top_p: float | None = None
    frequency_penalty: float | None = None
    presence_penalty: float | None = None

    @classmethod
    def from_mapping(cls, params: Mapping[str, Any] | LLMParams | None) -> LLMParams:
        """Build LLMParams from a mapping, rejecting unknown keys.

        Raises:
            InvalidConfigError: If a key is not a known parameter
        """
        if params is None:
            return cls()
        if isinstance(params, LLMParams):
            return params

        valid = {f.name for f in fields(cls)}
        kwargs: dict[str, Any] = {}
        for key, value in params.items():
            name = _CAMEL_CASE_ALIASES.get(key, key)
            if name not in valid:
                raise InvalidConfigError(
                    f"Invalid LLM parameter: {key}. Valid parameters: {', '.join(sorted(valid))}"
                )
            kwargs[name] = value

        max_tokens = kwargs.get("max_tokens")
        if max_tokens is not None and (not isinstance(max_tokens, int) or max_tokens < 1):
            raise InvalidConfigError(f"max_tokens must be a positive integer, got {max_tokens!r}")
        return cls(**kwargs)

    def to_dict(self) -> dict[str, Any]:
        """Return only the parameters that are set."""
        return {key: value for key, value in asdict(self).items() if value is not None}
