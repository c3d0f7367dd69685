"""
Async Google Gemini completion model.

Uses the google-genai SDK's async surface (``client.aio``) so page requests
can run concurrently on the event loop.
"""

from __future__ import annotations

import logging
import os
from typing import Any

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from ..exceptions import (
    APIAuthenticationError,
    APIClientError,
    APIError,
    APIRateLimitError,
    APITimeoutError,
    MissingConfigError,
)
from ..types import CompletionRequest, CompletionResponse, ExtractionRequest, ExtractionResponse
from .base import BaseCompletionModel

logger = logging.getLogger(__name__)

_RATE_LIMIT_CODE = 429
_AUTH_CODES = (401, 403)
_TIMEOUT_CODES = (408, 504)


class AsyncGeminiModel(BaseCompletionModel):
    """Async Google Gemini completion model."""

    PROVIDER_NAME = "GOOGLE"
    DEFAULT_MODEL = "gemini-2.5-flash"

    def __init__(self, model: str | None = None, api_key: str | None = None, **kwargs: Any):
        """
        Initialize async Gemini model.

        Args:
            model: Gemini model to use
            api_key: Gemini API key (if not provided, reads GEMINI_API_KEY)
            **kwargs: llm_params, prompts, custom_prompt (see BaseCompletionModel)
        """
        super().__init__(model=model, **kwargs)
        self.api_key = api_key or os.environ.get("GEMINI_API_KEY")
        self.client: Any = self._setup_client()

    def _setup_client(self) -> genai.Client:
        if not self.api_key:
            raise MissingConfigError("Missing Gemini API key (set credentials.api_key or GEMINI_API_KEY)")

        client = genai.Client(api_key=self.api_key)
        logger.debug("Async Gemini client initialized (model=%s)", self.model)
        return client

    def _generation_config(self, system_prompt: str, json_output: bool = False) -> types.GenerateContentConfig:
        params = self.llm_params
        config: dict[str, Any] = {"system_instruction": system_prompt}
        if params.max_tokens is not None:
            config["max_output_tokens"] = params.max_tokens
        if params.temperature is not None:
            config["temperature"] = params.temperature
        if params.top_p is not None:
            config["top_p"] = params.top_p
        if params.frequency_penalty is not None:
            config["frequency_penalty"] = params.frequency_penalty
        if params.presence_penalty is not None:
            config["presence_penalty"] = params.presence_penalty
        if json_output:
            config["response_mime_type"] = "application/json"
        return types.GenerateContentConfig(**config)

    async def _generate(self, contents: list[Any], config: types.GenerateContentConfig) -> Any:
        logger.debug("Requesting Gemini generate_content (model=%s)", self.model)
        try:
            return await self.client.aio.models.generate_content(
                model=self.model,
                contents=contents,
                config=config,
            )
        except genai_errors.APIError as e:
            code = getattr(e, "code", None)
            if code == _RATE_LIMIT_CODE:
                raise APIRateLimitError(f"Gemini rate limit exceeded: {e}") from e
            if code in _AUTH_CODES:
                raise APIAuthenticationError(f"Gemini authentication failed: {e}") from e
            if code in _TIMEOUT_CODES:
                raise APITimeoutError(f"Gemini request timed out: {e}") from e
            if isinstance(e, genai_errors.ClientError):
                raise APIClientError(f"Gemini rejected the request: {e}") from e
            raise APIError(f"Gemini API error: {e}") from e

    @staticmethod
    def _usage(response: Any) -> tuple[int, int]:
        usage = getattr(response, "usage_metadata", None)
        if usage is None:
            return 0, 0
        return usage.prompt_token_count or 0, usage.candidates_token_count or 0

    @staticmethod
    def _image_part(image: bytes) -> types.Part:
        return types.Part.from_bytes(data=image, mime_type="image/png")

    async def ocr(self, request: CompletionRequest) -> CompletionResponse:
        response = await self._generate(
            [self._image_part(request.image)],
            self._generation_config(self.ocr_system_prompt(request)),
        )
        input_tokens, output_tokens = self._usage(response)
        return CompletionResponse(
            content=response.text or "",
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )

    async def extract(self, request: ExtractionRequest) -> ExtractionResponse:
        if isinstance(request.input, str):
            contents: list[Any] = [request.input]
        else:
            contents = [self._image_part(image) for image in request.input]

        response = await self._generate(
            contents,
            self._generation_config(self.extraction_system_prompt(request), json_output=True),
        )
        input_tokens, output_tokens = self._usage(response)
        return ExtractionResponse(
            extracted=self.parse_extraction_output(response.text),
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )
