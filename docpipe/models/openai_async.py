"""
Async OpenAI and Azure OpenAI completion models.

Both providers share the chat completions API; they only differ in how the
client is constructed.
"""

from __future__ import annotations

import logging
import os
from typing import Any

import openai
from openai import AsyncAzureOpenAI, AsyncOpenAI

from ..constants import DEFAULT_AZURE_API_VERSION, DEFAULT_MODEL
from ..exceptions import (
    APIAuthenticationError,
    APIClientError,
    APIError,
    APIRateLimitError,
    APIResponseError,
    APITimeoutError,
    MissingConfigError,
)
from ..types import CompletionRequest, CompletionResponse, ExtractionRequest, ExtractionResponse
from .base import BaseCompletionModel

logger = logging.getLogger(__name__)


class AsyncOpenAIModel(BaseCompletionModel):
    """Async OpenAI completion model for page OCR and structured extraction."""

    PROVIDER_NAME = "OPENAI"
    DEFAULT_MODEL = DEFAULT_MODEL

    def __init__(
        self,
        model: str | None = None,
        api_key: str | None = None,
        base_url: str | None = None,
        **kwargs: Any,
    ):
        """
        Initialize async OpenAI model.

        Args:
            model: Model to use (e.g., "gpt-4o", "gpt-4o-mini")
            api_key: API key (if not provided, reads OPENAI_API_KEY)
            base_url: Base URL for compatible endpoints (if not provided, reads OPENAI_BASE_URL)
            **kwargs: llm_params, prompts, custom_prompt (see BaseCompletionModel)
        """
        super().__init__(model=model, **kwargs)
        self.api_key = api_key or os.environ.get("OPENAI_API_KEY")
        self.base_url = base_url or os.environ.get("OPENAI_BASE_URL")
        self.client: Any = self._setup_client()

    def _setup_client(self) -> AsyncOpenAI:
        if not self.api_key:
            raise MissingConfigError("Missing OpenAI API key (set credentials.api_key or OPENAI_API_KEY)")

        if self.base_url:
            client = AsyncOpenAI(api_key=self.api_key, base_url=self.base_url)
        else:
            client = AsyncOpenAI(api_key=self.api_key)
        logger.debug("AsyncOpenAI client initialized (model=%s, base_url=%s)", self.model, self.base_url or "default")
        return client

    def _completion_params(self) -> dict[str, Any]:
        return self.llm_params.to_dict()

    @staticmethod
    def _image_part(image_b64: str) -> dict[str, Any]:
        return {"type": "image_url", "image_url": {"url": f"data:image/png;base64,{image_b64}"}}

    async def _create(self, messages: list[dict[str, Any]], **kwargs: Any) -> Any:
        """Call chat completions, translating SDK errors into docpipe errors."""
        logger.debug("Requesting chat completion (provider=%s, model=%s)", self.provider, self.model)
        try:
            return await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                **self._completion_params(),
                **kwargs,
            )
        except openai.RateLimitError as e:
            # 429 Rate limit errors
            raise APIRateLimitError(f"{self.provider} rate limit exceeded: {e}") from e
        except (openai.APIConnectionError, openai.APITimeoutError) as e:
            # Network/timeout errors
            raise APITimeoutError(f"{self.provider} connection/timeout error: {e}") from e
        except (openai.AuthenticationError, openai.PermissionDeniedError) as e:
            raise APIAuthenticationError(f"{self.provider} authentication failed: {e}") from e
        except (openai.BadRequestError, openai.NotFoundError, openai.UnprocessableEntityError) as e:
            raise APIClientError(f"{self.provider} rejected the request: {e}") from e
        except openai.APIError as e:
            # Other API errors (4xx, 5xx)
            raise APIError(f"{self.provider} API error: {e}") from e

    @staticmethod
    def _usage(response: Any) -> tuple[int, int]:
        usage = getattr(response, "usage", None)
        if usage is None:
            return 0, 0
        return usage.prompt_tokens or 0, usage.completion_tokens or 0

    @staticmethod
    def _message_text(response: Any) -> str:
        if not response.choices:
            raise APIResponseError("Completion returned no choices")
        return response.choices[0].message.content or ""

    async def ocr(self, request: CompletionRequest) -> CompletionResponse:
        messages = [
            {"role": "system", "content": self.ocr_system_prompt(request)},
            {"role": "user", "content": [self._image_part(self.encode_image(request.image))]},
        ]
        response = await self._create(messages)
        input_tokens, output_tokens = self._usage(response)
        return CompletionResponse(
            content=self._message_text(response),
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )

    async def extract(self, request: ExtractionRequest) -> ExtractionResponse:
        if isinstance(request.input, str):
            user_content: Any = request.input
        else:
            user_content = [self._image_part(self.encode_image(image)) for image in request.input]

        messages = [
            {"role": "system", "content": self.extraction_system_prompt(request)},
            {"role": "user", "content": user_content},
        ]
        response = await self._create(
            messages,
            response_format={
                "type": "json_schema",
                "json_schema": {"name": "extraction", "schema": request.schema, "strict": False},
            },
        )
        input_tokens, output_tokens = self._usage(response)
        return ExtractionResponse(
            extracted=self.parse_extraction_output(self._message_text(response)),
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )

    async def close(self) -> None:
        """Close the async client connection."""
        if self.client:
            await self.client.close()


class AsyncAzureOpenAIModel(AsyncOpenAIModel):
    """Async Azure OpenAI completion model. ``model`` is the deployment name."""

    PROVIDER_NAME = "AZURE"

    def __init__(
        self,
        model: str | None = None,
        api_key: str | None = None,
        endpoint: str | None = None,
        api_version: str | None = None,
        **kwargs: Any,
    ):
        self.endpoint = endpoint or os.environ.get("AZURE_OPENAI_ENDPOINT")
        self.api_version = api_version or os.environ.get("OPENAI_API_VERSION") or DEFAULT_AZURE_API_VERSION
        super().__init__(
            model=model,
            api_key=api_key or os.environ.get("AZURE_OPENAI_API_KEY"),
            **kwargs,
        )

    def _setup_client(self) -> AsyncAzureOpenAI:
        if not self.api_key:
            raise MissingConfigError("Missing Azure OpenAI API key (set credentials.api_key or AZURE_OPENAI_API_KEY)")
        if not self.endpoint:
            raise MissingConfigError(
                "Missing Azure OpenAI endpoint (set credentials.endpoint or AZURE_OPENAI_ENDPOINT)"
            )

        client = AsyncAzureOpenAI(api_key=self.api_key, azure_endpoint=self.endpoint, api_version=self.api_version)
        logger.debug("AsyncAzureOpenAI client initialized (deployment=%s, endpoint=%s)", self.model, self.endpoint)
        return client
