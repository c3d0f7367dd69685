"""
AWS Bedrock completion model (Anthropic Claude models).

boto3 is synchronous, so each request runs in a worker thread via
``asyncio.to_thread`` to keep the event loop free for other pages.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..constants import BEDROCK_ANTHROPIC_VERSION, DEFAULT_MAX_TOKENS
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

_RATE_LIMIT_CODES = frozenset({"ThrottlingException", "TooManyRequestsException", "ServiceQuotaExceededException"})
_AUTH_CODES = frozenset({"AccessDeniedException", "UnrecognizedClientException", "ExpiredTokenException"})
_TIMEOUT_CODES = frozenset({"ModelTimeoutException", "RequestTimeout"})
_CLIENT_CODES = frozenset({"ValidationException", "ResourceNotFoundException"})


class BedrockModel(BaseCompletionModel):
    """Bedrock completion model using the Anthropic messages body."""

    PROVIDER_NAME = "BEDROCK"
    DEFAULT_MODEL = "anthropic.claude-3-5-sonnet-20240620-v1:0"

    def __init__(
        self,
        model: str | None = None,
        region: str | None = None,
        access_key_id: str | None = None,
        secret_access_key: str | None = None,
        session_token: str | None = None,
        **kwargs: Any,
    ):
        """
        Initialize Bedrock model.

        Args:
            model: Bedrock model id
            region: AWS region (if not provided, reads AWS_REGION)
            access_key_id: Explicit access key; otherwise the default boto3 credential chain applies
            secret_access_key: Explicit secret key
            session_token: Optional session token for temporary credentials
            **kwargs: llm_params, prompts, custom_prompt (see BaseCompletionModel)
        """
        super().__init__(model=model, **kwargs)
        self.region = region or os.environ.get("AWS_REGION") or os.environ.get("AWS_DEFAULT_REGION")
        self.access_key_id = access_key_id
        self.secret_access_key = secret_access_key
        self.session_token = session_token
        self.client: Any = self._setup_client()

    def _setup_client(self) -> Any:
        if not self.region:
            raise MissingConfigError("Missing AWS region for Bedrock (set credentials.region or AWS_REGION)")

        client_kwargs: dict[str, Any] = {"region_name": self.region}
        if self.access_key_id and self.secret_access_key:
            client_kwargs["aws_access_key_id"] = self.access_key_id
            client_kwargs["aws_secret_access_key"] = self.secret_access_key
            if self.session_token:
                client_kwargs["aws_session_token"] = self.session_token

        client = boto3.client("bedrock-runtime", **client_kwargs)
        logger.debug("Bedrock client created (region=%s, model=%s)", self.region, self.model)
        return client

    def _request_body(self, system_prompt: str, content: list[dict[str, Any]]) -> dict[str, Any]:
        params = self.llm_params
        body: dict[str, Any] = {
            "anthropic_version": BEDROCK_ANTHROPIC_VERSION,
            "max_tokens": params.max_tokens or DEFAULT_MAX_TOKENS,
            "system": system_prompt,
            "messages": [{"role": "user", "content": content}],
        }
        if params.temperature is not None:
            body["temperature"] = params.temperature
        if params.top_p is not None:
            body["top_p"] = params.top_p
        return body

    def _image_block(self, image: bytes) -> dict[str, Any]:
        return {
            "type": "image",
            "source": {"type": "base64", "media_type": "image/png", "data": self.encode_image(image)},
        }

    async def _invoke(self, body: dict[str, Any]) -> dict[str, Any]:
        logger.debug("Invoking Bedrock model %s", self.model)
        try:
            response = await asyncio.to_thread(
                self.client.invoke_model,
                modelId=self.model,
                contentType="application/json",
                accept="application/json",
                body=json.dumps(body),
            )
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "Unknown")
            if error_code in _RATE_LIMIT_CODES:
                raise APIRateLimitError(f"Bedrock throttled the request ({error_code}): {e}") from e
            if error_code in _AUTH_CODES:
                raise APIAuthenticationError(f"Bedrock access denied ({error_code}): {e}") from e
            if error_code in _TIMEOUT_CODES:
                raise APITimeoutError(f"Bedrock request timed out ({error_code}): {e}") from e
            if error_code in _CLIENT_CODES:
                raise APIClientError(f"Bedrock rejected the request ({error_code}): {e}") from e
            raise APIError(f"Bedrock error ({error_code}): {e}") from e
        except BotoCoreError as e:
            raise APITimeoutError(f"Bedrock connection error: {e}") from e

        try:
            payload = json.loads(response["body"].read())
        except (KeyError, json.JSONDecodeError) as e:
            raise APIResponseError(f"Bedrock returned an unreadable response: {e}") from e
        return payload

    @staticmethod
    def _text(payload: dict[str, Any]) -> str:
        blocks = payload.get("content") or []
        return "".join(block.get("text", "") for block in blocks if block.get("type") == "text")

    @staticmethod
    def _usage(payload: dict[str, Any]) -> tuple[int, int]:
        usage = payload.get("usage") or {}
        return usage.get("input_tokens", 0), usage.get("output_tokens", 0)

    async def ocr(self, request: CompletionRequest) -> CompletionResponse:
        body = self._request_body(self.ocr_system_prompt(request), [self._image_block(request.image)])
        payload = await self._invoke(body)
        input_tokens, output_tokens = self._usage(payload)
        return CompletionResponse(content=self._text(payload), input_tokens=input_tokens, output_tokens=output_tokens)

    async def extract(self, request: ExtractionRequest) -> ExtractionResponse:
        if isinstance(request.input, str):
            content = [{"type": "text", "text": request.input}]
        else:
            content = [self._image_block(image) for image in request.input]

        payload = await self._invoke(self._request_body(self.extraction_system_prompt(request), content))
        input_tokens, output_tokens = self._usage(payload)
        return ExtractionResponse(
            extracted=self.parse_extraction_output(self._text(payload)),
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )
