"""Base class for completion model providers.

This module provides the shared plumbing for provider implementations:
prompt construction, image encoding and extraction output parsing. Each
provider subclass only implements client setup and the two API calls.
"""

from __future__ import annotations

import base64
import json
import logging
import re
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from ..constants import PAGE_SEPARATOR
from ..exceptions import APIResponseError
from ..prompt import PromptManager
from .params import LLMParams

if TYPE_CHECKING:
    from ..types import CompletionRequest, CompletionResponse, ExtractionRequest, ExtractionResponse

logger = logging.getLogger(__name__)

_JSON_FENCE_RE = re.compile(r"^```(?:json)?\s*\n?(.*?)\n?```$", re.DOTALL | re.IGNORECASE)


class BaseCompletionModel(ABC):
    """Abstract base class for completion models.

    Subclasses must implement:
    - _setup_client: create the provider SDK client (raise on missing credentials)
    - ocr: recognize a page image as markdown
    - extract: extract schema fields from text or images

    Attributes:
        provider: Provider name (e.g., "OPENAI", "BEDROCK")
        model: Model name/identifier
        llm_params: Sampling parameters
        prompts: Prompt manager
        client: The underlying SDK client instance
    """

    # Subclasses should define these class attributes
    PROVIDER_NAME: str = "base"
    DEFAULT_MODEL: str = "default"

    def __init__(
        self,
        model: str | None = None,
        llm_params: LLMParams | dict[str, Any] | None = None,
        prompts: PromptManager | None = None,
        custom_prompt: str | None = None,
    ):
        """Initialize base model.

        Args:
            model: Model name to use. If None, uses DEFAULT_MODEL.
            llm_params: Sampling parameters
            prompts: Prompt manager (default: loads settings/prompts.yaml if present)
            custom_prompt: OCR system prompt replacing the default one
        """
        self.provider = self.PROVIDER_NAME
        self.model = model or self.DEFAULT_MODEL
        self.llm_params = LLMParams.from_mapping(llm_params)
        self.prompts = prompts or PromptManager()
        self.custom_prompt = custom_prompt
        self.client: Any = None

    @abstractmethod
    def _setup_client(self) -> Any:
        """Set up and return the SDK client instance."""
        ...

    @abstractmethod
    async def ocr(self, request: CompletionRequest) -> CompletionResponse:
        """Recognize one page image as markdown."""
        ...

    @abstractmethod
    async def extract(self, request: ExtractionRequest) -> ExtractionResponse:
        """Extract schema fields from page text or page images."""
        ...

    async def close(self) -> None:
        """Release network resources. Default: nothing to release."""

    # ==================== Shared Helpers ====================

    @staticmethod
    def encode_image(image: bytes) -> str:
        """Encode image bytes as base64 text."""
        return base64.b64encode(image).decode("utf-8")

    def ocr_system_prompt(self, request: CompletionRequest) -> str:
        return self.prompts.ocr_prompt(
            maintain_format=request.maintain_format,
            prior_page=request.prior_page,
            custom_prompt=self.custom_prompt,
        )

    def extraction_system_prompt(self, request: ExtractionRequest) -> str:
        if isinstance(request.input, str):
            multi_page = PAGE_SEPARATOR.strip() in request.input
        else:
            multi_page = len(request.input) > 1
        prompt = self.prompts.extraction_prompt(custom_prompt=request.prompt, multi_page=multi_page)
        return f"{prompt}\n\n{self.prompts.schema_prompt(json.dumps(request.schema, indent=2))}"

    @staticmethod
    def parse_extraction_output(text: str | None) -> dict[str, Any]:
        """Parse a model's JSON answer into a dict.

        Raises:
            APIResponseError: If the output is empty, not JSON, or not an object
        """
        if not text:
            raise APIResponseError("Model returned an empty extraction response")

        cleaned = text.strip()
        match = _JSON_FENCE_RE.match(cleaned)
        if match:
            cleaned = match.group(1).strip()

        try:
            parsed = json.loads(cleaned)
        except json.JSONDecodeError as e:
            raise APIResponseError(f"Extraction response is not valid JSON: {e}") from e

        if not isinstance(parsed, dict):
            raise APIResponseError(f"Extraction response must be a JSON object, got {type(parsed).__name__}")
        return parsed

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(model={self.model!r})"
