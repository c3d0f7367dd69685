"""docpipe: convert documents to markdown and structured data with vision models."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from .config import ConverterConfig
from .conversion import prepare_page_images
from .extraction import ExtractionRunner, merge_extraction_results
from .io import OutputSaver
from .misc import sanitize_file_name
from .models import ModelProvider, create_model
from .numbering import remap_pages, resolve_page_number
from .orientation import correct_page_file, create_orientation_pool
from .prompt import PromptManager
from .resources import managed_orientation_pool, staging_directory
from .retry import RetryExecutor
from .scheduler import PageScheduler
from .schema import split_schema
from .state import RunState, build_summary
from .types import (
    CompletionModel,
    ConversionResult,
    ErrorMode,
    OrientationWorkerPool,
    Page,
    PageStatus,
    Summary,
)

# Load environment variables (provider credentials) from .env
load_dotenv()

logger = logging.getLogger(__name__)

__all__ = [
    "DocumentConverter",
    "convert",
    "ConverterConfig",
    "ConversionResult",
    "ErrorMode",
    "ModelProvider",
    "Page",
    "PageStatus",
    "Summary",
    "merge_extraction_results",
    "split_schema",
]

OrientationPoolFactory = Callable[[int, int | None], OrientationWorkerPool]


class DocumentConverter:
    """Document conversion driver.

    Stages:
    1. Input: stage the file and produce one PNG per selected page
    2. OCR: run page tasks through the scheduler (skipped in extract-only mode)
    3. Renumber: map processing positions back to caller page numbers
    4. Extraction: run per-page and full-document tracks (when a schema is set)
    5. Output: write ``<file_name>.md`` when an output directory is set

    The orientation pool and staging directory are released on every exit path.

    Example:
        >>> config = ConverterConfig(file_path="invoice.pdf", output_dir="output")
        >>> result = await DocumentConverter(config).convert()
        >>> result.summary.ocr.successful
        3
    """

    def __init__(
        self,
        config: ConverterConfig,
        model: CompletionModel | None = None,
        extraction_model: CompletionModel | None = None,
        orientation_pool_factory: OrientationPoolFactory | None = None,
    ):
        """Initialize DocumentConverter.

        Args:
            config: Conversion options
            model: Completion model to use instead of building one from config.
                Caller-supplied models are not closed by the converter.
            extraction_model: Model for extraction (default: ``model``)
            orientation_pool_factory: Builds the orientation pool from
                (num_pages, max_workers) (default: Tesseract thread pool)
        """
        self.config = config
        self.model = model
        self.extraction_model = extraction_model
        self.orientation_pool_factory = orientation_pool_factory or create_orientation_pool

    # ==================== Models ====================

    def _build_models(self) -> tuple[CompletionModel, CompletionModel, list[CompletionModel]]:
        """Return (ocr_model, extraction_model, owned_models)."""
        config = self.config
        owned: list[CompletionModel] = []
        prompts = PromptManager()

        model = self.model
        if model is None:
            model = create_model(
                config.model_provider,
                config.model,
                config.credentials,
                config.llm_params,
                prompts=prompts,
                custom_prompt=config.prompt,
            )
            owned.append(model)

        extraction_model = self.extraction_model
        if extraction_model is None:
            if self.model is None and config.uses_separate_extraction_model:
                extraction_model = create_model(
                    config.extraction_model_provider or config.model_provider,
                    config.extraction_model or config.model,
                    config.extraction_credentials if config.extraction_credentials is not None else config.credentials,
                    config.extraction_llm_params,
                    prompts=prompts,
                )
                owned.append(extraction_model)
            else:
                extraction_model = model

        return model, extraction_model, owned

    # ==================== Conversion ====================

    async def convert(self) -> ConversionResult:
        """Run a full conversion.

        Returns:
            ConversionResult with pages, extracted fields, token totals and summary

        Raises:
            ConfigurationError: On invalid options, before any processing
            Exception: The first page error (error_mode THROW) or any extraction error
        """
        config = self.config
        config.validate(require_credentials=self.model is None)
        assert config.file_path is not None

        start_time = time.perf_counter()
        model, extraction_model, owned_models = self._build_models()
        state = RunState()
        retry = RetryExecutor.from_max_retries(config.max_retries)
        selector = config.pages_to_convert_as_images
        file_name = sanitize_file_name(config.file_path.stem)

        logger.info("Converting %s (provider=%s, model=%s)", config.file_path.name, model.provider, model.model)

        try:
            async with staging_directory(config.temp_dir, cleanup=config.cleanup) as staging:
                image_paths = await prepare_page_images(
                    config.file_path,
                    staging,
                    selector,
                    density=config.image_density,
                    height=config.image_height,
                    trim=config.trim_edges,
                )
                total_pages = len(image_paths)

                pool_factory = None
                if config.correct_orientation:
                    pool_factory = lambda: self.orientation_pool_factory(  # noqa: E731
                        total_pages, config.max_tesseract_workers
                    )

                async with managed_orientation_pool(pool_factory) as pool:
                    pages: list[Page] = []
                    if config.extract_only:
                        if pool is not None:
                            await asyncio.gather(*(correct_page_file(pool, path) for path in image_paths))
                    else:
                        scheduler = PageScheduler(
                            model,
                            state,
                            retry,
                            concurrency=config.concurrency,
                            maintain_format=config.maintain_format,
                            error_mode=config.error_mode,
                            orientation_pool=pool,
                            on_pre_process=config.on_pre_process,
                            on_post_process=config.on_post_process,
                            summary_provider=lambda n: state.snapshot(
                                n, ocr_ran=True, extraction_ran=config.extraction_enabled
                            ),
                        )
                        pages = remap_pages(await scheduler.run(image_paths), selector)

                    extracted = None
                    if config.schema is not None:
                        extracted = await self._extract(extraction_model, state, retry, pages, image_paths)
        finally:
            for owned in owned_models:
                await owned.close()

        if config.output_dir is not None and pages:
            OutputSaver(config.output_dir).save_markdown(file_name, pages)

        completion_time = (time.perf_counter() - start_time) * 1000
        summary = build_summary(
            state,
            total_pages,
            ocr_ran=not config.extract_only,
            extraction_ran=config.extraction_enabled,
        )
        logger.info(
            "Converted %s: %d page(s) in %.0f ms (input_tokens=%d, output_tokens=%d)",
            file_name,
            total_pages,
            completion_time,
            state.input_token_count,
            state.output_token_count,
        )
        return ConversionResult(
            completion_time=completion_time,
            file_name=file_name,
            input_tokens=state.input_token_count,
            output_tokens=state.output_token_count,
            pages=pages,
            extracted=extracted,
            summary=summary,
        )

    async def _extract(
        self,
        model: CompletionModel,
        state: RunState,
        retry: RetryExecutor,
        pages: Sequence[Page],
        image_paths: Sequence[Path],
    ) -> dict[str, Any]:
        config = self.config
        assert config.schema is not None
        per_page_schema, full_doc_schema = split_schema(config.schema, per_page_override=config.extract_per_page)
        runner = ExtractionRunner(
            model,
            state,
            retry,
            concurrency=config.concurrency,
            prompt=config.extraction_prompt,
        )

        if config.extract_only or config.direct_image_extraction:
            selector = config.pages_to_convert_as_images
            page_numbers = [resolve_page_number(index, selector) for index in range(len(image_paths))]
            return await runner.run(per_page_schema, full_doc_schema, image_paths=image_paths, page_numbers=page_numbers)
        return await runner.run(per_page_schema, full_doc_schema, pages=pages)


async def convert(
    model: CompletionModel | None = None,
    extraction_model: CompletionModel | None = None,
    **options: Any,
) -> ConversionResult:
    """Convert a document with options given as keyword arguments.

    Args:
        model: Optional completion model instance (otherwise built from options)
        extraction_model: Optional model for extraction
        **options: ConverterConfig fields (file_path, concurrency, schema, ...)

    Returns:
        ConversionResult

    Example:
        >>> result = await convert(file_path="report.pdf", model_provider="GOOGLE", maintain_format=True)
    """
    config = ConverterConfig(**options)
    return await DocumentConverter(config, model=model, extraction_model=extraction_model).convert()
