#!/usr/bin/env python3
"""
Main entry point for docpipe
Provides command-line interface for converting documents to markdown and structured data
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import textwrap
from pathlib import Path
from typing import TYPE_CHECKING

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Note: docpipe imports are moved to function-level
# to improve CLI startup time (--help, argument validation, etc.)
if TYPE_CHECKING:
    from docpipe import ConversionResult


def setup_logging(level: str = "INFO") -> None:
    """Setup logging configuration with timestamped log files."""
    from docpipe.misc import tz_now  # noqa: PLC0415 - lazy import for startup performance

    logs_dir = Path(".logs")
    logs_dir.mkdir(exist_ok=True)

    timestamp = tz_now().strftime("%Y-%m-%d_%H-%M-%S")
    log_filename = logs_dir / f"{timestamp}_docpipe.log"

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout), logging.FileHandler(log_filename, encoding="utf-8")],
    )


def parse_pages(pages_str: str) -> int | list[int]:
    """Parse a page selector: "-1" (all pages), "3", or "1,3,5".

    Examples:
        >>> parse_pages("-1")
        -1
        >>> parse_pages("1, 3,5")
        [1, 3, 5]
    """
    parts = [part.strip() for part in pages_str.split(",") if part.strip()]
    try:
        numbers = [int(part) for part in parts]
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"invalid page selector: {pages_str!r}") from e
    if not numbers:
        raise argparse.ArgumentTypeError("page selector must not be empty")
    if len(numbers) == 1 and "," not in pages_str:
        return numbers[0]
    return numbers


def main() -> int:
    """CLI entry point."""
    parser = _build_argument_parser()
    args = parser.parse_args()

    setup_logging(args.log_level)
    logger = logging.getLogger(__name__)

    return _execute_command(args, logger)


def _build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="docpipe - Convert PDFs, images and office documents to markdown with vision models",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent(
            """
            Examples:
              # Basic usage (default: OpenAI gpt-4o-mini, 10 pages in flight)
              python main.py --input document.pdf --output output/

              # Other providers
              python main.py --input document.pdf --provider GOOGLE --model gemini-2.5-flash
              python main.py --input document.pdf --provider BEDROCK

              # Consistent formatting across pages (sequential)
              python main.py --input document.pdf --maintain-format

              # Selected pages only
              python main.py --input document.pdf --pages 1,5,10

              # Structured extraction
              python main.py --input invoice.pdf --schema invoice_schema.json --save-json
              python main.py --input invoice.pdf --schema invoice_schema.json --extract-only
            """
        ),
    )

    parser.add_argument("--input", "-i", type=str, required=True, help="Input document (PDF, image, or office file)")
    parser.add_argument("--output", "-o", type=str, default=None, help="Output directory for <name>.md")
    parser.add_argument("--config", type=str, default=None, help="YAML configuration file")
    parser.add_argument("--temp-dir", type=str, default=None, help="Parent directory for per-run page images")

    # Scheduling
    parser.add_argument("--concurrency", type=int, default=None, help="Maximum pages processed at once")
    parser.add_argument(
        "--maintain-format",
        action="store_true",
        help="Process pages sequentially, passing each page's markdown to the next",
    )
    parser.add_argument(
        "--pages",
        type=parse_pages,
        default=None,
        help='Pages to convert: -1 for all, one page ("3"), or a list ("1,3,5")',
    )
    parser.add_argument(
        "--error-mode",
        type=str.upper,
        choices=["THROW", "IGNORE"],
        default=None,
        help="THROW aborts on the first failed page, IGNORE records it and continues",
    )
    parser.add_argument("--max-retries", type=int, default=None, help="Re-attempts per model call (default: 1)")

    # Model
    parser.add_argument(
        "--provider",
        type=str.upper,
        choices=["OPENAI", "AZURE", "GOOGLE", "BEDROCK"],
        default=None,
        help="Model provider (default: OPENAI)",
    )
    parser.add_argument("--model", type=str, default=None, help="Model name or deployment")
    parser.add_argument("--prompt", type=str, default=None, help="Custom OCR system prompt")

    # Image preparation
    parser.add_argument("--no-orientation", action="store_true", help="Skip orientation correction")
    parser.add_argument("--no-trim", action="store_true", help="Skip edge trimming")
    parser.add_argument("--no-cleanup", action="store_true", help="Keep the page images after the run")
    parser.add_argument(
        "--max-tesseract-workers",
        type=int,
        default=None,
        help="Cap on orientation workers (default: one per page)",
    )

    # Extraction
    parser.add_argument("--schema", type=str, default=None, help="JSON schema file for structured extraction")
    parser.add_argument("--extract-only", action="store_true", help="Extract from page images without OCR")
    parser.add_argument("--extract-per-page", action="store_true", help="Extract every schema field per page")
    parser.add_argument(
        "--direct-image-extraction",
        action="store_true",
        help="Extract from page images instead of OCR text",
    )
    parser.add_argument("--extraction-prompt", type=str, default=None, help="Custom extraction prompt")

    # Output
    parser.add_argument("--save-json", action="store_true", help="Also write <name>.json with the full result")
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level (default: INFO)",
    )

    return parser


def _execute_command(args: argparse.Namespace, logger: logging.Logger) -> int:
    try:
        # Lazy import: only load docpipe when actually processing input
        from docpipe import ConverterConfig, DocumentConverter  # noqa: PLC0415
        from docpipe.exceptions import PipelineError  # noqa: PLC0415

        config = ConverterConfig.from_cli(args)
        result = asyncio.run(DocumentConverter(config).convert())
        _report(result, args, logger)
        return 0
    except KeyboardInterrupt:
        logger.info("Process interrupted by user")
        return 1
    except PipelineError as exc:
        logger.error("%s: %s", exc.__class__.__name__, exc)
        return 1
    except Exception as exc:  # noqa: BLE001 - retain broad logging for CLI
        logger.error("Unexpected error: %s", exc, exc_info=True)
        return 1


def _report(result: ConversionResult, args: argparse.Namespace, logger: logging.Logger) -> None:
    summary = result.summary
    if summary.ocr is not None:
        logger.info(
            "OCR: %d successful, %d failed of %d page(s)",
            summary.ocr.successful,
            summary.ocr.failed,
            summary.total_pages,
        )
    if summary.extraction is not None:
        logger.info("Extraction: %d successful, %d failed", summary.extraction.successful, summary.extraction.failed)
    logger.info(
        "Tokens: %d input, %d output (%.1f s)",
        result.input_tokens,
        result.output_tokens,
        result.completion_time / 1000,
    )

    if args.output:
        logger.info("Results saved to: %s", args.output)
        if args.save_json:
            from docpipe.io import OutputSaver  # noqa: PLC0415

            OutputSaver(args.output).save_json(result)
    elif args.save_json:
        logger.warning("--save-json needs --output; skipping JSON output")


if __name__ == "__main__":
    sys.exit(main())
