"""Pytest configuration and shared fixtures for docpipe tests.

This module provides:
- FakeCompletionModel: scriptable in-memory CompletionModel
- Page image fixtures (fake page files and real PNG images)
- Test configuration and path setup
"""

from __future__ import annotations

import asyncio
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
from PIL import Image

# Register anyio pytest plugin for async test support
# This enables @pytest.mark.anyio decorator and anyio_backends config option
pytest_plugins = ("anyio",)

# Ensure project root is importable when running tests via uv or python -m pytest
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from docpipe.types import (  # noqa: E402
    CompletionRequest,
    CompletionResponse,
    ExtractionRequest,
    ExtractionResponse,
)


# ==================== Fake Model ====================


class FakeCompletionModel:
    """In-memory CompletionModel driven by the page image bytes.

    Page files hold ``b"page-<n>"``; OCR answers ``"# Page <n>"`` with
    ``input_tokens=10`` and ``output_tokens=5`` unless scripted otherwise.

    Attributes:
        fail_pages: image label -> number of failing attempts (-1 = always)
        delays: image label -> seconds to sleep inside ocr()
        extract_fn: builds the extracted dict from an ExtractionRequest
        extract_failures: number of extract() calls that fail before succeeding
            (-1 = always)
    """

    provider = "FAKE"
    model = "fake-model"

    def __init__(
        self,
        fail_pages: dict[str, int] | None = None,
        delays: dict[str, float] | None = None,
        extract_fn: Callable[[ExtractionRequest], dict[str, Any]] | None = None,
        extract_failures: int = 0,
        ocr_tokens: tuple[int, int] = (10, 5),
        extract_tokens: tuple[int, int] = (7, 3),
    ):
        self.fail_pages = dict(fail_pages or {})
        self.delays = delays or {}
        self.extract_fn = extract_fn or (lambda request: {})
        self.extract_failures = extract_failures
        self.ocr_tokens = ocr_tokens
        self.extract_tokens = extract_tokens
        self.ocr_requests: list[CompletionRequest] = []
        self.ocr_attempts: dict[str, int] = {}
        self.extract_requests: list[ExtractionRequest] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    async def ocr(self, request: CompletionRequest) -> CompletionResponse:
        label = request.image.decode()
        self.ocr_requests.append(request)
        self.ocr_attempts[label] = self.ocr_attempts.get(label, 0) + 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(label, 0))
            remaining = self.fail_pages.get(label, 0)
            if remaining:
                if remaining > 0:
                    self.fail_pages[label] = remaining - 1
                raise RuntimeError(f"model failed on {label}")
            number = label.split("-")[-1]
            return CompletionResponse(
                content=f"# Page {number}",
                input_tokens=self.ocr_tokens[0],
                output_tokens=self.ocr_tokens[1],
            )
        finally:
            self.in_flight -= 1

    async def extract(self, request: ExtractionRequest) -> ExtractionResponse:
        self.extract_requests.append(request)
        await asyncio.sleep(0)
        if self.extract_failures:
            if self.extract_failures > 0:
                self.extract_failures -= 1
            raise RuntimeError("extraction failed")
        return ExtractionResponse(
            extracted=self.extract_fn(request),
            input_tokens=self.extract_tokens[0],
            output_tokens=self.extract_tokens[1],
        )

    async def close(self) -> None:
        self.closed = True


class FakeOrientationPool:
    """Orientation pool that records calls and returns images unchanged."""

    def __init__(self, workers: int = 1):
        self.workers = workers
        self.corrected: list[bytes] = []
        self.terminate_calls = 0

    def scale(self, target_workers: int) -> None:
        self.workers = target_workers

    async def correct(self, image: bytes) -> bytes:
        self.corrected.append(image)
        return image

    def terminate(self) -> None:
        self.terminate_calls += 1


@pytest.fixture
def fake_model_factory() -> type[FakeCompletionModel]:
    """Return the FakeCompletionModel class for scripted construction."""
    return FakeCompletionModel


@pytest.fixture
def fake_model() -> FakeCompletionModel:
    """Create a FakeCompletionModel that always succeeds."""
    return FakeCompletionModel()


@pytest.fixture
def fake_orientation_pool() -> FakeOrientationPool:
    """Create a FakeOrientationPool."""
    return FakeOrientationPool()


# ==================== Page Image Fixtures ====================


@pytest.fixture
def make_page_files(tmp_path: Path) -> Callable[[int], list[Path]]:
    """Factory writing ``n`` fake page files holding ``b"page-<i>"``.

    Returns:
        Function returning the page paths in page order
    """

    def _make(count: int) -> list[Path]:
        pages_dir = tmp_path / "pages"
        pages_dir.mkdir(exist_ok=True)
        paths = []
        for i in range(1, count + 1):
            path = pages_dir / f"doc_page_{i:03d}.png"
            path.write_bytes(f"page-{i}".encode())
            paths.append(path)
        return paths

    return _make


@pytest.fixture
def sample_png(tmp_path: Path) -> Path:
    """Create a real 200x100 white PNG with a black rectangle in the middle.

    Returns:
        Path to the PNG file
    """
    image = Image.new("RGB", (200, 100), "white")
    image.paste((0, 0, 0), (50, 25, 150, 75))
    path = tmp_path / "sample.png"
    image.save(path, format="PNG")
    return path


@pytest.fixture
def sample_schema() -> dict[str, Any]:
    """Invoice-like schema with one per-page field and two document fields."""
    return {
        "type": "object",
        "title": "Invoice",
        "properties": {
            "invoice_number": {"type": "string"},
            "line_items": {"type": "array", "items": {"type": "string"}, "perPage": True},
            "total": {"type": "number"},
        },
        "required": ["invoice_number", "line_items"],
    }


# ==================== Directory Fixtures ====================


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    """Create an output directory for testing.

    Returns:
        Path to output directory
    """
    output = tmp_path / "output"
    output.mkdir()
    return output


# ==================== Async Configuration ====================


@pytest.fixture
def anyio_backend() -> str:
    """Force anyio to use asyncio backend only (trio not installed)."""
    return "asyncio"


# ==================== Helper Functions ====================


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line("markers", "integration: Integration tests (require API keys)")
    config.addinivalue_line("markers", "e2e: End-to-end tests (full conversion with fakes)")
    config.addinivalue_line("markers", "slow: Slow tests (skip with -m 'not slow')")
