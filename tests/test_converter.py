"""End-to-end tests for DocumentConverter with a fake model and fake page images."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

import docpipe
from docpipe import ConverterConfig, DocumentConverter, PageStatus
from docpipe.constants import PAGE_SEPARATOR
from docpipe.exceptions import InvalidConfigError
from docpipe.types import PhaseCounts

pytestmark = pytest.mark.e2e


@pytest.fixture
def prepared_pages(make_page_files):
    """Patch input preparation to return ``n`` fake page files."""

    def _patch(count: int):
        paths = make_page_files(count)
        return patch("docpipe.prepare_page_images", new=AsyncMock(return_value=paths))

    return _patch


def _config(tmp_path, **kwargs) -> ConverterConfig:
    kwargs.setdefault("file_path", tmp_path / "report.pdf")
    kwargs.setdefault("temp_dir", tmp_path / "staging")
    kwargs.setdefault("correct_orientation", False)
    kwargs.setdefault("trim_edges", False)
    return ConverterConfig(**kwargs)


def _invoice_extractor(request):
    if "line_items" in request.schema["properties"]:
        source = request.input if isinstance(request.input, str) else request.input[0].decode()
        return {"line_items": [f"item from {source}"]}
    return {"invoice_number": "INV-1", "total": 42}


class TestOcrOnly:
    """Conversions without a schema."""

    @pytest.mark.anyio
    async def test_concurrent_ignore_records_failed_page(self, tmp_path, prepared_pages, fake_model_factory):
        model = fake_model_factory(fail_pages={"page-2": -1})

        with prepared_pages(3):
            result = await DocumentConverter(_config(tmp_path, concurrency=2), model=model).convert()

        assert [page.page for page in result.pages] == [1, 2, 3]
        assert [page.status for page in result.pages] == [PageStatus.SUCCESS, PageStatus.ERROR, PageStatus.SUCCESS]
        assert result.pages[1].error == "model failed on page-2"
        assert result.pages[1].content == ""
        assert model.ocr_attempts["page-2"] == 2
        assert result.summary.total_pages == 3
        assert result.summary.ocr == PhaseCounts(2, 1)
        assert result.summary.extraction is None
        assert (result.input_tokens, result.output_tokens) == (20, 10)
        assert result.extracted is None
        assert result.file_name == "report"
        assert result.completion_time >= 0

    @pytest.mark.anyio
    async def test_throw_mode_raises_first_error(self, tmp_path, prepared_pages, fake_model_factory):
        model = fake_model_factory(fail_pages={"page-1": -1})

        with prepared_pages(3), pytest.raises(RuntimeError, match="page-1"):
            await DocumentConverter(_config(tmp_path, error_mode="THROW", concurrency=1), model=model).convert()

        # Queued pages never reach the model once a page has failed
        assert "page-3" not in model.ocr_attempts

    @pytest.mark.anyio
    async def test_maintain_format_threads_prior_page(self, tmp_path, prepared_pages, fake_model_factory):
        model = fake_model_factory(delays={"page-1": 0.02})

        with prepared_pages(3):
            result = await DocumentConverter(_config(tmp_path, maintain_format=True), model=model).convert()

        assert [request.prior_page for request in model.ocr_requests] == ["", "# Page 1", "# Page 2"]
        assert all(request.maintain_format for request in model.ocr_requests)
        assert model.max_in_flight == 1
        assert result.summary.ocr == PhaseCounts(3, 0)

    @pytest.mark.anyio
    async def test_concurrency_bound(self, tmp_path, prepared_pages, fake_model_factory):
        model = fake_model_factory(delays={f"page-{i}": 0.01 for i in range(1, 7)})

        with prepared_pages(6):
            await DocumentConverter(_config(tmp_path, concurrency=2), model=model).convert()

        assert model.max_in_flight == 2

    @pytest.mark.anyio
    async def test_markdown_written_to_output_dir(self, tmp_path, prepared_pages, fake_model, output_dir):
        config = _config(tmp_path, file_path=tmp_path / "My Report.pdf", output_dir=output_dir)

        with prepared_pages(2):
            result = await DocumentConverter(config, model=fake_model).convert()

        assert result.file_name == "my_report"
        assert (output_dir / "my_report.md").read_text(encoding="utf-8") == "# Page 1\n\n# Page 2"

    @pytest.mark.anyio
    async def test_staging_directory_removed(self, tmp_path, prepared_pages, fake_model):
        with prepared_pages(1):
            await DocumentConverter(_config(tmp_path), model=fake_model).convert()

        assert list((tmp_path / "staging").iterdir()) == []

    @pytest.mark.anyio
    async def test_hooks_receive_pages_and_summaries(self, tmp_path, prepared_pages, fake_model):
        pre_pages: list[int] = []
        summaries = []

        async def on_post_process(page, summary):
            summaries.append((page.page, summary))

        config = _config(
            tmp_path,
            concurrency=1,
            on_pre_process=lambda image_path, page_number: pre_pages.append(page_number),
            on_post_process=on_post_process,
        )

        with prepared_pages(2):
            await DocumentConverter(config, model=fake_model).convert()

        assert pre_pages == [1, 2]
        assert [page for page, _ in summaries] == [1, 2]
        assert summaries[-1][1].ocr == PhaseCounts(2, 0)
        assert all(summary.total_pages == 2 for _, summary in summaries)


class TestOrientationPool:
    """The orientation pool lifecycle inside a conversion."""

    @pytest.mark.anyio
    async def test_pool_sized_and_terminated_once(self, tmp_path, prepared_pages, fake_model, fake_orientation_pool):
        calls = []

        def factory(num_pages, max_workers):
            calls.append((num_pages, max_workers))
            return fake_orientation_pool

        config = _config(tmp_path, correct_orientation=True, max_tesseract_workers=2)
        with prepared_pages(3):
            await DocumentConverter(config, model=fake_model, orientation_pool_factory=factory).convert()

        assert calls == [(3, 2)]
        assert sorted(fake_orientation_pool.corrected) == [b"page-1", b"page-2", b"page-3"]
        assert fake_orientation_pool.terminate_calls == 1

    @pytest.mark.anyio
    async def test_pool_terminated_on_failure(self, tmp_path, prepared_pages, fake_model_factory, fake_orientation_pool):
        model = fake_model_factory(fail_pages={"page-2": -1})
        config = _config(tmp_path, correct_orientation=True, error_mode="THROW")

        with prepared_pages(3), pytest.raises(RuntimeError):
            await DocumentConverter(
                config, model=model, orientation_pool_factory=lambda n, w: fake_orientation_pool
            ).convert()

        assert fake_orientation_pool.terminate_calls == 1


class TestExtraction:
    """Conversions with a schema."""

    @pytest.mark.anyio
    async def test_per_page_and_full_document_with_page_selector(
        self, tmp_path, prepared_pages, fake_model_factory, sample_schema
    ):
        model = fake_model_factory(extract_fn=_invoice_extractor)
        config = _config(tmp_path, schema=sample_schema, pages_to_convert_as_images=[5, 2, 4])

        with prepared_pages(3):
            result = await DocumentConverter(config, model=model).convert()

        assert [page.page for page in result.pages] == [2, 4, 5]
        assert result.extracted == {
            "line_items": [
                {"page": 2, "value": ["item from # Page 1"]},
                {"page": 4, "value": ["item from # Page 2"]},
                {"page": 5, "value": ["item from # Page 3"]},
            ],
            "invoice_number": "INV-1",
            "total": 42,
        }
        full_doc_request = next(r for r in model.extract_requests if "total" in r.schema["properties"])
        assert full_doc_request.input == PAGE_SEPARATOR.join(["# Page 1", "# Page 2", "# Page 3"])
        assert "perPage" not in str(full_doc_request.schema)
        assert result.summary.extraction == PhaseCounts(4, 0)
        assert (result.input_tokens, result.output_tokens) == (3 * 10 + 4 * 7, 3 * 5 + 4 * 3)

    @pytest.mark.anyio
    async def test_failed_pages_excluded_from_extraction(
        self, tmp_path, prepared_pages, fake_model_factory, sample_schema
    ):
        model = fake_model_factory(fail_pages={"page-2": -1}, extract_fn=_invoice_extractor)

        with prepared_pages(3):
            result = await DocumentConverter(_config(tmp_path, schema=sample_schema), model=model).convert()

        assert [entry["page"] for entry in result.extracted["line_items"]] == [1, 3]
        assert result.summary.ocr == PhaseCounts(2, 1)
        assert result.summary.extraction == PhaseCounts(3, 0)

    @pytest.mark.anyio
    async def test_extract_per_page_override(self, tmp_path, prepared_pages, fake_model_factory, sample_schema):
        model = fake_model_factory(extract_fn=lambda request: {"total": 1})

        with prepared_pages(2):
            result = await DocumentConverter(
                _config(tmp_path, schema=sample_schema, extract_per_page=True), model=model
            ).convert()

        assert result.extracted == {"total": [{"page": 1, "value": 1}, {"page": 2, "value": 1}]}
        assert len(model.extract_requests) == 2

    @pytest.mark.anyio
    async def test_extract_only_uses_images(
        self, tmp_path, prepared_pages, fake_model_factory, sample_schema, fake_orientation_pool
    ):
        model = fake_model_factory(extract_fn=_invoice_extractor)
        config = _config(
            tmp_path,
            schema=sample_schema,
            extract_only=True,
            correct_orientation=True,
            pages_to_convert_as_images=[3, 7],
            output_dir=tmp_path / "out",
        )

        with prepared_pages(2):
            result = await DocumentConverter(
                config, model=model, orientation_pool_factory=lambda n, w: fake_orientation_pool
            ).convert()

        assert model.ocr_requests == []
        assert result.pages == []
        assert result.summary.ocr is None
        assert result.summary.extraction == PhaseCounts(3, 0)
        assert [entry["page"] for entry in result.extracted["line_items"]] == [3, 7]
        assert all(request.is_image_input for request in model.extract_requests)
        assert len(fake_orientation_pool.corrected) == 2
        assert fake_orientation_pool.terminate_calls == 1
        assert not (tmp_path / "out").exists()

    @pytest.mark.anyio
    async def test_extraction_error_propagates(self, tmp_path, prepared_pages, fake_model_factory, sample_schema):
        model = fake_model_factory(extract_failures=-1)

        with prepared_pages(2), pytest.raises(RuntimeError, match="extraction failed"):
            await DocumentConverter(_config(tmp_path, schema=sample_schema), model=model).convert()

    @pytest.mark.anyio
    async def test_separate_extraction_model(self, tmp_path, prepared_pages, fake_model_factory, sample_schema):
        ocr_model = fake_model_factory()
        extraction_model = fake_model_factory(extract_fn=_invoice_extractor)

        with prepared_pages(1):
            await DocumentConverter(
                _config(tmp_path, schema=sample_schema), model=ocr_model, extraction_model=extraction_model
            ).convert()

        assert ocr_model.extract_requests == []
        assert len(extraction_model.extract_requests) == 2


class TestModelOwnership:
    """Models built by the converter are closed; supplied models are not."""

    @pytest.mark.anyio
    async def test_owned_model_closed(self, tmp_path, prepared_pages, fake_model, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")

        with prepared_pages(1), patch("docpipe.create_model", return_value=fake_model) as create:
            await DocumentConverter(_config(tmp_path, model="gpt-4o")).convert()

        assert create.call_args.args[:2] == ("OPENAI", "gpt-4o")
        assert fake_model.closed

    @pytest.mark.anyio
    async def test_owned_model_closed_on_failure(self, tmp_path, fake_model, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")

        with (
            patch("docpipe.prepare_page_images", new=AsyncMock(side_effect=RuntimeError("poppler crashed"))),
            patch("docpipe.create_model", return_value=fake_model),
            pytest.raises(RuntimeError),
        ):
            await DocumentConverter(_config(tmp_path)).convert()

        assert fake_model.closed

    @pytest.mark.anyio
    async def test_supplied_model_not_closed(self, tmp_path, prepared_pages, fake_model):
        with prepared_pages(1):
            await DocumentConverter(_config(tmp_path), model=fake_model).convert()

        assert not fake_model.closed

    @pytest.mark.anyio
    async def test_invalid_config_fails_before_processing(self, tmp_path, fake_model):
        prepare = AsyncMock()

        with patch("docpipe.prepare_page_images", new=prepare), pytest.raises(InvalidConfigError):
            await DocumentConverter(_config(tmp_path, extract_only=True), model=fake_model).convert()

        prepare.assert_not_awaited()


@pytest.mark.anyio
async def test_module_level_convert(tmp_path, prepared_pages, fake_model):
    with prepared_pages(2):
        result = await docpipe.convert(
            model=fake_model,
            file_path=tmp_path / "doc.pdf",
            temp_dir=tmp_path / "staging",
            correct_orientation=False,
        )

    assert [page.content for page in result.pages] == ["# Page 1", "# Page 2"]
