"""Tests for PageScheduler (OCR phase)."""

from __future__ import annotations

import asyncio

import pytest

from docpipe.exceptions import PageProcessingError
from docpipe.retry import RetryExecutor
from docpipe.scheduler import PageScheduler, call_hook, error_text
from docpipe.state import RunState
from docpipe.types import ErrorMode, PageStatus


def _scheduler(model, state=None, max_attempts=1, **kwargs):
    return PageScheduler(model, state or RunState(), RetryExecutor(max_attempts), **kwargs)


class BrokenPool:
    """Orientation pool whose worker always fails."""

    def scale(self, target_workers):
        pass

    async def correct(self, image):
        raise OSError("tesseract crashed")

    def terminate(self):
        pass


class TestConcurrentMode:
    """Tests for bounded-concurrency scheduling."""

    @pytest.mark.anyio
    async def test_all_pages_succeed_in_index_order(self, fake_model, make_page_files):
        state = RunState()
        pages = await _scheduler(fake_model, state).run(make_page_files(5))

        assert [p.page for p in pages] == [1, 2, 3, 4, 5]
        assert [p.content for p in pages] == [f"# Page {i}" for i in range(1, 6)]
        assert all(p.status is PageStatus.SUCCESS for p in pages)
        assert state.num_successful_ocr == 5
        assert state.num_failed_ocr == 0
        assert state.input_token_count == 50
        assert state.output_token_count == 25

    @pytest.mark.anyio
    async def test_results_follow_index_order_not_completion_order(self, fake_model_factory, make_page_files):
        model = fake_model_factory(delays={"page-1": 0.05, "page-2": 0.0, "page-3": 0.02})

        pages = await _scheduler(model, concurrency=3).run(make_page_files(3))

        assert [p.content for p in pages] == ["# Page 1", "# Page 2", "# Page 3"]

    @pytest.mark.anyio
    async def test_in_flight_never_exceeds_concurrency(self, fake_model_factory, make_page_files):
        delays = {f"page-{i}": 0.01 for i in range(1, 13)}
        model = fake_model_factory(delays=delays)

        pages = await _scheduler(model, concurrency=3).run(make_page_files(12))

        assert len(pages) == 12
        assert model.max_in_flight <= 3
        assert model.max_in_flight > 1

    @pytest.mark.anyio
    async def test_concurrent_mode_never_passes_prior_page(self, fake_model, make_page_files):
        await _scheduler(fake_model).run(make_page_files(3))

        assert all(request.prior_page == "" for request in fake_model.ocr_requests)
        assert all(request.maintain_format is False for request in fake_model.ocr_requests)

    @pytest.mark.anyio
    async def test_ignore_mode_records_error_page_and_continues(self, fake_model_factory, make_page_files):
        model = fake_model_factory(fail_pages={"page-2": -1})
        state = RunState()

        pages = await _scheduler(model, state, max_attempts=2).run(make_page_files(3))

        assert [p.status for p in pages] == [PageStatus.SUCCESS, PageStatus.ERROR, PageStatus.SUCCESS]
        failed = pages[1]
        assert failed.content == ""
        assert failed.content_length == 0
        assert "page-2" in failed.error
        assert failed.input_tokens is None
        assert model.ocr_attempts["page-2"] == 2
        assert state.num_successful_ocr == 2
        assert state.num_failed_ocr == 1
        # Failed pages contribute no tokens
        assert state.input_token_count == 20

    @pytest.mark.anyio
    async def test_retry_recovers_transient_failure(self, fake_model_factory, make_page_files):
        model = fake_model_factory(fail_pages={"page-1": 1})
        state = RunState()

        pages = await _scheduler(model, state, max_attempts=2).run(make_page_files(2))

        assert all(p.succeeded for p in pages)
        assert model.ocr_attempts["page-1"] == 2
        assert state.num_failed_ocr == 0

    @pytest.mark.anyio
    async def test_throw_mode_raises_and_skips_queued_pages(self, fake_model_factory, make_page_files):
        model = fake_model_factory(fail_pages={"page-1": -1}, delays={"page-2": 0.02})
        state = RunState()

        with pytest.raises(RuntimeError, match="page-1"):
            await _scheduler(model, state, concurrency=2, error_mode=ErrorMode.THROW).run(make_page_files(6))

        # page-2 held a slot and finished; pages 3..6 were queued and skipped the model
        assert set(model.ocr_attempts) == {"page-1", "page-2"}
        assert state.num_failed_ocr == 1

    @pytest.mark.anyio
    async def test_empty_input_returns_no_pages(self, fake_model):
        assert await _scheduler(fake_model).run([]) == []

    def test_rejects_non_positive_concurrency(self, fake_model):
        with pytest.raises(ValueError, match="concurrency"):
            _scheduler(fake_model, concurrency=0)


class TestSequentialMode:
    """Tests for format-continuity scheduling."""

    @pytest.mark.anyio
    async def test_prior_page_threads_through_pages(self, fake_model, make_page_files):
        pages = await _scheduler(fake_model, maintain_format=True).run(make_page_files(3))

        assert [p.page for p in pages] == [1, 2, 3]
        priors = [request.prior_page for request in fake_model.ocr_requests]
        assert priors == ["", "# Page 1", "# Page 2"]
        assert all(request.maintain_format for request in fake_model.ocr_requests)

    @pytest.mark.anyio
    async def test_one_page_at_a_time(self, fake_model_factory, make_page_files):
        model = fake_model_factory(delays={f"page-{i}": 0.005 for i in range(1, 5)})

        await _scheduler(model, maintain_format=True, concurrency=10).run(make_page_files(4))

        assert model.max_in_flight == 1

    @pytest.mark.anyio
    async def test_stops_at_first_error_page(self, fake_model_factory, make_page_files):
        model = fake_model_factory(fail_pages={"page-2": -1})
        state = RunState()

        pages = await _scheduler(model, state, maintain_format=True).run(make_page_files(4))

        assert [p.page for p in pages] == [1, 2]
        assert pages[1].status is PageStatus.ERROR
        assert "page-3" not in model.ocr_attempts
        assert state.num_successful_ocr == 1
        assert state.num_failed_ocr == 1

    @pytest.mark.anyio
    async def test_throw_mode_raises_immediately(self, fake_model_factory, make_page_files):
        model = fake_model_factory(fail_pages={"page-1": -1})

        with pytest.raises(RuntimeError):
            await _scheduler(model, maintain_format=True, error_mode=ErrorMode.THROW).run(make_page_files(3))

        assert list(model.ocr_attempts) == ["page-1"]


class TestHooksAndOrientation:
    """Tests for hooks and the orientation pool."""

    @pytest.mark.anyio
    async def test_hooks_receive_processing_numbers_and_live_summary(self, fake_model, make_page_files):
        pre_calls = []
        post_calls = []

        def on_pre_process(*, image_path, page_number):
            pre_calls.append((image_path.name, page_number))

        async def on_post_process(*, page, summary):
            post_calls.append((page.page, summary.ocr.successful, summary.total_pages))

        await _scheduler(
            fake_model,
            maintain_format=True,
            on_pre_process=on_pre_process,
            on_post_process=on_post_process,
        ).run(make_page_files(2))

        assert [number for _, number in pre_calls] == [1, 2]
        assert post_calls == [(1, 1, 2), (2, 2, 2)]

    @pytest.mark.anyio
    async def test_orientation_pool_sees_every_page(self, fake_model, fake_orientation_pool, make_page_files):
        await _scheduler(fake_model, orientation_pool=fake_orientation_pool).run(make_page_files(3))

        assert sorted(fake_orientation_pool.corrected) == [b"page-1", b"page-2", b"page-3"]
        assert fake_orientation_pool.terminate_calls == 0

    @pytest.mark.anyio
    async def test_corrected_image_written_back(self, fake_model, make_page_files):
        class RenamingPool:
            def scale(self, target_workers):
                pass

            async def correct(self, image):
                return image.replace(b"page", b"rotated-page")

            def terminate(self):
                pass

        paths = make_page_files(1)
        await _scheduler(fake_model, orientation_pool=RenamingPool()).run(paths)

        assert paths[0].read_bytes() == b"rotated-page-1"
        assert fake_model.ocr_requests[0].image == b"rotated-page-1"

    @pytest.mark.anyio
    async def test_orientation_failure_recorded_as_error_page(self, fake_model, make_page_files):
        state = RunState()

        pages = await _scheduler(fake_model, state, orientation_pool=BrokenPool()).run(make_page_files(2))

        assert [p.status for p in pages] == [PageStatus.ERROR, PageStatus.ERROR]
        assert all("tesseract crashed" in p.error for p in pages)
        assert state.num_failed_ocr == 2
        assert state.num_successful_ocr == 0
        assert fake_model.ocr_requests == []

    @pytest.mark.anyio
    async def test_orientation_failure_stops_sequential_run(self, fake_model, make_page_files):
        state = RunState()

        pages = await _scheduler(
            fake_model, state, maintain_format=True, orientation_pool=BrokenPool()
        ).run(make_page_files(3))

        assert [(p.page, p.status) for p in pages] == [(1, PageStatus.ERROR)]
        assert state.num_failed_ocr == 1

    @pytest.mark.anyio
    async def test_orientation_failure_raises_in_throw_mode(self, fake_model, make_page_files):
        state = RunState()

        with pytest.raises(OSError, match="tesseract crashed"):
            await _scheduler(
                fake_model, state, orientation_pool=BrokenPool(), error_mode=ErrorMode.THROW
            ).run(make_page_files(2))

        assert state.num_failed_ocr >= 1

    @pytest.mark.anyio
    async def test_pre_hook_failure_fails_only_that_page(self, fake_model, make_page_files):
        state = RunState()

        def on_pre_process(*, image_path, page_number):
            if page_number == 2:
                raise RuntimeError("hook boom")

        pages = await _scheduler(fake_model, state, on_pre_process=on_pre_process).run(make_page_files(3))

        assert len(pages) == 3
        assert [p.status for p in pages] == [PageStatus.SUCCESS, PageStatus.ERROR, PageStatus.SUCCESS]
        assert pages[1].error == "hook boom"
        assert state.num_failed_ocr == 1
        assert state.num_successful_ocr == 2

    @pytest.mark.anyio
    async def test_unreadable_page_image(self, fake_model, make_page_files):
        paths = make_page_files(2)
        paths[1].unlink()
        state = RunState()

        pages = await _scheduler(fake_model, state).run(paths)

        assert pages[0].status is PageStatus.SUCCESS
        assert pages[1].status is PageStatus.ERROR
        assert "Cannot read image for page 2" in pages[1].error
        assert state.num_failed_ocr == 1

        with pytest.raises(PageProcessingError, match="page 2"):
            await _scheduler(fake_model, error_mode=ErrorMode.THROW).run(paths)


class TestHelpers:
    """Tests for scheduler helper functions."""

    @pytest.mark.anyio
    async def test_call_hook_awaits_coroutines(self):
        seen = []

        async def hook(**kwargs):
            await asyncio.sleep(0)
            seen.append(kwargs)

        await call_hook(hook, a=1)
        await call_hook(None, a=2)

        assert seen == [{"a": 1}]

    def test_error_text_falls_back_to_class_name(self):
        assert error_text(RuntimeError("bad page")) == "bad page"
        assert error_text(TimeoutError()) == "TimeoutError"
