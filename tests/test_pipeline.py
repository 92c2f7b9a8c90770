"""End-to-end pipeline runs against fake browser and model."""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from review_scraper.config import CaptureConfig
from review_scraper.errors import ExtractionServiceError, RenderTimeoutError
from review_scraper.extractor import ReviewExtractor
from review_scraper.pipeline import (
    ERROR_DUMP_NAME,
    prepare_run_dir,
    run_directory,
    run_extraction,
)
from review_scraper.playwright_manager import device_options, open_page

from .conftest import REVIEW_JSON, FakeBrowser, FakePage, make_openai_client


@pytest.mark.asyncio
async def test_full_run(fake_page, capture_config, tmp_path):
    client = make_openai_client()
    extractor = ReviewExtractor(client=client)

    result = await run_extraction(
        fake_page, "https://shop.example/p/1", extractor, tmp_path, capture_config
    )

    assert fake_page.scroll_offsets == [0, 1000, 2000]
    assert len(list(tmp_path.glob("frame_*.png"))) == 3
    messages = client.chat.completions.create.await_args.kwargs["messages"]
    assert len(messages[0]["content"]) == 1 + 3
    assert result.to_response() == {
        "reviews_count": 1,
        "reviews": [{"title": "Great", "body": "Works well", "rating": 5, "reviewer": "A"}],
        "errorDetails": None,
    }


@pytest.mark.asyncio
async def test_prose_wrapped_reply(fake_page, capture_config, tmp_path):
    wrapped = f"Here you go:\n```json\n{REVIEW_JSON}\n```"
    extractor = ReviewExtractor(client=make_openai_client(content=wrapped))

    result = await run_extraction(fake_page, "https://shop.example", extractor, tmp_path, capture_config)

    assert result.to_response()["reviews"] == [
        {"title": "Great", "body": "Works well", "rating": 5, "reviewer": "A"}
    ]


@pytest.mark.asyncio
async def test_extraction_failure_degrades(fake_page, capture_config, tmp_path):
    extractor = ReviewExtractor(client=make_openai_client())
    extractor.extract = AsyncMock(
        side_effect=ExtractionServiceError("timed out", payload={"error": "Timeout"})
    )

    result = await run_extraction(fake_page, "https://shop.example", extractor, tmp_path, capture_config)

    assert result.reviews == []
    assert result.error_details["type"] == "ExtractionServiceError"
    dump = json.loads((tmp_path / ERROR_DUMP_NAME).read_text())
    assert dump["payload"] == {"error": "Timeout"}


@pytest.mark.asyncio
async def test_zero_height_page_skips_model(capture_config, tmp_path):
    client = make_openai_client()
    page = FakePage(height=0)

    result = await run_extraction(page, "https://blank.example", ReviewExtractor(client=client), tmp_path, capture_config)

    assert result.to_response()["reviews_count"] == 0
    client.chat.completions.create.assert_not_awaited()


@pytest.mark.asyncio
async def test_render_timeout_releases_context_once(capture_config, tmp_path):
    page = FakePage(goto_error=PlaywrightTimeoutError("Timeout 1000ms exceeded"))
    browser = FakeBrowser(page)
    client = make_openai_client()

    with pytest.raises(RenderTimeoutError):
        async with open_page(browser, capture_config) as tab:
            await run_extraction(tab, "https://slow.example", ReviewExtractor(client=client), tmp_path, capture_config)

    assert browser.context.close_calls == 1
    assert browser.context_options["viewport"] == {"width": 1920, "height": 1000}
    client.chat.completions.create.assert_not_awaited()


@pytest.mark.asyncio
async def test_prepare_run_dir_clears_leftovers(tmp_path):
    run_dir = tmp_path / "run"
    run_dir.mkdir()
    (run_dir / "frame_0007.png").write_bytes(b"stale")

    await prepare_run_dir(run_dir)

    assert run_dir.is_dir()
    assert list(run_dir.iterdir()) == []


@pytest.mark.asyncio
async def test_run_directories_are_isolated(tmp_path):
    async with run_directory(tmp_path, keep=True) as first, run_directory(tmp_path, keep=True) as second:
        assert first != second
        (first / "frame_0000.png").write_bytes(b"a")
        assert list(second.iterdir()) == []
    assert first.exists() and second.exists()


@pytest.mark.asyncio
async def test_run_directory_removed_after_clean_run(tmp_path):
    async with run_directory(tmp_path, keep=False) as run_dir:
        (run_dir / "frame_0000.png").write_bytes(b"a")
    assert not run_dir.exists()


@pytest.mark.asyncio
async def test_run_directory_kept_when_error_dumped(tmp_path):
    async with run_directory(tmp_path, keep=False) as run_dir:
        (run_dir / ERROR_DUMP_NAME).write_text("{}")
    assert (run_dir / ERROR_DUMP_NAME).exists()


@pytest.mark.asyncio
async def test_file_io_runs_off_the_event_loop(fake_page, capture_config, tmp_path, monkeypatch):
    offloaded = []
    real_to_thread = asyncio.to_thread

    async def recording_to_thread(func, *args, **kwargs):
        offloaded.append(getattr(func, "__name__", repr(func)))
        return await real_to_thread(func, *args, **kwargs)

    monkeypatch.setattr(asyncio, "to_thread", recording_to_thread)
    extractor = ReviewExtractor(client=make_openai_client())
    extractor.extract = AsyncMock(side_effect=ExtractionServiceError("down"))

    async with run_directory(tmp_path, keep=False) as run_dir:
        await run_extraction(fake_page, "https://shop.example", extractor, run_dir, capture_config)

    assert "_reset_dir" in offloaded
    assert offloaded.count("write_bytes") == 3
    assert "write_text" in offloaded


def test_device_options_without_started_playwright(monkeypatch):
    monkeypatch.setattr("review_scraper.playwright_manager._playwright", None)
    config = CaptureConfig(viewport_width=1280, viewport_height=720)
    assert device_options(config) == {"viewport": {"width": 1280, "height": 720}}
