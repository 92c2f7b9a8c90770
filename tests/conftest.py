"""Shared fixtures: in-memory stand-ins for Playwright and the vision model."""

from typing import List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from review_scraper.config import CaptureConfig
from review_scraper.scraper import PAGE_HEIGHT_SCRIPT, SCROLL_TO_SCRIPT

REVIEW_JSON = '{"reviews":[{"title":"Great","body":"Works well","rating":5,"reviewer":"A"}]}'


class FakePage:
    """Records scroll offsets and returns a fixed document height."""

    def __init__(self, height: float = 2500, goto_error: Optional[Exception] = None):
        self.height = height
        self.goto_error = goto_error
        self.scroll_offsets: List[int] = []
        self.screenshots_at: List[int] = []
        self.init_scripts: List[str] = []
        self.viewport = None
        self._current_offset = 0

    async def add_init_script(self, script):
        self.init_scripts.append(script)

    async def set_viewport_size(self, viewport):
        self.viewport = viewport

    async def goto(self, url, timeout=None, wait_until=None):
        if self.goto_error is not None:
            raise self.goto_error

    async def wait_for_selector(self, selector, state=None, timeout=None):
        return None

    async def wait_for_timeout(self, timeout):
        return None

    async def evaluate(self, script, arg=None):
        if script == PAGE_HEIGHT_SCRIPT:
            return self.height
        if script == SCROLL_TO_SCRIPT:
            self.scroll_offsets.append(arg)
            self._current_offset = arg
        return None

    async def screenshot(self, full_page=False):
        assert full_page is False
        self.screenshots_at.append(self._current_offset)
        return f"png@{self._current_offset}".encode()


class FakeContext:
    def __init__(self, page: FakePage):
        self.page = page
        self.close_calls = 0

    async def new_page(self):
        return self.page

    async def close(self):
        self.close_calls += 1


class FakeBrowser:
    def __init__(self, page: FakePage):
        self.context = FakeContext(page)
        self.context_options = None

    async def new_context(self, **options):
        self.context_options = options
        return self.context


def make_openai_client(content: Optional[str] = REVIEW_JSON, error: Optional[Exception] = None):
    """MagicMock shaped like `AsyncOpenAI` for `chat.completions.create`."""
    client = MagicMock()
    if error is not None:
        client.chat.completions.create = AsyncMock(side_effect=error)
    else:
        response = MagicMock()
        response.choices = [MagicMock()]
        response.choices[0].message.content = content
        client.chat.completions.create = AsyncMock(return_value=response)
    return client


@pytest.fixture
def capture_config():
    return CaptureConfig(
        viewport_width=1920,
        viewport_height=1000,
        goto_timeout_ms=1000,
        ready_timeout_ms=1000,
        page_settle_ms=0,
        frame_settle_ms=0,
        max_frames=None,
    )


@pytest.fixture
def fake_page():
    return FakePage()
