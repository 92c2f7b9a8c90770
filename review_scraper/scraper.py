"""Page rendering and screenshot capture.

`render_page` loads the target URL and returns the full document height;
`capture_frames` then walks the page one viewport at a time and saves a
screenshot per step. Both work on a Playwright `Page` owned by the caller.
"""

import asyncio
import logging
import math
from pathlib import Path
from typing import List, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from .config import CaptureConfig
from .errors import NavigationError, RenderTimeoutError
from .models import CapturedFrame

logger = logging.getLogger("app.scraper")

# Sites probe navigator.webdriver to serve blocked or alternate content
HIDE_WEBDRIVER_SCRIPT = (
    "Object.defineProperty(navigator, 'webdriver', { get: () => false });"
)

SCROLL_TO_SCRIPT = "(y) => window.scrollTo(0, y)"
SCROLL_TO_BOTTOM_SCRIPT = "() => window.scrollTo(0, document.body.scrollHeight)"

# No single property is reliable across layouts, so take the largest
PAGE_HEIGHT_SCRIPT = """() => {
    const body = document.body;
    const root = document.documentElement;
    const scroller = document.scrollingElement || root;
    return Math.max(
        body ? body.scrollHeight : 0,
        root.scrollHeight,
        body ? body.offsetHeight : 0,
        root.offsetHeight,
        body ? body.clientHeight : 0,
        root.clientHeight,
        scroller.scrollHeight,
        scroller.offsetHeight,
        scroller.clientHeight
    );
}"""


def frame_filename(index: int) -> str:
    # Zero padded so directory listings sort in capture order
    return f"frame_{index:04d}.png"


def frame_count(total_height: float, viewport_height: int, max_frames: Optional[int] = None) -> int:
    """Number of viewport-sized frames needed to cover `total_height`."""
    if total_height <= 0:
        return 0
    count = math.ceil(total_height / viewport_height)
    if max_frames is not None and count > max_frames:
        logger.warning(
            "Page needs %d frames, capping at %d", count, max_frames
        )
        count = max_frames
    return count


async def render_page(page: Page, url: str, config: CaptureConfig) -> int:
    """Load `url`, trigger lazy content and return the document height.

    Raises `RenderTimeoutError` when the page does not load or attach its
    body in time, and `NavigationError` for any other load failure.
    """
    try:
        await page.add_init_script(HIDE_WEBDRIVER_SCRIPT)
        await page.set_viewport_size(config.viewport)
        await page.goto(
            url, timeout=config.goto_timeout_ms, wait_until="domcontentloaded"
        )
        logger.info("Page loaded successfully: %s", url)

        await page.wait_for_selector(
            "body", state="attached", timeout=config.ready_timeout_ms
        )
    except PlaywrightTimeoutError as e:
        raise RenderTimeoutError(f"Timed out loading {url}: {e}") from e
    except PlaywrightError as e:
        raise NavigationError(f"Failed to load {url}: {e}") from e

    # Review sections are often lazy-loaded on scroll
    await page.evaluate(SCROLL_TO_BOTTOM_SCRIPT)
    await page.wait_for_timeout(config.page_settle_ms)

    height = await page.evaluate(PAGE_HEIGHT_SCRIPT)
    height = int(math.ceil(height or 0))
    logger.info("Measured page height: %d", height)
    return height


async def capture_frames(
    page: Page,
    total_height: int,
    output_dir: Path,
    config: CaptureConfig,
) -> List[CapturedFrame]:
    """Scroll through the page and screenshot each viewport in order.

    Capture is strictly sequential: there is a single viewport per page
    and frame `i` must be taken at `i * viewport_height`.
    """
    count = frame_count(total_height, config.viewport_height, config.max_frames)
    logger.info("Number of screenshots to capture: %d", count)

    await asyncio.to_thread(output_dir.mkdir, parents=True, exist_ok=True)
    frames: List[CapturedFrame] = []
    for index in range(count):
        offset = index * config.viewport_height
        await page.evaluate(SCROLL_TO_SCRIPT, offset)
        await page.wait_for_timeout(config.frame_settle_ms)

        image = await page.screenshot(full_page=False)
        path = output_dir / frame_filename(index)
        await asyncio.to_thread(path.write_bytes, image)
        logger.info("Screenshot saved: %s", path)

        frames.append(CapturedFrame(index=index, offset=offset, image=image, path=path))

    return frames
