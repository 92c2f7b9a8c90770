"""Playwright lifecycle and browser manager.

This module centralizes Playwright startup/shutdown and hands out one
isolated browser context per extraction run.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from playwright.async_api import Browser, Page, Playwright, async_playwright

from .config import MAX_CONCURRENT_PAGES, PLAYWRIGHT_HEADLESS, CaptureConfig

logger = logging.getLogger("app.playwright")

DEVICE_NAME = "Desktop Chrome"

_playwright: Optional[Playwright] = None
_browser: Optional[Browser] = None
# Bounded semaphore to limit concurrent pages
_semaphore = asyncio.BoundedSemaphore(MAX_CONCURRENT_PAGES)


async def _ensure_startup() -> None:
    """Start Playwright and launch a shared browser instance.

    Should be safe to call multiple times (no-op if already started).
    """
    global _playwright, _browser
    if _playwright is None:
        try:
            _playwright = await async_playwright().start()
            _browser = await _playwright.chromium.launch(
                channel="chromium", headless=PLAYWRIGHT_HEADLESS
            )
            logger.info("Playwright started and browser launched")
        except Exception as e:
            logger.exception("Failed to start Playwright: %s", e)
            # Ensure globals are reset on failure
            _playwright = None
            _browser = None
            raise


async def _shutdown() -> None:
    """Gracefully stop Playwright and close the browser.

    Shutdown may fail if the driver already exited; log and continue.
    """
    global _playwright, _browser
    # Wait briefly for in-flight extractions by acquiring all permits.
    # Closing the browser under a running capture loop produces
    # TargetClosedError noise.
    if _browser:
        try:
            total_permits = max(1, MAX_CONCURRENT_PAGES)
            per_attempt = 5.0 / total_permits
            for _ in range(total_permits):
                try:
                    await asyncio.wait_for(_semaphore.acquire(), timeout=per_attempt)
                except asyncio.TimeoutError:
                    logger.warning(
                        "Timed out waiting for active pages to finish before shutdown"
                    )
                    break

            await _browser.close()
        except Exception as e:
            logger.warning("Exception while closing browser during shutdown: %s", e)

    if _playwright:
        try:
            await _playwright.stop()
        except Exception as e:
            logger.warning("Exception while stopping Playwright during shutdown: %s", e)

    _browser = None
    _playwright = None
    logger.info("Playwright stopped")


@asynccontextmanager
async def lifespan(app):
    await _ensure_startup()
    try:
        yield
    finally:
        await _shutdown()


def get_browser() -> Optional[Browser]:
    return _browser


def get_semaphore() -> asyncio.BoundedSemaphore:
    return _semaphore


def device_options(config: CaptureConfig) -> dict:
    """Desktop Chrome descriptor with the capture viewport applied."""
    options = {}
    if _playwright is not None:
        options.update(_playwright.devices.get(DEVICE_NAME, {}))
    options["viewport"] = config.viewport
    return options


@asynccontextmanager
async def open_page(browser: Browser, config: CaptureConfig) -> AsyncIterator[Page]:
    """Yield a page in a fresh browser context.

    The context is closed exactly once when the block exits, whether it
    returned, raised or was cancelled.
    """
    context = await browser.new_context(**device_options(config))
    try:
        page = await context.new_page()
        yield page
    finally:
        # always close context to free resources
        try:
            await context.close()
            logger.info("Browser context closed")
        except Exception:
            logger.debug("Failed to close context cleanly")
