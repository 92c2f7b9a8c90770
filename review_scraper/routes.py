"""HTTP route handlers (FastAPI APIRouter).

Defines `/api/reviews`, `/api/logs` and `/health`. Extraction is
delegated to `pipeline`; browser lifecycle comes from
`playwright_manager`.
"""

import logging
from functools import lru_cache
from typing import Optional
from urllib.parse import urlparse

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import PlainTextResponse

from .config import CaptureConfig
from .errors import NavigationError, RenderTimeoutError
from .extractor import ReviewExtractor
from .logs import read_log_file
from .pipeline import run_directory, run_extraction
from .playwright_manager import get_browser, get_semaphore, open_page

logger = logging.getLogger("app.routes")

router = APIRouter()


@lru_cache()
def get_extractor() -> ReviewExtractor:
    return ReviewExtractor()


@lru_cache()
def get_capture_config() -> CaptureConfig:
    return CaptureConfig()


def is_absolute_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


@router.get("/api/reviews")
async def reviews(
    page: Optional[str] = None,
    extractor: ReviewExtractor = Depends(get_extractor),
    config: CaptureConfig = Depends(get_capture_config),
):
    if not page:
        logger.warning("Request received without page URL parameter")
        raise HTTPException(status_code=400, detail="Missing page URL parameter")
    if not is_absolute_url(page):
        logger.warning("Rejected page URL: %s", page)
        raise HTTPException(status_code=400, detail="page must be an absolute http(s) URL")

    browser = get_browser()
    if browser is None:
        raise HTTPException(status_code=503, detail="Browser not available")

    logger.info("Review extraction requested: %s", page)
    # Limit concurrent page usage
    async with get_semaphore():
        try:
            async with run_directory() as run_dir:
                async with open_page(browser, config) as tab:
                    result = await run_extraction(tab, page, extractor, run_dir, config)
        except RenderTimeoutError as e:
            logger.error("Timeout: %s", e)
            raise HTTPException(
                status_code=504,
                detail="Request timed out. The page may be slow to load or blocking automated access.",
            )
        except NavigationError as e:
            logger.error("Navigation failed: %s", e)
            raise HTTPException(
                status_code=500, detail=f"Failed to extract reviews: {e}"
            )
        except Exception as e:
            logger.exception("Extraction failed: %s", e)
            raise HTTPException(
                status_code=500, detail=f"Failed to extract reviews: {e}"
            )

    logger.info("Reviews extracted successfully: %s (%d)", page, len(result.reviews))
    return result.to_response()


@router.get("/api/logs", response_class=PlainTextResponse)
async def logs():
    try:
        return read_log_file()
    except OSError as e:
        logger.error("Error reading log file: %s", e)
        raise HTTPException(status_code=500, detail="Failed to read log file")


@router.get("/health")
async def health():
    """Lightweight health endpoint that does not start Playwright.

    This is useful for load balancers and tests that want a quick
    liveness check without exercising the browser.
    """
    return {"status": "ok"}
