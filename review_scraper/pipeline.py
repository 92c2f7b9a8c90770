"""Runs one extraction: render, capture, extract, reconcile.

Renderer failures abort the run. A failed vision-model call is recorded
in the result and dumped next to the frames instead of failing the
request.
"""

import asyncio
import json
import logging
import shutil
import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

from playwright.async_api import Page

from .config import KEEP_SCREENSHOTS, SCREENSHOTS_DIR, CaptureConfig
from .errors import ExtractionServiceError
from .extractor import ReviewExtractor
from .models import ExtractionResult
from .reconciler import reconcile
from .scraper import capture_frames, render_page

logger = logging.getLogger("app.pipeline")

ERROR_DUMP_NAME = "extraction_error.json"


def _reset_dir(path: Path) -> Path:
    if path.exists():
        shutil.rmtree(path)
    path.mkdir(parents=True)
    return path


async def prepare_run_dir(path: Path) -> Path:
    """Create `path`, discarding anything left over from an earlier run."""
    return await asyncio.to_thread(_reset_dir, path)


@asynccontextmanager
async def run_directory(
    root: Path = SCREENSHOTS_DIR,
    run_id: Optional[str] = None,
    keep: bool = KEEP_SCREENSHOTS,
) -> AsyncIterator[Path]:
    """Yield a working directory private to one extraction run.

    Each request gets its own directory so concurrent runs never clear
    each other's frames. It is removed afterwards unless `keep` is set
    or an error dump was written into it.
    """
    path = await prepare_run_dir(Path(root) / (run_id or uuid.uuid4().hex))
    try:
        yield path
    finally:
        if not keep and not (path / ERROR_DUMP_NAME).exists():
            await asyncio.to_thread(shutil.rmtree, path, ignore_errors=True)


async def dump_error(run_dir: Path, error: ExtractionServiceError) -> Path:
    path = run_dir / ERROR_DUMP_NAME
    text = json.dumps(error.to_dict(), indent=2, default=str)
    await asyncio.to_thread(path.write_text, text, encoding="utf-8")
    logger.info("Error details saved: %s", path)
    return path


async def run_extraction(
    page: Page,
    url: str,
    extractor: ReviewExtractor,
    run_dir: Path,
    config: Optional[CaptureConfig] = None,
) -> ExtractionResult:
    config = config or CaptureConfig()
    logger.info("Starting review extraction: %s", url)

    height = await render_page(page, url, config)
    frames = await capture_frames(page, height, run_dir, config)
    result = ExtractionResult()
    if not frames:
        logger.warning("Page has no visible height, skipping extraction: %s", url)
        return result

    try:
        raw = await extractor.extract([frame.image for frame in frames])
    except ExtractionServiceError as e:
        logger.error("Error analyzing screenshots: %s", e)
        await dump_error(run_dir, e)
        result.error_details = e.to_dict()
        return result

    result.reviews = reconcile(raw)
    return result
