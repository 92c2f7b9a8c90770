"""Runtime configuration.

Values are read from environment variables once at import time. The
capture settings are grouped in `CaptureConfig` so callers (and tests)
can inject their own viewport, timeouts and frame limits.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


# Browser
MAX_CONCURRENT_PAGES = _env_int("MAX_CONCURRENT_PAGES", 4)
# Headless mode can be toggled via env var (0 means headed)
PLAYWRIGHT_HEADLESS = os.getenv("PLAYWRIGHT_HEADLESS", "1") != "0"

# Capture
VIEWPORT_WIDTH = _env_int("VIEWPORT_WIDTH", 1920)
VIEWPORT_HEIGHT = _env_int("VIEWPORT_HEIGHT", 1000)
GOTO_TIMEOUT_MS = _env_int("PAGE_GOTO_TIMEOUT_MS", 60000)
READY_TIMEOUT_MS = _env_int("PAGE_READY_TIMEOUT_MS", 10000)
PAGE_SETTLE_MS = _env_int("PAGE_SETTLE_MS", 5000)
FRAME_SETTLE_MS = _env_int("FRAME_SETTLE_MS", 2000)
# 0 disables the cap
MAX_FRAMES = _env_int("MAX_FRAMES", 0)

SCREENSHOTS_DIR = Path(os.getenv("SCREENSHOTS_DIR", "screenshots"))
KEEP_SCREENSHOTS = os.getenv("KEEP_SCREENSHOTS", "0") != "0"

# Vision model
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o")
OPENAI_TIMEOUT_S = float(os.getenv("OPENAI_TIMEOUT_S", "120"))
OPENAI_MAX_TOKENS = _env_int("OPENAI_MAX_TOKENS", 4096)

# Logging
LOG_FILE = Path(os.getenv("LOG_FILE", "server.log"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


@dataclass(frozen=True)
class CaptureConfig:
    viewport_width: int = VIEWPORT_WIDTH
    viewport_height: int = VIEWPORT_HEIGHT
    goto_timeout_ms: int = GOTO_TIMEOUT_MS
    ready_timeout_ms: int = READY_TIMEOUT_MS
    page_settle_ms: int = PAGE_SETTLE_MS
    frame_settle_ms: int = FRAME_SETTLE_MS
    max_frames: Optional[int] = MAX_FRAMES or None

    def __post_init__(self) -> None:
        if self.viewport_width <= 0 or self.viewport_height <= 0:
            raise ValueError(
                f"viewport must be positive, got "
                f"{self.viewport_width}x{self.viewport_height}"
            )
        if self.max_frames is not None and self.max_frames < 1:
            raise ValueError("max_frames must be at least 1 when set")

    @property
    def viewport(self) -> dict:
        return {"width": self.viewport_width, "height": self.viewport_height}
