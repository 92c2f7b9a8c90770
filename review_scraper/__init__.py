"""Application entrypoint.

Lifecycle, capture, extraction and HTTP handlers live in their own
modules; this file only wires them into the FastAPI app.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from . import routes
from .logs import configure_logging
from .playwright_manager import lifespan

logger = logging.getLogger("app")


@asynccontextmanager
async def app_lifespan(app):
    configure_logging()
    async with lifespan(app):
        yield


app = FastAPI(lifespan=app_lifespan, redirect_slashes=False)
app.include_router(routes.router)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    target = request.url.path
    if request.url.query:
        target = f"{target}?{request.url.query}"
    logger.info("Incoming request: %s %s", request.method, target)
    return await call_next(request)
