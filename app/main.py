from __future__ import annotations
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.api import router
from logging_config import configure_logging
from providers.purpleair import build_default_provider
from services.poller import build_default_poller


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    poller = build_default_poller()
    poller.start()
    try:
        yield
    finally:
        poller.stop(timeout=5.0)
        build_default_poller.cache_clear()
        build_default_provider().close()
        build_default_provider.cache_clear()


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="PurpleAir Exporter",
        description="Republishes PurpleAir sensor readings and their AQI as metrics.",
        version="0.1.0",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.include_router(router)
    return app
