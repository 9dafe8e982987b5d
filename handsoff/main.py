"""
HandsOff 网关应用入口

    uvicorn handsoff.main:app --port 8084
    gunicorn handsoff.main:app -c gunicorn_conf.py
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from handsoff import __version__
from handsoff.api.proxy import router as proxy_router
from handsoff.clients.http_client import HTTPClientPool
from handsoff.config import config
from handsoff.core.logger import logger
from handsoff.database import init_db


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    if config.database_url.startswith("sqlite"):
        init_db()
    logger.info("HandsOff 网关启动: env={}, usage_tracking={}", config.environment, not config.disable_usage_tracking)
    try:
        yield
    finally:
        await HTTPClientPool.close_all()
        logger.info("HandsOff 网关已停止")


def create_app() -> FastAPI:
    app = FastAPI(
        title="HandsOff Gateway",
        version=__version__,
        lifespan=lifespan,
        docs_url=None if config.is_production else "/docs",
        redoc_url=None,
    )
    app.include_router(proxy_router)
    return app


app = create_app()
