"""
全局 HTTP 客户端池

网关进程内复用单个 httpx.AsyncClient（keep-alive 连接池），
由应用 lifespan 在退出时关闭。
"""

from __future__ import annotations

import asyncio

import httpx

from handsoff.config import config
from handsoff.core.logger import logger

_default_client_lock = asyncio.Lock()


def _build_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        http2=False,
        timeout=httpx.Timeout(
            connect=config.http_connect_timeout,
            read=config.http_read_timeout,
            write=config.http_write_timeout,
            pool=config.http_pool_timeout,
        ),
        limits=httpx.Limits(
            max_connections=config.http_max_connections,
            max_keepalive_connections=config.http_keepalive_connections,
            keepalive_expiry=config.http_keepalive_expiry,
        ),
        follow_redirects=True,
    )


class HTTPClientPool:
    """全局 HTTP 客户端单例"""

    _default_client: httpx.AsyncClient | None = None

    @classmethod
    async def get_default_client_async(cls) -> httpx.AsyncClient:
        if cls._default_client is not None and not cls._default_client.is_closed:
            return cls._default_client

        async with _default_client_lock:
            # 双重检查
            if cls._default_client is None or cls._default_client.is_closed:
                cls._default_client = _build_client()
                logger.info(
                    "全局HTTP客户端已初始化: max_connections={}, keepalive={}",
                    config.http_max_connections,
                    config.http_keepalive_connections,
                )
        return cls._default_client

    @classmethod
    async def close_all(cls) -> None:
        if cls._default_client is not None:
            await cls._default_client.aclose()
            cls._default_client = None
            logger.info("全局HTTP客户端已关闭")


async def get_http_client() -> httpx.AsyncClient:
    """FastAPI 依赖"""
    return await HTTPClientPool.get_default_client_async()


__all__ = ["HTTPClientPool", "get_http_client"]
