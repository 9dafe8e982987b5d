"""
数据库连接管理

引擎延迟创建；测试或脚本可通过 configure_engine() 指向其他数据库。
"""

from __future__ import annotations

from collections.abc import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from handsoff.config import config
from handsoff.core.logger import logger
from handsoff.models.database import Base

_engine: Engine | None = None
_SessionLocal: sessionmaker[Session] | None = None


def _build_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        kwargs: dict = {"connect_args": {"check_same_thread": False}}
        # 内存库需要共享同一连接，否则每个连接都是空库
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(url, **kwargs)

    return create_engine(
        url,
        pool_size=config.db_pool_size,
        max_overflow=config.db_max_overflow,
        pool_pre_ping=True,
    )


def configure_engine(url: str | None = None) -> Engine:
    """创建（或替换）全局引擎与 Session 工厂"""
    global _engine, _SessionLocal

    if _engine is not None:
        _engine.dispose()

    _engine = _build_engine(url or config.database_url)
    _SessionLocal = sessionmaker(bind=_engine, autoflush=False, expire_on_commit=False)
    logger.debug("数据库引擎已初始化: {}", _engine.url.render_as_string(hide_password=True))
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        return configure_engine()
    return _engine


def create_session() -> Session:
    """创建独立 Session，调用方负责 close()"""
    if _SessionLocal is None:
        configure_engine()
    assert _SessionLocal is not None
    return _SessionLocal()


def get_db() -> Iterator[Session]:
    """FastAPI 依赖：请求级 Session"""
    db = create_session()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    """建表（开发环境 / sqlite）；生产环境使用 alembic 迁移"""
    Base.metadata.create_all(bind=get_engine())


__all__ = ["configure_engine", "create_session", "get_db", "get_engine", "init_db"]
