"""
测试公共夹具

环境变量必须在导入 handsoff 之前设置：logger 与 config 在导入时读取。
"""

import os

os.environ.setdefault("LOG_DISABLE_FILE", "true")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("IDENTITY_URL", "https://identity.test")
os.environ.setdefault("GATEWAY_URL", "https://gateway.test")

import pytest  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from handsoff.database import configure_engine, create_session, init_db  # noqa: E402


@pytest.fixture
def db_engine():
    """每个测试一个全新的内存库（全局引擎被替换，记账 Session 也指向它）"""
    engine = configure_engine("sqlite://")
    init_db()
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine) -> Session:
    session = create_session()
    try:
        yield session
    finally:
        session.close()
