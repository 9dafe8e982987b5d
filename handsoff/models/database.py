"""
账本数据库模型

- usage_logs: 每次计费调用追加一行，插入后不再更新
- user_limits: 用户月度额度覆盖值
- rate_limit_log: 一分钟突发限流的请求流水
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Index, Integer, Numeric, String
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UsageLog(Base):
    """用量记录（追加写）"""

    __tablename__ = "usage_logs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(64), nullable=False)
    provider = Column(String(32), nullable=False)
    model = Column(String(128), nullable=False)

    cached_input_tokens = Column(Integer, nullable=False, default=0)
    input_tokens = Column(Integer, nullable=False, default=0)
    reasoning_output_tokens = Column(Integer, nullable=False, default=0)
    output_tokens = Column(Integer, nullable=False, default=0)

    cost_usd = Column(Numeric(10, 6, asdecimal=False), nullable=False, default=0)
    timestamp = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (Index("idx_usage_logs_user_timestamp", "user_id", "timestamp"),)


class UserLimit(Base):
    """用户月度额度（未配置时使用默认值）"""

    __tablename__ = "user_limits"

    user_id = Column(String(64), primary_key=True)
    monthly_limit_usd = Column(Numeric(10, 2, asdecimal=False), nullable=False, default=8.0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)


class RateLimitLog(Base):
    """突发限流流水"""

    __tablename__ = "rate_limit_log"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False)
    request_timestamp = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        Index("idx_rate_limit_log_user_timestamp", "user_id", "request_timestamp"),
    )


__all__ = ["Base", "RateLimitLog", "UsageLog", "UserLimit"]
