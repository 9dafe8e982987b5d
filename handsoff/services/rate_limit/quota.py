"""
月度额度与突发限流

两者都是“先读后写”且不加锁：同一用户并发请求可能同时通过检查，
额度只作为个人消费上限的参考，不是严格准入控制。
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from handsoff.config import config
from handsoff.core.logger import logger
from handsoff.models.database import RateLimitLog, UsageLog, UserLimit


@dataclass(frozen=True)
class QuotaState:
    current_usage: float
    monthly_limit: float

    @property
    def quota_exceeded(self) -> bool:
        return self.current_usage >= self.monthly_limit

    def to_dict(self) -> dict[str, float | bool]:
        return {
            "current_usage": self.current_usage,
            "monthly_limit": self.monthly_limit,
            "quota_exceeded": self.quota_exceeded,
        }


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    recent_requests: int
    limit: int


def month_bounds(now: datetime | None = None) -> tuple[datetime, datetime]:
    """当前自然月的 [起, 止)（UTC）"""
    now = now or datetime.now(timezone.utc)
    start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start, end


class QuotaService:
    """额度 / 限流检查"""

    RATE_LIMIT_WINDOW = timedelta(minutes=1)

    @staticmethod
    def check_user_quota(
        db: Session,
        user_id: str,
        *,
        default_limit: float | None = None,
        now: datetime | None = None,
    ) -> QuotaState:
        """
        一次查询得到本月已用金额与额度

        Args:
            db: 数据库会话
            user_id: 用户 ID
            default_limit: 用户未配置额度时的默认值
            now: 当前时间（测试用）

        Returns:
            QuotaState
        """
        limit_default = (
            config.default_monthly_limit_usd if default_limit is None else default_limit
        )
        start, end = month_bounds(now)

        usage_subquery = (
            select(func.coalesce(func.sum(UsageLog.cost_usd), 0))
            .where(
                UsageLog.user_id == user_id,
                UsageLog.timestamp >= start,
                UsageLog.timestamp < end,
            )
            .scalar_subquery()
        )
        limit_subquery = (
            select(UserLimit.monthly_limit_usd)
            .where(UserLimit.user_id == user_id)
            .scalar_subquery()
        )

        row = db.execute(
            select(
                usage_subquery.label("current_usage"),
                func.coalesce(limit_subquery, limit_default).label("monthly_limit"),
            )
        ).one()

        return QuotaState(
            current_usage=float(row.current_usage or 0),
            monthly_limit=float(row.monthly_limit),
        )

    @classmethod
    def check_rate_limit(
        cls,
        db: Session,
        user_id: str,
        *,
        max_requests: int | None = None,
        now: datetime | None = None,
    ) -> RateLimitDecision:
        """
        统计最近一分钟请求数并记录本次请求

        本次请求无论是否放行都会写入流水。
        """
        limit = config.rate_limit_per_minute if max_requests is None else max_requests
        now = now or datetime.now(timezone.utc)

        recent = db.execute(
            select(func.count(RateLimitLog.id)).where(
                RateLimitLog.user_id == user_id,
                RateLimitLog.request_timestamp > now - cls.RATE_LIMIT_WINDOW,
            )
        ).scalar_one()

        db.add(RateLimitLog(user_id=user_id, request_timestamp=now))
        db.commit()

        decision = RateLimitDecision(allowed=recent < limit, recent_requests=recent, limit=limit)
        if not decision.allowed:
            logger.warning("用户 {} 触发突发限流: {}/{} 次/分钟", user_id, recent, limit)
        return decision


__all__ = ["QuotaService", "QuotaState", "RateLimitDecision", "month_bounds"]
