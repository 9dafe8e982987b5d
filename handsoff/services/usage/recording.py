"""
用量落库

定价与写入都在独立 Session 中完成；任何失败只写运维日志，不向调用方抛出。
"""

from __future__ import annotations

from collections.abc import Callable

from sqlalchemy.orm import Session

from handsoff.core.logger import logger
from handsoff.core.providers.enums import PricingProvider
from handsoff.database import create_session
from handsoff.models.database import UsageLog
from handsoff.services.billing.models import UsageAccumulator
from handsoff.services.billing.pricing import PricingResolver


class UsageRecorder:
    def __init__(self, session_factory: Callable[[], Session] | None = None):
        self._session_factory = session_factory or create_session

    def record(
        self,
        *,
        user_id: str,
        provider: PricingProvider,
        model: str,
        usage: UsageAccumulator,
        request_id: str = "-",
        fallback_key: str | None = None,
    ) -> float | None:
        """
        定价并追加一条 usage_logs

        Returns:
            成本（美元）；写入失败返回 None
        """
        try:
            cost = PricingResolver.calculate_cost(provider, model, usage, fallback_key)
        except Exception:
            logger.exception("  [{}] 成本计算失败: provider={}, model={}", request_id, provider.value, model)
            cost = 0.0

        db = None
        try:
            db = self._session_factory()
            db.add(
                UsageLog(
                    user_id=user_id,
                    provider=provider.value,
                    model=model,
                    cached_input_tokens=usage.cached_input_tokens,
                    input_tokens=usage.input_tokens,
                    reasoning_output_tokens=usage.reasoning_output_tokens,
                    output_tokens=usage.output_tokens,
                    cost_usd=round(cost, 6),
                )
            )
            db.commit()
        except Exception as exc:
            if db is not None:
                db.rollback()
            logger.error(
                "  [{}] 用量记录写入失败: user={}, provider={}, model={}, error={}",
                request_id,
                user_id,
                provider.value,
                model,
                exc,
            )
            return None
        finally:
            if db is not None:
                db.close()

        logger.info(
            "  [{}] 用量已记录: provider={}, model={}, in={}, cached={}, out={}, reasoning={}, cost=${:.6f}",
            request_id,
            provider.value,
            model,
            usage.input_tokens,
            usage.cached_input_tokens,
            usage.output_tokens,
            usage.reasoning_output_tokens,
            cost,
        )
        return cost


__all__ = ["UsageRecorder"]
