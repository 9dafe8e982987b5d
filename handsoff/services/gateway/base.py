"""
网关服务基类

认证 -> 突发限流 -> 月度额度，两个入口（代理、转写）共用。
"""

from __future__ import annotations

import uuid

import httpx
from fastapi import Request
from fastapi.responses import Response
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from handsoff.clients.identity import AuthenticatedUser, IdentityClient
from handsoff.config import config
from handsoff.core.logger import logger
from handsoff.core.providers.auth import BearerAuthHandler
from handsoff.core.providers.enums import PricingProvider
from handsoff.services.billing.models import UsageAccumulator
from handsoff.services.rate_limit.quota import QuotaService
from handsoff.services.usage.recording import UsageRecorder
from handsoff.utils.http_utils import json_response

RATE_LIMIT_RETRY_AFTER_SECONDS = 60


class GatewayServiceBase:
    def __init__(
        self,
        http_client: httpx.AsyncClient,
        identity_client: IdentityClient,
        recorder: UsageRecorder | None = None,
    ):
        self._http_client = http_client
        self._identity_client = identity_client
        self._recorder = recorder or UsageRecorder()

    @staticmethod
    def new_request_id() -> str:
        return uuid.uuid4().hex[:8]

    async def authenticate(self, request: Request) -> AuthenticatedUser | None:
        token = BearerAuthHandler.extract_credentials(request)
        if token is None:
            return None
        return await self._identity_client.get_user(token)

    def admit(self, db: Session, user: AuthenticatedUser, request_id: str) -> Response | None:
        """
        突发限流与额度检查

        Returns:
            拒绝时返回响应，放行返回 None
        """
        if config.disable_usage_tracking:
            return None

        try:
            decision = QuotaService.check_rate_limit(db, user.id)
        except SQLAlchemyError:
            db.rollback()
            logger.exception("  [{}] 突发限流检查失败", request_id)
            return json_response({"error": "Failed to check rate limit"}, 500)

        if not decision.allowed:
            return json_response(
                {
                    "error": "Rate limit exceeded",
                    "limit": f"{decision.limit} requests per minute",
                },
                429,
                headers={"Retry-After": str(RATE_LIMIT_RETRY_AFTER_SECONDS)},
            )

        try:
            state = QuotaService.check_user_quota(db, user.id)
        except SQLAlchemyError:
            db.rollback()
            logger.exception("  [{}] 额度检查失败", request_id)
            return json_response({"error": "Failed to check usage quota"}, 500)

        if state.quota_exceeded:
            logger.info(
                "  [{}] 用户 {} 已超出月度额度: ${:.4f} / ${:.2f}",
                request_id,
                user.id,
                state.current_usage,
                state.monthly_limit,
            )
            return json_response(
                {
                    "error": "Monthly usage limit exceeded",
                    "current_usage": state.current_usage,
                    "limit": state.monthly_limit,
                },
                429,
            )
        return None

    def record_usage(
        self,
        *,
        user: AuthenticatedUser,
        provider: PricingProvider,
        model: str,
        usage: UsageAccumulator | None,
        request_id: str,
        fallback_key: str | None = None,
    ) -> None:
        if config.disable_usage_tracking:
            return
        if usage is None:
            logger.warning(
                "  [{}] 未找到用量信息: provider={}, model={}", request_id, provider.value, model
            )
            return
        self._recorder.record(
            user_id=user.id,
            provider=provider,
            model=model,
            usage=usage,
            request_id=request_id,
            fallback_key=fallback_key,
        )


__all__ = ["GatewayServiceBase", "RATE_LIMIT_RETRY_AFTER_SECONDS"]
