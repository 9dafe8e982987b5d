"""
身份服务客户端

用调用方的 Bearer token 请求身份服务 /auth/v1/user，
成功即视为已认证；解析出的用户 ID 是额度与记账的单位。
"""

from __future__ import annotations

from dataclasses import dataclass

import httpx

from handsoff.config import config
from handsoff.core.logger import logger


@dataclass(frozen=True)
class AuthenticatedUser:
    id: str
    email: str | None = None


class IdentityClient:
    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        base_url: str | None = None,
        anon_key: str | None = None,
    ):
        self._http_client = http_client
        self._base_url = (base_url if base_url is not None else config.identity_url).rstrip("/")
        self._anon_key = anon_key if anon_key is not None else config.identity_anon_key

    async def get_user(self, token: str | None) -> AuthenticatedUser | None:
        """
        校验 token

        Returns:
            已认证用户；token 缺失 / 无效 / 身份服务不可用时返回 None
        """
        if not token:
            return None
        if not self._base_url:
            logger.error("IDENTITY_URL 未配置，无法校验身份")
            return None

        headers = {"Authorization": f"Bearer {token}"}
        if self._anon_key:
            headers["apikey"] = self._anon_key

        try:
            response = await self._http_client.get(f"{self._base_url}/auth/v1/user", headers=headers)
        except httpx.HTTPError as exc:
            logger.warning("身份服务请求失败: {}", exc)
            return None

        if response.status_code != 200:
            logger.debug("身份校验失败: HTTP {}", response.status_code)
            return None

        try:
            data = response.json()
        except ValueError:
            return None
        user_id = data.get("id") if isinstance(data, dict) else None
        if not isinstance(user_id, str) or not user_id:
            return None
        return AuthenticatedUser(id=user_id, email=data.get("email"))


__all__ = ["AuthenticatedUser", "IdentityClient"]
