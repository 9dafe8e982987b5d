"""
凭证注入处理器

网关只在 headers / endpoint 上注入服务端 Key，bodyData 不做任何改动。
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from handsoff.core.exceptions import InvalidEndpointError
from handsoff.core.providers.enums import AuthMethod

if TYPE_CHECKING:
    from starlette.requests import Request


class AuthHandler(ABC):
    """认证处理器基类"""

    @abstractmethod
    def inject(
        self, headers: dict[str, str], endpoint: str, credential: str
    ) -> tuple[dict[str, str], str]:
        """
        返回注入凭证后的 (headers, endpoint)

        不修改传入的 headers 字典。
        """


class BearerAuthHandler(AuthHandler):
    """Authorization: Bearer <key>"""

    @staticmethod
    def extract_credentials(request: Request) -> str | None:
        auth = request.headers.get("authorization", "")
        if auth.lower().startswith("bearer "):
            token = auth[7:].strip()
            return token or None
        return None

    def inject(
        self, headers: dict[str, str], endpoint: str, credential: str
    ) -> tuple[dict[str, str], str]:
        merged = _without(headers, "authorization")
        merged["Authorization"] = f"Bearer {credential}"
        return merged, endpoint


class ApiKeyAuthHandler(AuthHandler):
    """x-api-key: <key>"""

    def inject(
        self, headers: dict[str, str], endpoint: str, credential: str
    ) -> tuple[dict[str, str], str]:
        merged = _without(headers, "x-api-key")
        merged["x-api-key"] = credential
        return merged, endpoint


class QueryKeyAuthHandler(AuthHandler):
    """
    ?key=<key>（Gemini）

    改写 endpoint URL：覆盖 key，缺少 alt 时补 alt=sse 以获得 SSE 流。
    """

    def inject(
        self, headers: dict[str, str], endpoint: str, credential: str
    ) -> tuple[dict[str, str], str]:
        parts = urlsplit(endpoint)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise InvalidEndpointError("Invalid Gemini endpoint URL")

        query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k != "key"]
        query.append(("key", credential))
        if not any(k == "alt" for k, _ in query):
            query.append(("alt", "sse"))

        rewritten = urlunsplit(
            (parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment)
        )
        return dict(headers), rewritten


def _without(headers: dict[str, str], name: str) -> dict[str, str]:
    lowered = name.lower()
    return {k: v for k, v in headers.items() if k.lower() != lowered}


_AUTH_HANDLERS: dict[AuthMethod, AuthHandler] = {
    AuthMethod.BEARER: BearerAuthHandler(),
    AuthMethod.API_KEY: ApiKeyAuthHandler(),
    AuthMethod.QUERY_KEY: QueryKeyAuthHandler(),
}


def get_auth_handler(auth_method: AuthMethod) -> AuthHandler:
    """获取认证处理器实例"""
    handler = _AUTH_HANDLERS.get(auth_method)
    if not handler:
        raise ValueError(f"Unsupported auth method: {auth_method}")
    return handler


__all__ = [
    "AuthHandler",
    "ApiKeyAuthHandler",
    "BearerAuthHandler",
    "QueryKeyAuthHandler",
    "get_auth_handler",
]
