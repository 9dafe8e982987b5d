"""
请求构建器基类

RequestBuilder 把 RequestContext 转换为 Provider 原生 HTTP 请求（URL、headers、JSON body）。
直连模式注入用户自己的 Key；代理模式不带任何凭证，由网关注入服务端 Key。
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, ClassVar

from handsoff.core.exceptions import ApiKeyMissingError
from handsoff.core.providers.enums import AuthMethod, LLMProvider
from handsoff.core.providers.metadata import get_provider_definition
from handsoff.models.chat import MessageRole, RequestContext


@dataclass(frozen=True)
class ProviderRequest:
    """Provider 原生请求"""

    provider: LLMProvider
    url: str
    method: str = "POST"
    headers: dict[str, str] = field(default_factory=dict)
    body: dict[str, Any] = field(default_factory=dict)

    def body_bytes(self) -> bytes:
        return json.dumps(self.body, ensure_ascii=False).encode("utf-8")


class RequestBuilder(ABC):
    """
    请求构建器基类

    子类提供 PROVIDER、build_url() 与 build_body()；认证注入由基类按
    ProviderDefinition.auth_method 完成。
    """

    PROVIDER: ClassVar[LLMProvider]
    EXTRA_HEADERS: ClassVar[dict[str, str]] = {}

    def build(self, context: RequestContext, *, use_proxy: bool = False) -> ProviderRequest:
        """
        构建上游请求

        Args:
            context: 规范请求上下文
            use_proxy: True 时不注入凭证

        Raises:
            ApiKeyMissingError: 直连但上下文中没有该 Provider 的 Key
        """
        credential = None
        if not use_proxy:
            credential = context.credential_for(self.PROVIDER)
            if credential is None:
                raise ApiKeyMissingError(self.PROVIDER.value)

        headers = {"Content-Type": "application/json", **self.EXTRA_HEADERS}
        if credential is not None:
            auth_method = get_provider_definition(self.PROVIDER).auth_method
            if auth_method == AuthMethod.BEARER:
                headers["Authorization"] = f"Bearer {credential}"
            elif auth_method == AuthMethod.API_KEY:
                headers["x-api-key"] = credential

        return ProviderRequest(
            provider=self.PROVIDER,
            url=self.build_url(context, credential),
            headers=headers,
            body=self.build_body(context),
        )

    @abstractmethod
    def build_url(self, context: RequestContext, credential: str | None) -> str:
        """上游 URL；query 参数认证的 Provider 在此拼接 Key"""

    @abstractmethod
    def build_body(self, context: RequestContext) -> dict[str, Any]:
        """上游 JSON body"""

    @staticmethod
    def is_assistant(role: MessageRole) -> bool:
        return role == MessageRole.ASSISTANT


__all__ = ["ProviderRequest", "RequestBuilder"]
