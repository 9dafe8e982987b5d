"""
客户端路由：直连 Provider 还是经由网关

- 用户为该 Provider 开启了“使用自己的 Key”且 Key 去空白后非空 -> 直连
- 否则（以及 mistral 语音转写）-> 网关代理
"""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

import httpx

from handsoff.api.handlers.base.request_builder import ProviderRequest
from handsoff.config import config
from handsoff.core.providers.enums import LLMProvider
from handsoff.models.chat import RequestContext
from handsoff.models.proxy import ProxyEnvelope

# 信封中不携带的 header（凭证由网关注入）
_CREDENTIAL_HEADERS = frozenset({"authorization", "x-api-key"})


class ProviderRouter:
    PROXY_ONLY_PROVIDERS = frozenset({LLMProvider.MISTRAL})

    def __init__(self, own_key_enabled: Mapping[LLMProvider, bool] | None = None):
        self._own_key_enabled = MappingProxyType(dict(own_key_enabled or {}))

    def should_use_proxy(self, provider: LLMProvider, context: RequestContext | None = None) -> bool:
        credential = context.credential_for(provider) if context is not None else None
        return self.should_use_proxy_for_key(provider, credential)

    def should_use_proxy_for_key(self, provider: LLMProvider, api_key: str | None) -> bool:
        if provider in self.PROXY_ONLY_PROVIDERS:
            return True
        if not self._own_key_enabled.get(provider, False):
            return True
        return not (api_key or "").strip()


class ProxyRequestFactory:
    """把 Provider 请求包装为发往网关的代理请求"""

    PROXY_PATH = "/v1/proxy"

    def __init__(self, gateway_url: str | None = None):
        self._gateway_url = (gateway_url or config.gateway_url).rstrip("/")

    @property
    def proxy_url(self) -> str:
        return f"{self._gateway_url}{self.PROXY_PATH}"

    @staticmethod
    def make_envelope(
        provider: LLMProvider,
        endpoint: str,
        *,
        method: str = "POST",
        headers: Mapping[str, str] | None = None,
        body_data: Any = None,
    ) -> ProxyEnvelope:
        return ProxyEnvelope(
            provider=provider.value.lower(),
            endpoint=endpoint,
            method=method.upper(),
            headers={
                k: v for k, v in (headers or {}).items() if k.lower() not in _CREDENTIAL_HEADERS
            },
            bodyData=body_data,
        )

    def make_proxy_payload(self, request: ProviderRequest) -> bytes:
        """ProviderRequest -> 信封 JSON（body 作为 JSON 值嵌入，不做改写）"""
        envelope = self.make_envelope(
            request.provider,
            request.url,
            method=request.method,
            headers=request.headers,
            body_data=request.body,
        )
        return envelope.to_wire()

    def make_proxied_request(self, envelope_bytes: bytes, identity_token: str) -> httpx.Request:
        return httpx.Request(
            "POST",
            self.proxy_url,
            headers={
                "Authorization": f"Bearer {identity_token}",
                "Content-Type": "application/json",
            },
            content=envelope_bytes,
        )


def make_direct_request(request: ProviderRequest) -> httpx.Request:
    return httpx.Request(
        request.method,
        request.url,
        headers=request.headers,
        content=request.body_bytes(),
    )


__all__ = ["ProviderRouter", "ProxyRequestFactory", "make_direct_request"]
