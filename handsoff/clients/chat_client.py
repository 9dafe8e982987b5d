"""
流式对话客户端

ChatStreamClient 负责构建、路由、发送并把 SSE 行解码为文本增量；
TurnCoordinator 保证同一会话同时只有一个回合在输出：新回合开始后，
旧回合的消费方在下一个块处停止读取并关闭流（协作式取消）。
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass

import httpx

from handsoff.api.handlers.registry import build_provider_request, get_stream_decoder
from handsoff.clients.routing import ProviderRouter, ProxyRequestFactory, make_direct_request
from handsoff.core.exceptions import UpstreamHTTPError
from handsoff.core.logger import logger
from handsoff.core.providers.enums import LLMProvider
from handsoff.models.chat import RequestContext

TokenProvider = Callable[[], Awaitable[str]]


class ChatStreamClient:
    def __init__(
        self,
        http_client: httpx.AsyncClient,
        router: ProviderRouter,
        token_provider: TokenProvider,
        proxy_factory: ProxyRequestFactory | None = None,
    ):
        self._http_client = http_client
        self._router = router
        self._token_provider = token_provider
        self._proxy_factory = proxy_factory or ProxyRequestFactory()

    async def prepare_request(self, provider: LLMProvider, context: RequestContext) -> httpx.Request:
        use_proxy = self._router.should_use_proxy(provider, context)
        provider_request = build_provider_request(provider, context, use_proxy=use_proxy)
        if not use_proxy:
            return make_direct_request(provider_request)

        token = await self._token_provider()
        payload = self._proxy_factory.make_proxy_payload(provider_request)
        return self._proxy_factory.make_proxied_request(payload, token)

    async def stream_reply(self, provider: LLMProvider, context: RequestContext) -> AsyncIterator[str]:
        """
        逐段产出文本增量

        Raises:
            NotAnLLMProviderError: provider 不是对话类
            UpstreamHTTPError: 上游或网关返回非 2xx
        """
        decoder = get_stream_decoder(provider)
        request = await self.prepare_request(provider, context)
        response = await self._http_client.send(request, stream=True)
        try:
            if not response.is_success:
                body = await response.aread()
                raise UpstreamHTTPError(response.status_code, body.decode("utf-8", errors="replace"))

            async for line in response.aiter_lines():
                if not line.startswith("data:"):
                    continue
                text = decoder.decode(line)
                if text:
                    yield text
        finally:
            await response.aclose()


@dataclass(frozen=True)
class TurnResult:
    turn_id: int
    text: str
    superseded: bool


class TurnCoordinator:
    """单会话回合协调"""

    def __init__(self) -> None:
        self._current_turn = 0

    @property
    def current_turn(self) -> int:
        return self._current_turn

    def begin_turn(self) -> int:
        self._current_turn += 1
        return self._current_turn

    def cancel(self) -> None:
        """让在途回合在下一个块处停止"""
        self._current_turn += 1

    def is_current(self, turn_id: int) -> bool:
        return turn_id == self._current_turn

    async def run_turn(
        self,
        deltas: AsyncIterator[str],
        on_delta: Callable[[str], None] | None = None,
    ) -> TurnResult:
        turn_id = self.begin_turn()
        parts: list[str] = []
        superseded = False
        try:
            async for delta in deltas:
                if not self.is_current(turn_id):
                    superseded = True
                    break
                parts.append(delta)
                if on_delta is not None:
                    on_delta(delta)
        finally:
            aclose = getattr(deltas, "aclose", None)
            if aclose is not None:
                await aclose()

        if superseded:
            logger.debug("回合 {} 已被新回合取代，停止读取", turn_id)
        return TurnResult(turn_id=turn_id, text="".join(parts), superseded=superseded)


__all__ = ["ChatStreamClient", "TurnCoordinator", "TurnResult"]
