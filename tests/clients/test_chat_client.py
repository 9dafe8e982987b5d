"""
客户端路由、代理信封与流式对话测试
"""

import json
from unittest.mock import AsyncMock

import httpx
import pytest

from handsoff.clients.chat_client import ChatStreamClient, TurnCoordinator, TurnResult
from handsoff.clients.identity import IdentityClient
from handsoff.clients.routing import ProviderRouter, ProxyRequestFactory
from handsoff.core.exceptions import UpstreamHTTPError
from handsoff.core.providers.enums import LLMProvider
from handsoff.core.providers.metadata import provider_for_model_id
from handsoff.models.chat import Message, MessageRole, RequestContext


def _context(model_id: str = "gpt-5.2", **kwargs) -> RequestContext:
    return RequestContext.from_history([Message(MessageRole.USER, "Hi")], model_id, **kwargs)


class TestProviderRouter:
    def test_own_key_enabled_with_key_goes_direct(self) -> None:
        router = ProviderRouter({LLMProvider.OPENAI: True})
        ctx = _context(credentials={LLMProvider.OPENAI: "sk-user"})
        assert router.should_use_proxy(LLMProvider.OPENAI, ctx) is False

    def test_whitespace_key_falls_back_to_proxy(self) -> None:
        router = ProviderRouter({LLMProvider.OPENAI: True})
        ctx = _context(credentials={LLMProvider.OPENAI: "  \t "})
        assert router.should_use_proxy(LLMProvider.OPENAI, ctx) is True

    def test_own_key_disabled_uses_proxy(self) -> None:
        router = ProviderRouter({LLMProvider.OPENAI: False})
        ctx = _context(credentials={LLMProvider.OPENAI: "sk-user"})
        assert router.should_use_proxy(LLMProvider.OPENAI, ctx) is True

    def test_transcription_always_proxied(self) -> None:
        router = ProviderRouter({LLMProvider.MISTRAL: True})
        assert router.should_use_proxy_for_key(LLMProvider.MISTRAL, "m-key") is True


class TestProxyRequestFactory:
    @pytest.mark.asyncio
    async def test_envelope_body_embedded_as_json_value(self) -> None:
        factory = ProxyRequestFactory("https://gateway.test/")
        client = ChatStreamClient(
            httpx.AsyncClient(), ProviderRouter(), AsyncMock(return_value="tok"), factory
        )

        request = await client.prepare_request(LLMProvider.CLAUDE, _context("claude-sonnet-4-6"))
        assert str(request.url) == "https://gateway.test/v1/proxy"
        assert request.headers["authorization"] == "Bearer tok"

        envelope = json.loads(request.content)
        assert envelope["provider"] == "claude"
        assert envelope["endpoint"] == "https://api.anthropic.com/v1/messages"
        assert envelope["method"] == "POST"
        assert envelope["headers"]["anthropic-version"] == "2023-06-01"
        assert "x-api-key" not in envelope["headers"]
        # bodyData 是 JSON 对象而不是字符串
        assert isinstance(envelope["bodyData"], dict)
        assert envelope["bodyData"]["model"] == "claude-sonnet-4-6"


class TestChatStreamClient:
    @pytest.mark.asyncio
    async def test_direct_stream_decoded(self) -> None:
        sse = (
            'data: {"type":"response.created"}\n\n'
            'data: {"type":"response.output_text.delta","delta":"Hel"}\n\n'
            'data: {"type":"response.output_text.delta","delta":"lo"}\n\n'
            'data: {"type":"response.completed","response":{"usage":{"input_tokens":1}}}\n\n'
        )
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, headers={"content-type": "text/event-stream"}, text=sse)

        token_provider = AsyncMock(return_value="tok")
        client = ChatStreamClient(
            httpx.AsyncClient(transport=httpx.MockTransport(handler)),
            ProviderRouter({LLMProvider.OPENAI: True}),
            token_provider,
        )
        ctx = _context(credentials={LLMProvider.OPENAI: "sk-user"})

        deltas = [d async for d in client.stream_reply(LLMProvider.OPENAI, ctx)]

        assert deltas == ["Hel", "lo"]
        assert str(seen[0].url) == "https://api.openai.com/v1/responses"
        assert seen[0].headers["authorization"] == "Bearer sk-user"
        token_provider.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_error_status_raises(self) -> None:
        client = ChatStreamClient(
            httpx.AsyncClient(
                transport=httpx.MockTransport(
                    lambda request: httpx.Response(429, json={"error": "Rate limit exceeded"})
                )
            ),
            ProviderRouter(),
            AsyncMock(return_value="tok"),
            ProxyRequestFactory("https://gateway.test"),
        )
        with pytest.raises(UpstreamHTTPError) as exc_info:
            async for _ in client.stream_reply(LLMProvider.XAI, _context("grok-4-fast")):
                pass
        assert exc_info.value.status_code == 429
        assert "Rate limit exceeded" in exc_info.value.upstream_response


class TestTurnCoordinator:
    @pytest.mark.asyncio
    async def test_superseded_turn_stops_reading(self) -> None:
        coordinator = TurnCoordinator()
        closed = []

        async def deltas():
            try:
                for text in ("a", "b", "c"):
                    yield text
            finally:
                closed.append(True)

        # 第一个增量到达后用户发起新回合
        result = await coordinator.run_turn(deltas(), on_delta=lambda _: coordinator.cancel())

        assert result.superseded is True
        assert result.text == "a"
        assert closed == [True]
        assert not coordinator.is_current(result.turn_id)

    @pytest.mark.asyncio
    async def test_completed_turn(self) -> None:
        coordinator = TurnCoordinator()

        async def deltas():
            for text in ("Hel", "lo"):
                yield text

        collected: list[str] = []
        result = await coordinator.run_turn(deltas(), on_delta=collected.append)
        assert result == TurnResult(turn_id=1, text="Hello", superseded=False)
        assert collected == ["Hel", "lo"]
        assert coordinator.current_turn == 1


class TestProviderForModelId:
    @pytest.mark.parametrize(
        "model_id, provider",
        [
            ("gpt-5.2", LLMProvider.OPENAI),
            ("o4-mini", LLMProvider.OPENAI),
            ("claude-opus-4-6", LLMProvider.CLAUDE),
            ("gemini-3-flash", LLMProvider.GEMINI),
            ("grok-4-fast", LLMProvider.XAI),
            ("kimi-k2.5", LLMProvider.MOONSHOT),
            ("voxtral-mini-latest", LLMProvider.MISTRAL),
        ],
    )
    def test_known_prefixes(self, model_id: str, provider: LLMProvider) -> None:
        assert provider_for_model_id(model_id) == provider

    def test_unknown(self) -> None:
        assert provider_for_model_id("llama-3") is None
        assert provider_for_model_id("") is None


class TestIdentityClient:
    @pytest.mark.asyncio
    async def test_valid_token(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/auth/v1/user"
            assert request.headers["apikey"] == "anon"
            return httpx.Response(200, json={"id": "user-1", "email": "u@example.com"})

        identity = IdentityClient(
            httpx.AsyncClient(transport=httpx.MockTransport(handler)),
            base_url="https://identity.test",
            anon_key="anon",
        )
        user = await identity.get_user("tok")
        assert user is not None
        assert user.id == "user-1"

    @pytest.mark.asyncio
    async def test_service_unavailable(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("down", request=request)

        identity = IdentityClient(
            httpx.AsyncClient(transport=httpx.MockTransport(handler)),
            base_url="https://identity.test",
        )
        assert await identity.get_user("tok") is None
        assert await identity.get_user("") is None
