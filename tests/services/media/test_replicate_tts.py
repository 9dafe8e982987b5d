"""
Replicate Kokoro TTS 客户端测试
"""

import json
from unittest.mock import AsyncMock

import httpx
import pytest

from handsoff.clients.routing import ProviderRouter, ProxyRequestFactory
from handsoff.core.exceptions import MediaGenerationError, UpstreamHTTPError
from handsoff.core.providers.enums import LLMProvider
from handsoff.services.media import ReplicateTTSClient, normalize_output_url

AUDIO_URL = "https://replicate.delivery/out/speech.wav"
RATE_LIMITED = {"detail": "Rate limit exceeded", "status": 429, "retry_after": 0}


class ScriptedTransport:
    """按顺序返回预设响应，并记录请求"""

    def __init__(self, responses: list[httpx.Response]) -> None:
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host == "replicate.delivery":
            return httpx.Response(200, content=b"RIFF-audio")
        return self.responses.pop(0)


def _tts_client(transport: ScriptedTransport, *, own_key: bool = True, sleep=None):
    router = ProviderRouter({LLMProvider.REPLICATE: own_key})
    return ReplicateTTSClient(
        httpx.AsyncClient(transport=httpx.MockTransport(transport)),
        router=router,
        token_provider=AsyncMock(return_value="identity-token"),
        api_key="r8_user" if own_key else None,
        proxy_factory=ProxyRequestFactory("https://gateway.test"),
        model_version="kokoro-test",
        sleep=sleep or AsyncMock(),
    )


class TestNormalizeOutputUrl:
    @pytest.mark.parametrize(
        "output",
        [
            AUDIO_URL,
            [AUDIO_URL, "https://replicate.delivery/out/other.wav"],
            {"audio": AUDIO_URL, "duration": 1.7},
            {"url": AUDIO_URL},
        ],
    )
    def test_shapes(self, output) -> None:
        assert normalize_output_url(output) == AUDIO_URL

    @pytest.mark.parametrize("output", [None, "", [], {"duration": 1.7}, 42])
    def test_unrecognized(self, output) -> None:
        assert normalize_output_url(output) is None


class TestSubmit:
    @pytest.mark.asyncio
    async def test_retries_once_after_429_then_succeeds(self) -> None:
        transport = ScriptedTransport(
            [
                httpx.Response(429, json=RATE_LIMITED),
                httpx.Response(
                    201,
                    json={
                        "id": "p1",
                        "status": "succeeded",
                        "output": {"audio": AUDIO_URL, "duration": 1.7},
                    },
                ),
            ]
        )
        sleep = AsyncMock()
        client = _tts_client(transport, sleep=sleep)

        audio = await client.synthesize("Hello there", voice="af_bella", speed=1.1)

        assert audio == b"RIFF-audio"
        sleep.assert_awaited_once_with(0.0)
        submissions = [r for r in transport.requests if r.url.host == "api.replicate.com"]
        assert len(submissions) == 2

        first = submissions[0]
        assert first.headers["authorization"] == "Bearer r8_user"
        assert first.headers["prefer"] == "wait"
        assert json.loads(first.content) == {
            "version": "kokoro-test",
            "input": {"text": "Hello there", "voice": "af_bella", "speed": 1.1},
        }

    @pytest.mark.asyncio
    async def test_gives_up_after_three_attempts(self) -> None:
        transport = ScriptedTransport([httpx.Response(429, json=RATE_LIMITED) for _ in range(3)])
        sleep = AsyncMock()
        client = _tts_client(transport, sleep=sleep)

        with pytest.raises(UpstreamHTTPError) as exc_info:
            await client.synthesize("Hi", voice="af_bella")

        assert exc_info.value.status_code == 429
        assert "Rate limit exceeded" in exc_info.value.upstream_response
        assert sleep.await_count == 2
        assert len(transport.requests) == 3

    @pytest.mark.asyncio
    async def test_retry_wait_uses_default_and_cap(self) -> None:
        transport = ScriptedTransport(
            [
                httpx.Response(429, text="slow down"),
                httpx.Response(429, headers={"Retry-After": "120"}, text="slow down"),
                httpx.Response(201, json={"status": "succeeded", "output": AUDIO_URL}),
            ]
        )
        sleep = AsyncMock()
        await _tts_client(transport, sleep=sleep).synthesize("Hi", voice="af_bella")
        assert [call.args[0] for call in sleep.await_args_list] == [5.0, 30.0]

    @pytest.mark.asyncio
    async def test_via_gateway_without_own_key(self) -> None:
        transport = ScriptedTransport(
            [httpx.Response(201, json={"status": "succeeded", "output": [AUDIO_URL]})]
        )
        client = _tts_client(transport, own_key=False)
        assert client.uses_proxy is True

        await client.synthesize("Hi", voice="af_bella")

        proxied = transport.requests[0]
        assert str(proxied.url) == "https://gateway.test/v1/proxy"
        assert proxied.headers["authorization"] == "Bearer identity-token"
        envelope = json.loads(proxied.content)
        assert envelope["provider"] == "replicate"
        assert envelope["endpoint"] == "https://api.replicate.com/v1/predictions"
        assert envelope["headers"]["Prefer"] == "wait"
        assert "Authorization" not in envelope["headers"]
        assert envelope["bodyData"]["input"]["text"] == "Hi"


class TestPolling:
    @pytest.mark.asyncio
    async def test_polls_until_succeeded(self) -> None:
        poll_url = "https://api.replicate.com/v1/predictions/p1"
        transport = ScriptedTransport(
            [
                httpx.Response(201, json={"id": "p1", "status": "starting", "urls": {"get": poll_url}}),
                httpx.Response(200, json={"id": "p1", "status": "processing", "urls": {"get": poll_url}}),
                httpx.Response(200, json={"id": "p1", "status": "succeeded", "output": AUDIO_URL}),
            ]
        )
        sleep = AsyncMock()
        audio = await _tts_client(transport, sleep=sleep).synthesize("Hi", voice="af_bella")

        assert audio == b"RIFF-audio"
        polls = [r for r in transport.requests if r.method == "GET" and r.url.host == "api.replicate.com"]
        assert len(polls) == 2
        assert sleep.await_count == 2

    @pytest.mark.asyncio
    async def test_failed_prediction(self) -> None:
        transport = ScriptedTransport(
            [httpx.Response(201, json={"id": "p1", "status": "failed", "error": "OOM"})]
        )
        with pytest.raises(MediaGenerationError, match="OOM"):
            await _tts_client(transport).synthesize("Hi", voice="af_bella")

    @pytest.mark.asyncio
    async def test_polling_is_bounded(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(ReplicateTTSClient, "MAX_POLL_ATTEMPTS", 2)
        poll_url = "https://api.replicate.com/v1/predictions/p1"
        pending = {"id": "p1", "status": "processing", "urls": {"get": poll_url}}
        transport = ScriptedTransport([httpx.Response(200, json=pending) for _ in range(3)])

        with pytest.raises(MediaGenerationError, match="did not finish"):
            await _tts_client(transport).synthesize("Hi", voice="af_bella")

    @pytest.mark.asyncio
    async def test_unrecognized_output(self) -> None:
        transport = ScriptedTransport(
            [httpx.Response(201, json={"status": "succeeded", "output": {"duration": 1.0}})]
        )
        with pytest.raises(MediaGenerationError):
            await _tts_client(transport).synthesize("Hi", voice="af_bella")
