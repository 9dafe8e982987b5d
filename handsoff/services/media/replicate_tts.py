"""
Replicate 异步 TTS（Kokoro）

提交预测 -> 429 时按服务端给出的等待时长重试（有限次数）-> 必要时轮询
-> 把多种 output 形状归一为一个 URL -> 下载音频。

用户开启自有 Replicate Key 时直连，否则经由网关代理。
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from handsoff.clients.routing import ProviderRouter, ProxyRequestFactory
from handsoff.config import config
from handsoff.core.exceptions import MediaGenerationError, UpstreamHTTPError
from handsoff.core.logger import logger
from handsoff.core.providers.enums import LLMProvider
from handsoff.services.rate_limit.detector import RetryAfterDetector

TokenProvider = Callable[[], Awaitable[str]]
Sleep = Callable[[float], Awaitable[Any]]

# output 为对象时按顺序查找的 URL 字段
_OUTPUT_URL_FIELDS = ("audio", "url", "uri", "output")


def normalize_output_url(output: Any) -> str | None:
    """
    output 可能是:
    - "https://..."
    - ["https://...", ...]
    - {"audio": "https://...", "duration": 1.7}
    """
    if isinstance(output, str):
        return output or None
    if isinstance(output, list):
        return normalize_output_url(output[0]) if output else None
    if isinstance(output, dict):
        for field in _OUTPUT_URL_FIELDS:
            value = output.get(field)
            if isinstance(value, str) and value:
                return value
    return None


class ReplicateTTSClient:
    """Kokoro TTS 客户端"""

    PREDICTIONS_URL = "https://api.replicate.com/v1/predictions"

    MAX_SUBMIT_ATTEMPTS = 3
    DEFAULT_RETRY_AFTER_SECONDS = 5.0
    MAX_RETRY_AFTER_SECONDS = 30.0

    MAX_POLL_ATTEMPTS = 30
    POLL_INTERVAL_SECONDS = 1.0

    PENDING_STATUSES = frozenset({"starting", "processing"})
    FAILED_STATUSES = frozenset({"failed", "canceled"})

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        router: ProviderRouter,
        token_provider: TokenProvider,
        api_key: str | None = None,
        proxy_factory: ProxyRequestFactory | None = None,
        model_version: str | None = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self._http_client = http_client
        self._router = router
        self._token_provider = token_provider
        self._api_key = (api_key or "").strip() or None
        self._proxy_factory = proxy_factory or ProxyRequestFactory()
        self._model_version = model_version or config.replicate_tts_version
        self._sleep = sleep

    @property
    def uses_proxy(self) -> bool:
        return self._router.should_use_proxy_for_key(LLMProvider.REPLICATE, self._api_key)

    async def synthesize(self, text: str, voice: str, speed: float = 1.0) -> bytes:
        """
        生成语音

        Raises:
            UpstreamHTTPError: 提交 / 轮询 / 下载返回非 2xx（含重试耗尽的 429）
            MediaGenerationError: 预测失败、超时或无法解析输出
        """
        payload = {
            "version": self._model_version,
            "input": {"text": text, "voice": voice, "speed": speed},
        }
        prediction = await self.submit(payload)
        prediction = await self.wait_for_completion(prediction)

        url = normalize_output_url(prediction.get("output"))
        if url is None:
            raise MediaGenerationError(f"Unrecognized Replicate output: {prediction.get('output')!r}")
        return await self.fetch_artifact(url)

    # =========================================================================
    # 提交（有限次 429 重试）
    # =========================================================================

    async def submit(self, payload: dict[str, Any]) -> dict[str, Any]:
        attempt = 1
        while True:
            request = await self._build_request(
                "POST", self.PREDICTIONS_URL, body=payload, headers={"Prefer": "wait"}
            )
            response = await self._http_client.send(request)
            if response.status_code != 429:
                return self._parse_prediction(response)
            if attempt >= self.MAX_SUBMIT_ATTEMPTS:
                logger.error("Replicate 429，已重试 {} 次，放弃", self.MAX_SUBMIT_ATTEMPTS)
                raise UpstreamHTTPError(response.status_code, response.text)

            wait = RetryAfterDetector.detect(
                response.headers,
                response.content,
                default=self.DEFAULT_RETRY_AFTER_SECONDS,
                max_seconds=self.MAX_RETRY_AFTER_SECONDS,
            )
            logger.warning(
                "Replicate 429，{:.1f}s 后重试 ({}/{})", wait, attempt, self.MAX_SUBMIT_ATTEMPTS
            )
            await self._sleep(wait)
            attempt += 1

    # =========================================================================
    # 轮询
    # =========================================================================

    async def wait_for_completion(self, prediction: dict[str, Any]) -> dict[str, Any]:
        for _ in range(self.MAX_POLL_ATTEMPTS):
            status = prediction.get("status")
            if status in self.FAILED_STATUSES:
                raise MediaGenerationError(f"Replicate prediction {status}: {prediction.get('error')}")
            if status not in self.PENDING_STATUSES:
                return prediction

            poll_url = (prediction.get("urls") or {}).get("get")
            if not isinstance(poll_url, str) or not poll_url:
                raise MediaGenerationError("Replicate prediction has no poll URL")

            await self._sleep(self.POLL_INTERVAL_SECONDS)
            request = await self._build_request("GET", poll_url)
            prediction = self._parse_prediction(await self._http_client.send(request))

        raise MediaGenerationError(
            f"Replicate prediction {prediction.get('id')} did not finish after "
            f"{self.MAX_POLL_ATTEMPTS} polls"
        )

    async def fetch_artifact(self, url: str) -> bytes:
        response = await self._http_client.get(url)
        if not response.is_success:
            raise UpstreamHTTPError(response.status_code, response.text)
        return response.content

    # =========================================================================
    # 内部
    # =========================================================================

    async def _build_request(
        self,
        method: str,
        url: str,
        *,
        body: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Request:
        headers = dict(headers or {})
        if body is not None:
            headers["Content-Type"] = "application/json"

        if not self.uses_proxy:
            headers["Authorization"] = f"Bearer {self._api_key}"
            content = json.dumps(body).encode("utf-8") if body is not None else None
            return httpx.Request(method, url, headers=headers, content=content)

        envelope = self._proxy_factory.make_envelope(
            LLMProvider.REPLICATE, url, method=method, headers=headers, body_data=body
        )
        token = await self._token_provider()
        return self._proxy_factory.make_proxied_request(envelope.to_wire(), token)

    @staticmethod
    def _parse_prediction(response: httpx.Response) -> dict[str, Any]:
        if not response.is_success:
            raise UpstreamHTTPError(response.status_code, response.text)
        try:
            data = response.json()
        except ValueError as exc:
            raise MediaGenerationError("Replicate returned a non-JSON prediction") from exc
        if not isinstance(data, dict):
            raise MediaGenerationError("Replicate returned an unexpected prediction shape")
        return data


__all__ = ["ReplicateTTSClient", "normalize_output_url"]
