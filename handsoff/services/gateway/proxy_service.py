"""
代理网关

一次调用的状态流转：
    received -> authenticated -> quota-checked -> dispatched
             -> {上游错误透传 | 缓冲响应 | 流式响应} -> logged -> done

流式响应按解码后的字节逐块转发，每块转发之后才做用量提取；
用量只在流正常结束时定价并写入一次，写入失败不影响已发送的响应。
"""

from __future__ import annotations

import base64
import binascii
import json
import re
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlsplit

import httpx
from fastapi import Request
from fastapi.responses import Response, StreamingResponse
from pydantic import ValidationError
from sqlalchemy.orm import Session

from handsoff.clients.identity import AuthenticatedUser
from handsoff.config import config
from handsoff.core.error_utils import extract_error_message, extract_upstream_error_detail
from handsoff.core.exceptions import (
    HandsOffException,
    InvalidRequestError,
    ProviderKeyNotConfiguredError,
)
from handsoff.core.logger import logger, redact_url
from handsoff.core.providers.auth import get_auth_handler
from handsoff.core.providers.enums import LLMProvider, PricingProvider
from handsoff.core.providers.metadata import ProviderDefinition, resolve_gateway_provider
from handsoff.models.proxy import ProxyEnvelope
from handsoff.services.billing.models import UsageAccumulator
from handsoff.services.billing.usage_mapper import UsageExtractor
from handsoff.services.gateway.base import GatewayServiceBase
from handsoff.services.usage.estimation import (
    estimate_narration_seconds,
    estimate_tts_usage,
    is_sse_content_type,
)
from handsoff.services.usage.tracker import UsageStreamTracker
from handsoff.utils.http_utils import cors_headers, json_response

# 不透传给上游的 header（小写）
HEADERS_TO_REMOVE = frozenset(
    {
        "authorization",
        "x-api-key",
        "host",
        "content-length",
        "connection",
        "transfer-encoding",
        "accept-encoding",
        "apikey",
        "x-client-info",
    }
)

REPLICATE_HOST = "api.replicate.com"
REPLICATE_MODEL = "kokoro-82m"
DEFAULT_TRANSCRIPTION_MODEL = "voxtral-mini-latest"
TRANSCRIPTION_PRICING_FALLBACK = "voxtral-mini"

_GEMINI_MODEL_RE = re.compile(r"/models/([^:?/]+)")


@dataclass(frozen=True)
class ProxyCall:
    """单次代理调用的只读上下文"""

    request_id: str
    user: AuthenticatedUser
    definition: ProviderDefinition
    model: str
    endpoint: str
    method: str
    body_data: Any
    body: bytes | None = None

    @property
    def provider(self) -> LLMProvider:
        return self.definition.provider

    @property
    def pricing_provider(self) -> PricingProvider:
        return self.definition.pricing_provider

    @property
    def path(self) -> str:
        return urlsplit(self.endpoint).path.lower()

    @property
    def is_tts(self) -> bool:
        return "/audio/speech" in self.path or "/predictions" in self.path

    @property
    def is_transcription(self) -> bool:
        return "/audio/transcriptions" in self.path

    @property
    def is_replicate_submission(self) -> bool:
        host = (urlsplit(self.endpoint).hostname or "").lower()
        return self.provider == LLMProvider.REPLICATE and host == REPLICATE_HOST and self.method == "POST"

    @property
    def is_openai_tts(self) -> bool:
        return self.provider == LLMProvider.OPENAI and self.is_tts

    @property
    def pricing_fallback_key(self) -> str | None:
        return TRANSCRIPTION_PRICING_FALLBACK if self.provider == LLMProvider.MISTRAL else None


class ProxyGatewayService(GatewayServiceBase):
    """POST /v1/proxy"""

    async def handle(self, request: Request, db: Session) -> Response:
        request_id = self.new_request_id()
        try:
            user = await self.authenticate(request)
            if user is None:
                return json_response({"error": "Unauthorized"}, 401)

            rejection = self.admit(db, user, request_id)
            if rejection is not None:
                return rejection

            envelope = await self._parse_envelope(request)
            return await self.dispatch(envelope, user, request_id, inbound_headers=request.headers)
        except HandsOffException as exc:
            logger.warning("  [{}] 代理请求被拒绝: {}", request_id, exc.message)
            return json_response(exc.to_payload(), exc.status_code)
        except Exception as exc:
            logger.exception("  [{}] 代理内部错误", request_id)
            return json_response(
                {"error": "Internal server error", "message": extract_error_message(exc)}, 500
            )

    # =========================================================================
    # 信封解析
    # =========================================================================

    @staticmethod
    async def _parse_envelope(request: Request) -> ProxyEnvelope:
        raw = await request.body()
        try:
            return ProxyEnvelope.model_validate_json(raw)
        except ValidationError as exc:
            raise InvalidRequestError("Invalid request body") from exc

    @staticmethod
    def resolve_model_name(envelope: ProxyEnvelope, definition: ProviderDefinition) -> str:
        if definition.provider == LLMProvider.REPLICATE:
            return REPLICATE_MODEL
        if definition.provider == LLMProvider.GEMINI:
            match = _GEMINI_MODEL_RE.search(urlsplit(envelope.endpoint).path)
            if match:
                return match.group(1)
        body = envelope.body_data
        if isinstance(body, dict) and isinstance(body.get("model"), str) and body["model"]:
            return body["model"]
        if definition.provider == LLMProvider.MISTRAL and isinstance(body, dict) and "audio_base64" in body:
            return DEFAULT_TRANSCRIPTION_MODEL
        return "unknown"

    # =========================================================================
    # 转发
    # =========================================================================

    def _build_upstream_headers(
        self,
        envelope: ProxyEnvelope,
        definition: ProviderDefinition,
        inbound_headers: Any = None,
    ) -> dict[str, str]:
        headers = {k: v for k, v in envelope.headers.items() if k.lower() not in HEADERS_TO_REMOVE}

        # Prefer 等 header 允许从入站请求补齐
        if inbound_headers is not None:
            present = {k.lower() for k in headers}
            for name in definition.forwarded_headers:
                value = inbound_headers.get(name)
                if value and name not in present:
                    headers[name.capitalize()] = value
        return headers

    def _build_upstream_request(self, call: ProxyCall, headers: dict[str, str]) -> httpx.Request:
        body = call.body_data
        if call.is_transcription and isinstance(body, dict) and "audio_base64" in body:
            files, data = self._build_transcription_form(body)
            headers = {k: v for k, v in headers.items() if k.lower() != "content-type"}
            return self._http_client.build_request(
                call.method, call.endpoint, headers=headers, files=files, data=data
            )

        content = None
        if call.body is not None and call.method not in ("GET", "HEAD"):
            content = call.body
            if not any(k.lower() == "content-type" for k in headers):
                headers = {**headers, "Content-Type": "application/json"}
        return self._http_client.build_request(
            call.method, call.endpoint, headers=headers, content=content
        )

    @staticmethod
    def _build_transcription_form(
        body: dict[str, Any],
    ) -> tuple[dict[str, tuple[str, bytes, str]], dict[str, str]]:
        """bodyData.audio_base64 -> multipart 表单"""
        try:
            audio = base64.b64decode(body["audio_base64"], validate=True)
        except (binascii.Error, TypeError, ValueError) as exc:
            raise InvalidRequestError("Invalid audio_base64 payload") from exc

        filename = body.get("filename") or "audio.wav"
        content_type = body.get("content_type") or "audio/wav"
        data = {"model": body.get("model") or DEFAULT_TRANSCRIPTION_MODEL}
        for key, value in body.items():
            if key in ("audio_base64", "filename", "content_type", "model") or value is None:
                continue
            data[key] = value if isinstance(value, str) else json.dumps(value)
        return {"file": (filename, audio, content_type)}, data

    async def dispatch(
        self,
        envelope: ProxyEnvelope,
        user: AuthenticatedUser,
        request_id: str,
        *,
        inbound_headers: Any = None,
    ) -> Response:
        definition = resolve_gateway_provider(envelope.provider)
        api_key = config.get_provider_api_key(definition.env_key)
        if api_key is None:
            raise ProviderKeyNotConfiguredError(envelope.provider)

        headers = self._build_upstream_headers(envelope, definition, inbound_headers)
        headers, endpoint = get_auth_handler(definition.auth_method).inject(
            headers, envelope.endpoint, api_key
        )

        call = ProxyCall(
            request_id=request_id,
            user=user,
            definition=definition,
            model=self.resolve_model_name(envelope, definition),
            endpoint=endpoint,
            method=envelope.normalized_method,
            body_data=envelope.body_data,
            body=envelope.body_bytes(),
        )
        logger.info(
            "  [{}] -> {} {} {} (model={})",
            request_id,
            definition.provider.value,
            call.method,
            redact_url(endpoint),
            call.model,
        )

        upstream_request = self._build_upstream_request(call, headers)
        upstream = await self._http_client.send(upstream_request, stream=True)

        if not upstream.is_success:
            return await self._relay_error(upstream, call)

        content_type = upstream.headers.get("content-type", "")
        if is_sse_content_type(content_type):
            return StreamingResponse(
                self._relay_stream(upstream, call),
                status_code=upstream.status_code,
                media_type=content_type,
                headers={**cors_headers(), "Cache-Control": "no-cache", "Connection": "keep-alive"},
            )

        try:
            body = await upstream.aread()
        finally:
            await upstream.aclose()

        self._account_buffered(body, content_type, call)
        return Response(
            content=body,
            status_code=upstream.status_code,
            media_type=content_type or "application/json",
            headers=cors_headers(),
        )

    async def _relay_error(self, upstream: httpx.Response, call: ProxyCall) -> Response:
        """上游非 2xx：状态码与响应体原样返回，不记账"""
        try:
            body = await upstream.aread()
        finally:
            await upstream.aclose()

        if call.provider == LLMProvider.REPLICATE:
            media_type = "application/json"
        else:
            media_type = upstream.headers.get("content-type") or "text/plain"

        logger.warning(
            "  [{}] 上游返回 HTTP {}: {}",
            call.request_id,
            upstream.status_code,
            extract_upstream_error_detail(body),
        )
        return Response(
            content=body,
            status_code=upstream.status_code,
            media_type=media_type,
            headers=cors_headers(),
        )

    async def _relay_stream(self, upstream: httpx.Response, call: ProxyCall) -> AsyncIterator[bytes]:
        tracker = UsageStreamTracker(call.pricing_provider, call.request_id)
        try:
            async for chunk in upstream.aiter_bytes():
                # 先转发再计量
                yield chunk
                tracker.feed(chunk)
        finally:
            await upstream.aclose()

        # 仅在流正常结束时执行；客户端提前断开不会记账
        logger.debug("  [{}] 流结束: {} 个块", call.request_id, tracker.chunk_count)
        try:
            self._log_call_usage(call, self._apply_estimates(call, tracker.finish()))
        except Exception:
            logger.exception("  [{}] 流结束后记账失败", call.request_id)

    # =========================================================================
    # 记账
    # =========================================================================

    def _account_buffered(self, body: bytes, content_type: str, call: ProxyCall) -> None:
        usage: UsageAccumulator | None = None

        if call.provider == LLMProvider.REPLICATE and not call.is_replicate_submission:
            # 轮询请求不计费
            return

        lowered = content_type.lower()
        if not (call.is_openai_tts or call.is_replicate_submission) and (
            not lowered or "json" in lowered or lowered.startswith("text/")
        ):
            usage = UsageExtractor.extract(body, call.pricing_provider)

        self._log_call_usage(call, self._apply_estimates(call, usage))

    @staticmethod
    def _apply_estimates(call: ProxyCall, usage: UsageAccumulator | None) -> UsageAccumulator | None:
        """线上不报告用量的路径：按输入文本估算"""
        if usage is not None:
            return usage

        body = call.body_data if isinstance(call.body_data, dict) else {}
        if call.is_openai_tts:
            text = body.get("input")
            return estimate_tts_usage(text if isinstance(text, str) else "")

        if call.is_replicate_submission:
            payload_input = body.get("input")
            text = payload_input.get("text") if isinstance(payload_input, dict) else None
            return UsageAccumulator(
                prompt_seconds=estimate_narration_seconds(text if isinstance(text, str) else "")
            )
        return None

    def _log_call_usage(self, call: ProxyCall, usage: UsageAccumulator | None) -> None:
        self.record_usage(
            user=call.user,
            provider=call.pricing_provider,
            model=call.model,
            usage=usage,
            request_id=call.request_id,
            fallback_key=call.pricing_fallback_key,
        )


__all__ = ["ProxyCall", "ProxyGatewayService"]
