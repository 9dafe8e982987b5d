"""
语音转写网关（multipart 直传）

POST /v1/transcribe：表单字段 file（必需）、model（默认 voxtral-mini-latest），
其余字符串字段原样转发给 Mistral；按音频时长 + 输出 token 的混合方式计费。
"""

from __future__ import annotations

from fastapi import Request
from fastapi.responses import Response
from sqlalchemy.orm import Session
from starlette.datastructures import UploadFile

from handsoff.config import config
from handsoff.core.error_utils import extract_error_message
from handsoff.core.exceptions import HandsOffException, ProviderKeyNotConfiguredError
from handsoff.core.logger import logger
from handsoff.core.providers.enums import LLMProvider, PricingProvider
from handsoff.core.providers.metadata import get_provider_definition
from handsoff.services.billing.usage_mapper import UsageExtractor
from handsoff.services.gateway.base import GatewayServiceBase
from handsoff.services.gateway.proxy_service import (
    DEFAULT_TRANSCRIPTION_MODEL,
    TRANSCRIPTION_PRICING_FALLBACK,
)
from handsoff.utils.http_utils import cors_headers, json_response


class TranscriptionGatewayService(GatewayServiceBase):
    MISTRAL_TRANSCRIPTION_URL = "https://api.mistral.ai/v1/audio/transcriptions"

    async def handle(self, request: Request, db: Session) -> Response:
        request_id = self.new_request_id()
        try:
            user = await self.authenticate(request)
            if user is None:
                return json_response({"error": "Unauthorized"}, 401)

            rejection = self.admit(db, user, request_id)
            if rejection is not None:
                return rejection

            form = await request.form()
            upload = form.get("file")
            if not isinstance(upload, UploadFile):
                return json_response({"error": "Missing audio file"}, 400)

            definition = get_provider_definition(LLMProvider.MISTRAL)
            api_key = config.get_provider_api_key(definition.env_key)
            if api_key is None:
                raise ProviderKeyNotConfiguredError(definition.provider.value)

            model = form.get("model")
            if not isinstance(model, str) or not model.strip():
                model = DEFAULT_TRANSCRIPTION_MODEL
            data = {
                key: value
                for key, value in form.multi_items()
                if key not in ("file", "model") and isinstance(value, str)
            }
            data["model"] = model

            audio = await upload.read()
            logger.info(
                "  [{}] -> mistral 转写: {} ({} bytes, model={})",
                request_id,
                upload.filename,
                len(audio),
                model,
            )

            upstream = await self._http_client.post(
                self.MISTRAL_TRANSCRIPTION_URL,
                headers={"Authorization": f"Bearer {api_key}"},
                files={
                    "file": (
                        upload.filename or "audio.wav",
                        audio,
                        upload.content_type or "audio/wav",
                    )
                },
                data=data,
            )

            if not upstream.is_success:
                logger.warning("  [{}] 转写上游返回 HTTP {}", request_id, upstream.status_code)
                return Response(
                    content=upstream.content,
                    status_code=upstream.status_code,
                    media_type=upstream.headers.get("content-type") or "text/plain",
                    headers=cors_headers(),
                )

            usage = UsageExtractor.extract(upstream.content, PricingProvider.MISTRAL)
            self.record_usage(
                user=user,
                provider=PricingProvider.MISTRAL,
                model=model,
                usage=usage,
                request_id=request_id,
                fallback_key=TRANSCRIPTION_PRICING_FALLBACK,
            )
            return Response(
                content=upstream.content,
                status_code=upstream.status_code,
                media_type=upstream.headers.get("content-type") or "application/json",
                headers=cors_headers(),
            )
        except HandsOffException as exc:
            return json_response(exc.to_payload(), exc.status_code)
        except Exception as exc:
            logger.exception("  [{}] 转写内部错误", request_id)
            return json_response(
                {"error": "Internal server error", "message": extract_error_message(exc)}, 500
            )


__all__ = ["TranscriptionGatewayService"]
