"""
网关服务

- ProxyGatewayService: 通用代理（POST /v1/proxy）
- TranscriptionGatewayService: 语音转写直传（POST /v1/transcribe）
"""

from handsoff.services.gateway.proxy_service import ProxyCall, ProxyGatewayService
from handsoff.services.gateway.transcription_service import TranscriptionGatewayService

__all__ = ["ProxyCall", "ProxyGatewayService", "TranscriptionGatewayService"]
