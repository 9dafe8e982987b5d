"""
网关路由

- OPTIONS /v1/proxy, /v1/transcribe: CORS 预检
- POST /v1/proxy: 代理信封转发
- POST /v1/transcribe: multipart 语音转写
- GET /health
"""

from __future__ import annotations

import httpx
from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response
from sqlalchemy.orm import Session

from handsoff.clients.http_client import get_http_client
from handsoff.clients.identity import IdentityClient
from handsoff.database import get_db
from handsoff.services.gateway import ProxyGatewayService, TranscriptionGatewayService
from handsoff.utils.http_utils import json_response, preflight_response

router = APIRouter(tags=["Gateway"])


def get_identity_client(
    http_client: httpx.AsyncClient = Depends(get_http_client),
) -> IdentityClient:
    return IdentityClient(http_client)


def get_proxy_service(
    http_client: httpx.AsyncClient = Depends(get_http_client),
    identity_client: IdentityClient = Depends(get_identity_client),
) -> ProxyGatewayService:
    return ProxyGatewayService(http_client, identity_client)


def get_transcription_service(
    http_client: httpx.AsyncClient = Depends(get_http_client),
    identity_client: IdentityClient = Depends(get_identity_client),
) -> TranscriptionGatewayService:
    return TranscriptionGatewayService(http_client, identity_client)


@router.options("/v1/proxy")
@router.options("/v1/transcribe")
async def preflight() -> Response:
    return preflight_response()


@router.post("/v1/proxy")
async def proxy(
    request: Request,
    db: Session = Depends(get_db),
    service: ProxyGatewayService = Depends(get_proxy_service),
) -> Response:
    return await service.handle(request, db)


@router.post("/v1/transcribe")
async def transcribe(
    request: Request,
    db: Session = Depends(get_db),
    service: TranscriptionGatewayService = Depends(get_transcription_service),
) -> Response:
    return await service.handle(request, db)


@router.get("/health")
async def health() -> Response:
    return json_response({"status": "ok"})
