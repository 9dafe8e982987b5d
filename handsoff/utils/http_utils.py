"""
网关响应工具
"""

from __future__ import annotations

from typing import Any

from fastapi.responses import JSONResponse, Response

from handsoff.config import config

CORS_ALLOW_HEADERS = "authorization, x-client-info, apikey, content-type, prefer"
CORS_ALLOW_METHODS = "POST, OPTIONS"


def cors_headers() -> dict[str, str]:
    return {
        "Access-Control-Allow-Origin": config.cors_allow_origin,
        "Access-Control-Allow-Headers": CORS_ALLOW_HEADERS,
        "Access-Control-Allow-Methods": CORS_ALLOW_METHODS,
    }


def json_response(
    payload: dict[str, Any],
    status_code: int = 200,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """带 CORS 头的 JSON 响应"""
    return JSONResponse(
        content=payload,
        status_code=status_code,
        headers={**cors_headers(), **(headers or {})},
    )


def preflight_response() -> Response:
    return Response(content="ok", status_code=200, headers=cors_headers())


__all__ = ["cors_headers", "json_response", "preflight_response"]
