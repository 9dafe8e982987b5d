"""
错误消息处理工具函数
"""

from __future__ import annotations

import json


def extract_error_message(error: Exception, status_code: int | None = None) -> str:
    """
    从异常中提取错误消息，优先使用上游原始响应

    Args:
        error: 异常对象
        status_code: 可选的 HTTP 状态码

    Returns:
        错误消息字符串
    """
    upstream_response = getattr(error, "upstream_response", None)
    if isinstance(upstream_response, str) and upstream_response.strip():
        return upstream_response

    # httpx 超时等异常的 str 可能为空
    error_str = str(error) or repr(error)
    if status_code is not None:
        return f"HTTP {status_code}: {error_str}"
    return error_str


def extract_upstream_error_detail(body: str | bytes) -> str:
    """
    从上游错误响应体中提取可读消息

    兼容 {"error": "..."}、{"error": {"message": "..."}}、{"detail": "..."}，
    无法解析时原样返回（截断到 500 字符）。
    """
    text = body.decode("utf-8", errors="replace") if isinstance(body, bytes) else body
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return text[:500]

    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            return error["message"]
        if isinstance(error, str):
            return error
        detail = data.get("detail")
        if isinstance(detail, str):
            return detail
    return text[:500]

