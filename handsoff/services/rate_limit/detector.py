"""
429 等待时长解析

优先读取 Retry-After 头（秒数或 HTTP 日期），其次读取 JSON 响应体中的
retry_after 字段，都没有时使用调用方给的默认值；结果截断到 [0, max_seconds]。
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any


class RetryAfterDetector:
    """Retry-After 解析（无状态）"""

    @classmethod
    def detect(
        cls,
        headers: Mapping[str, str],
        body: bytes | str | None,
        *,
        default: float,
        max_seconds: float,
    ) -> float:
        """
        Args:
            headers: 429 响应头（大小写不敏感的映射，如 httpx.Headers）
            body: 429 响应体
            default: 两处都没有时的等待秒数
            max_seconds: 等待上限

        Returns:
            等待秒数
        """
        seconds = cls._parse_retry_after_header(headers.get("retry-after"))
        if seconds is None:
            seconds = cls._parse_retry_after_body(body)
        if seconds is None:
            seconds = default
        return min(max(seconds, 0.0), max_seconds)

    @staticmethod
    def _parse_retry_after_header(value: str | None) -> float | None:
        if not value:
            return None
        value = value.strip()
        try:
            return float(value)
        except ValueError:
            pass
        try:
            retry_at = parsedate_to_datetime(value)
        except (TypeError, ValueError):
            return None
        if retry_at.tzinfo is None:
            retry_at = retry_at.replace(tzinfo=timezone.utc)
        return max((retry_at - datetime.now(timezone.utc)).total_seconds(), 0.0)

    @staticmethod
    def _parse_retry_after_body(body: bytes | str | None) -> float | None:
        if not body:
            return None
        try:
            data: Any = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError):
            return None
        if not isinstance(data, dict):
            return None
        value = data.get("retry_after")
        if isinstance(value, bool):
            return None
        if isinstance(value, (int, float)):
            return float(value)
        if isinstance(value, str):
            try:
                return float(value)
            except ValueError:
                return None
        return None


__all__ = ["RetryAfterDetector"]
