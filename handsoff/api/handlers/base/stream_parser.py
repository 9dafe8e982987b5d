"""
流解码器基类

decode(chunk) 从一个原始块中取出第一段文本增量；控制事件、思考事件、
畸形 JSON 与空输入都返回 None，从不抛异常。
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from typing import Any

from handsoff.utils.sse_parser import DONE_MARKER, iter_data_payloads


class StreamDecoder(ABC):
    """Provider 流解码器基类"""

    def parse_chunk(self, chunk: bytes | str) -> list[dict[str, Any]]:
        """
        解析块中的所有 JSON 事件

        同时接受 "data: {...}" 多行格式与已去掉前缀的单个 JSON。

        Args:
            chunk: 原始数据（bytes 或 str）

        Returns:
            事件字典列表（非对象负载被丢弃）
        """
        if isinstance(chunk, bytes):
            text = chunk.decode("utf-8", errors="replace")
        else:
            text = chunk or ""

        if "data:" in text:
            return [p for p in iter_data_payloads(text) if isinstance(p, dict)]

        stripped = text.strip()
        if not stripped or stripped == DONE_MARKER:
            return []
        try:
            payload = json.loads(stripped)
        except json.JSONDecodeError:
            return []
        return [payload] if isinstance(payload, dict) else []

    def decode(self, chunk: bytes | str) -> str | None:
        """返回块中第一段文本增量"""
        for event in self.parse_chunk(chunk):
            text = self.extract_text_delta(event)
            if text:
                return text
        return None

    @abstractmethod
    def extract_text_delta(self, event: dict[str, Any]) -> str | None:
        """从单个事件中提取文本增量，非文本事件返回 None"""


__all__ = ["StreamDecoder"]
