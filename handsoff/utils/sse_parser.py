"""
轻量 SSE 工具

- iter_data_payloads: 从一段文本中取出所有 data: 行的 JSON 负载
- SSELineBuffer: 按网络块喂入字节，只输出完整的行（跨块的半行留到下一块）
"""

from __future__ import annotations

import codecs
import json
from collections.abc import Iterator
from typing import Any

DONE_MARKER = "[DONE]"


def iter_data_lines(text: str) -> Iterator[str]:
    """逐个返回 data: 行的内容（已去掉前缀与空白，跳过空行和 [DONE]）"""
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line.startswith("data:"):
            continue
        data = line[5:].strip()
        if not data or data == DONE_MARKER:
            continue
        yield data


def iter_data_payloads(text: str) -> Iterator[Any]:
    """
    逐个返回 data: 行解析后的 JSON 值

    单行 JSON 解析失败只跳过该行，不影响同一块中的其他行。
    """
    for data in iter_data_lines(text):
        try:
            yield json.loads(data)
        except json.JSONDecodeError:
            continue


def parse_json_object(text: str) -> dict[str, Any] | None:
    """把整段文本当作单个 JSON 对象解析（用于非 SSE 的缓冲响应）"""
    stripped = text.strip()
    if not stripped.startswith("{"):
        return None
    try:
        value = json.loads(stripped)
    except json.JSONDecodeError:
        return None
    return value if isinstance(value, dict) else None


class SSELineBuffer:
    """
    按块接收字节，返回可以安全解析的完整文本

    UTF-8 多字节字符与 data: 行都可能被网络块切开，
    未完成的尾部暂存到下一次 feed()；flush() 在流结束时吐出剩余内容。
    """

    # 单行超过该长度仍未结束时直接丢弃，保证内存有界
    MAX_PENDING_CHARS = 1024 * 1024

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending = ""

    def feed(self, chunk: bytes) -> str:
        text = self._pending + self._decoder.decode(chunk)
        cut = text.rfind("\n")
        if cut < 0:
            self._pending = text if len(text) <= self.MAX_PENDING_CHARS else ""
            return ""
        self._pending = text[cut + 1 :]
        return text[: cut + 1]

    def flush(self) -> str:
        text = self._pending + self._decoder.decode(b"", final=True)
        self._pending = ""
        return text


__all__ = [
    "DONE_MARKER",
    "SSELineBuffer",
    "iter_data_lines",
    "iter_data_payloads",
    "parse_json_object",
]
