"""
OpenAI Responses SSE 流解码
"""

from __future__ import annotations

from typing import Any

from handsoff.api.handlers.base.stream_parser import StreamDecoder


class ResponsesStreamDecoder(StreamDecoder):
    """
    Responses API 事件流

    只有 response.output_text.delta 携带可见文本；
    response.created / response.completed / 工具调用 / 推理摘要等事件返回 None。
    """

    EVENT_OUTPUT_TEXT_DELTA = "response.output_text.delta"

    def extract_text_delta(self, event: dict[str, Any]) -> str | None:
        if event.get("type") != self.EVENT_OUTPUT_TEXT_DELTA:
            return None
        delta = event.get("delta")
        return delta if isinstance(delta, str) else None
