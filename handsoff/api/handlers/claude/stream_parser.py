"""
Anthropic Messages SSE 流解码
"""

from __future__ import annotations

from typing import Any

from handsoff.api.handlers.base.stream_parser import StreamDecoder


class ClaudeStreamDecoder(StreamDecoder):
    """
    Claude SSE 事件流

    事件类型：
    - message_start / message_delta / message_stop: 消息生命周期与 usage
    - content_block_start / content_block_stop: 内容块边界
    - content_block_delta: 增量（text_delta 为可见文本，thinking_delta 等忽略）
    - ping / error
    """

    EVENT_CONTENT_BLOCK_DELTA = "content_block_delta"
    DELTA_TEXT = "text_delta"

    def extract_text_delta(self, event: dict[str, Any]) -> str | None:
        if event.get("type") != self.EVENT_CONTENT_BLOCK_DELTA:
            return None
        delta = event.get("delta")
        if not isinstance(delta, dict) or delta.get("type") != self.DELTA_TEXT:
            return None
        text = delta.get("text")
        return text if isinstance(text, str) else None
