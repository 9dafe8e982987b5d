"""
OpenAI 兼容 Chat Completions SSE 流解码

- 每个 chunk 的 choices[0].delta.content 为文本增量
- 终止 chunk 的 choices 为空数组，只带 usage
- 流结束时发送 data: [DONE]
"""

from __future__ import annotations

from typing import Any

from handsoff.api.handlers.base.stream_parser import StreamDecoder


class ChatCompletionsStreamDecoder(StreamDecoder):
    def extract_text_delta(self, event: dict[str, Any]) -> str | None:
        choices = event.get("choices")
        if not isinstance(choices, list) or not choices:
            return None
        first = choices[0]
        if not isinstance(first, dict):
            return None
        delta = first.get("delta")
        if not isinstance(delta, dict):
            return None
        content = delta.get("content")
        return content if isinstance(content, str) else None
