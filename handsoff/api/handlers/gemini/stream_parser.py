"""
Gemini SSE 流解码

candidates[0].content.parts 中第一个非思考文本块为增量；
thought=true 的部分属于思考摘要，不展示。
"""

from __future__ import annotations

from typing import Any

from handsoff.api.handlers.base.stream_parser import StreamDecoder


class GeminiStreamDecoder(StreamDecoder):
    def extract_text_delta(self, event: dict[str, Any]) -> str | None:
        candidates = event.get("candidates")
        if not isinstance(candidates, list) or not candidates:
            return None
        candidate = candidates[0]
        if not isinstance(candidate, dict):
            return None
        content = candidate.get("content")
        parts = content.get("parts") if isinstance(content, dict) else None
        if not isinstance(parts, list):
            return None

        for part in parts:
            if not isinstance(part, dict) or part.get("thought") is True:
                continue
            text = part.get("text")
            if isinstance(text, str) and text:
                return text
        return None
