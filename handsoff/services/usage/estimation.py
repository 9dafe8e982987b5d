"""
用量估算

部分路径（OpenAI TTS、Replicate 异步朗读）不在响应中报告用量，
按输入文本长度估算后再走同一套定价流程。
"""

from __future__ import annotations

import math

from handsoff.services.billing.models import UsageAccumulator

# 约 4 个字符 ≈ 1 个输入 token
CHARS_PER_TOKEN = 4
# 每个文本 token 对应的音频输出 token
AUDIO_TOKENS_PER_TEXT_TOKEN = 6.25

# 朗读语速：每分钟约 750 个字符
CHARS_PER_MINUTE = 750
MIN_NARRATION_MINUTES = 0.005


def estimate_tts_usage(text: str | None) -> UsageAccumulator:
    """文本 -> (输入 token, 音频输出 token)"""
    input_tokens = math.ceil(len(text or "") / CHARS_PER_TOKEN)
    output_tokens = math.ceil(input_tokens * AUDIO_TOKENS_PER_TEXT_TOKEN)
    return UsageAccumulator(input_tokens=input_tokens, output_tokens=output_tokens)


def estimate_narration_seconds(text: str | None) -> float:
    """文本 -> 朗读秒数（带下限）"""
    minutes = max(MIN_NARRATION_MINUTES, len(text or "") / CHARS_PER_MINUTE)
    return minutes * 60


def is_sse_content_type(content_type: str | None) -> bool:
    return "text/event-stream" in (content_type or "").lower()


__all__ = [
    "estimate_narration_seconds",
    "estimate_tts_usage",
    "is_sse_content_type",
]
