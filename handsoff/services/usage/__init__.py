"""
用量服务

- estimation: 线上不返回用量时的估算（TTS、Replicate 朗读）
- tracker: 流式转发过程中逐块提取用量
- recording: 定价并写入账本
"""

from handsoff.services.usage.estimation import (
    estimate_narration_seconds,
    estimate_tts_usage,
    is_sse_content_type,
)
from handsoff.services.usage.recording import UsageRecorder
from handsoff.services.usage.tracker import UsageStreamTracker

__all__ = [
    "UsageRecorder",
    "UsageStreamTracker",
    "estimate_narration_seconds",
    "estimate_tts_usage",
    "is_sse_content_type",
]
