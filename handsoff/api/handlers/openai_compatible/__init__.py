"""
OpenAI 兼容 Chat Completions（xAI / Moonshot）
"""

from handsoff.api.handlers.openai_compatible.request_builder import (
    ChatCompletionsRequestBuilder,
    MoonshotRequestBuilder,
    XAIRequestBuilder,
)
from handsoff.api.handlers.openai_compatible.stream_parser import ChatCompletionsStreamDecoder

__all__ = [
    "ChatCompletionsRequestBuilder",
    "ChatCompletionsStreamDecoder",
    "MoonshotRequestBuilder",
    "XAIRequestBuilder",
]
