"""
Anthropic Messages API 处理器
"""

from handsoff.api.handlers.claude.request_builder import ClaudeRequestBuilder
from handsoff.api.handlers.claude.stream_parser import ClaudeStreamDecoder

__all__ = ["ClaudeRequestBuilder", "ClaudeStreamDecoder"]
