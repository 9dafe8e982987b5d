"""
Google Gemini streamGenerateContent 处理器
"""

from handsoff.api.handlers.gemini.request_builder import GeminiRequestBuilder
from handsoff.api.handlers.gemini.stream_parser import GeminiStreamDecoder

__all__ = ["GeminiRequestBuilder", "GeminiStreamDecoder"]
