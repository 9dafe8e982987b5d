"""
OpenAI Responses API 处理器
"""

from handsoff.api.handlers.openai.request_builder import ResponsesRequestBuilder
from handsoff.api.handlers.openai.stream_parser import ResponsesStreamDecoder

__all__ = ["ResponsesRequestBuilder", "ResponsesStreamDecoder"]
