"""
按 Provider 分派请求构建器与流解码器

Provider 是封闭集合：调用方按 LLMProvider 取实现，不做运行时类型判断。
"""

from __future__ import annotations

from types import MappingProxyType

from handsoff.api.handlers.base.request_builder import ProviderRequest, RequestBuilder
from handsoff.api.handlers.base.stream_parser import StreamDecoder
from handsoff.api.handlers.claude import ClaudeRequestBuilder, ClaudeStreamDecoder
from handsoff.api.handlers.gemini import GeminiRequestBuilder, GeminiStreamDecoder
from handsoff.api.handlers.openai import ResponsesRequestBuilder, ResponsesStreamDecoder
from handsoff.api.handlers.openai_compatible import (
    ChatCompletionsStreamDecoder,
    MoonshotRequestBuilder,
    XAIRequestBuilder,
)
from handsoff.core.exceptions import NotAnLLMProviderError
from handsoff.core.providers.enums import LLMProvider
from handsoff.models.chat import RequestContext

_REQUEST_BUILDERS: dict[LLMProvider, RequestBuilder] = {
    LLMProvider.OPENAI: ResponsesRequestBuilder(),
    LLMProvider.CLAUDE: ClaudeRequestBuilder(),
    LLMProvider.GEMINI: GeminiRequestBuilder(),
    LLMProvider.XAI: XAIRequestBuilder(),
    LLMProvider.MOONSHOT: MoonshotRequestBuilder(),
}

_chat_completions_decoder = ChatCompletionsStreamDecoder()

_STREAM_DECODERS: dict[LLMProvider, StreamDecoder] = {
    LLMProvider.OPENAI: ResponsesStreamDecoder(),
    LLMProvider.CLAUDE: ClaudeStreamDecoder(),
    LLMProvider.GEMINI: GeminiStreamDecoder(),
    LLMProvider.XAI: _chat_completions_decoder,
    LLMProvider.MOONSHOT: _chat_completions_decoder,
}

REQUEST_BUILDERS = MappingProxyType(_REQUEST_BUILDERS)
STREAM_DECODERS = MappingProxyType(_STREAM_DECODERS)


def get_request_builder(provider: LLMProvider) -> RequestBuilder:
    """
    Raises:
        NotAnLLMProviderError: 非对话类 Provider（mistral / replicate）
    """
    builder = _REQUEST_BUILDERS.get(provider)
    if builder is None:
        raise NotAnLLMProviderError(provider.value)
    return builder


def get_stream_decoder(provider: LLMProvider) -> StreamDecoder:
    decoder = _STREAM_DECODERS.get(provider)
    if decoder is None:
        raise NotAnLLMProviderError(provider.value)
    return decoder


def build_provider_request(
    provider: LLMProvider, context: RequestContext, *, use_proxy: bool = False
) -> ProviderRequest:
    return get_request_builder(provider).build(context, use_proxy=use_proxy)


def decode_chunk(provider: LLMProvider, chunk: bytes | str) -> str | None:
    return get_stream_decoder(provider).decode(chunk)


__all__ = [
    "REQUEST_BUILDERS",
    "STREAM_DECODERS",
    "build_provider_request",
    "decode_chunk",
    "get_request_builder",
    "get_stream_decoder",
]
