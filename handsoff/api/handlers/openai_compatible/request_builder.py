"""
OpenAI 兼容 Chat Completions 请求构建

xAI 与 Moonshot 共用消息结构，差异集中在类属性：
端点、token 上限字段名、推理能力判定。
"""

from __future__ import annotations

from typing import Any, ClassVar

from handsoff.api.handlers.base.request_builder import RequestBuilder
from handsoff.core.providers.enums import LLMProvider, ReasoningEffort
from handsoff.models.chat import RequestContext


class ChatCompletionsRequestBuilder(RequestBuilder):
    """
    Chat Completions 基类

    推理开启且模型具备可调推理能力时，reasoning_effort 固定为最高档，
    与请求的档位无关；其余情况完全不发送该字段。
    """

    ENDPOINT: ClassVar[str]
    MAX_TOKENS_FIELD: ClassVar[str] = "max_tokens"
    STRONGEST_EFFORT: ClassVar[ReasoningEffort] = ReasoningEffort.HIGH
    SEARCH_PARAMETERS: ClassVar[dict[str, Any]] = {"mode": "auto"}

    def build_url(self, context: RequestContext, credential: str | None) -> str:
        return self.ENDPOINT

    def supports_reasoning_effort(self, model_id: str) -> bool:
        return False

    def build_messages(self, context: RequestContext) -> list[dict[str, Any]]:
        messages: list[dict[str, Any]] = []
        if context.system_prompt:
            messages.append(
                {"role": "system", "content": [{"type": "text", "text": context.system_prompt}]}
            )
        for message in context.messages:
            messages.append(
                {"role": message.role.value, "content": [{"type": "text", "text": message.text}]}
            )
        return messages

    def build_body(self, context: RequestContext) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": context.model_id,
            "messages": self.build_messages(context),
            "temperature": context.effective_temperature,
            self.MAX_TOKENS_FIELD: context.effective_max_tokens,
            "stream": True,
            "stream_options": {"include_usage": True},
        }

        if context.reasoning_enabled and self.supports_reasoning_effort(context.model_id):
            body["reasoning_effort"] = self.STRONGEST_EFFORT.value

        if context.web_search_enabled:
            body["search_parameters"] = dict(self.SEARCH_PARAMETERS)

        return body


class XAIRequestBuilder(ChatCompletionsRequestBuilder):
    """xAI Grok"""

    PROVIDER = LLMProvider.XAI
    ENDPOINT = "https://api.x.ai/v1/chat/completions"
    MAX_TOKENS_FIELD = "max_completion_tokens"

    # 只推理模型不接受 reasoning_effort
    REASONING_ONLY_MODELS: ClassVar[frozenset[str]] = frozenset({"grok-4", "grok-4-0709"})

    def supports_reasoning_effort(self, model_id: str) -> bool:
        normalized = model_id.lower()
        if "non-reasoning" in normalized or normalized in self.REASONING_ONLY_MODELS:
            return False
        return normalized.startswith("grok")


class MoonshotRequestBuilder(ChatCompletionsRequestBuilder):
    """Moonshot Kimi"""

    PROVIDER = LLMProvider.MOONSHOT
    ENDPOINT = "https://api.moonshot.ai/v1/chat/completions"
    MAX_TOKENS_FIELD = "max_tokens"

    def supports_reasoning_effort(self, model_id: str) -> bool:
        return "thinking" in model_id.lower()
