"""
Anthropic Messages API 请求构建
"""

from __future__ import annotations

import re
from typing import Any

from handsoff.api.handlers.base.request_builder import RequestBuilder
from handsoff.core.providers.enums import LLMProvider, ReasoningEffort
from handsoff.models.chat import MessageRole, RequestContext


class ClaudeRequestBuilder(RequestBuilder):
    """
    POST /v1/messages

    - system 为顶层字段
    - 最后一个 user 消息的内容块加 ephemeral cache_control，其他块不加
    - 支持思考的模型在推理开启时发送 adaptive thinking + effort，此时不发送 temperature
    """

    PROVIDER = LLMProvider.CLAUDE
    ENDPOINT = "https://api.anthropic.com/v1/messages"
    ANTHROPIC_VERSION = "2023-06-01"
    EXTRA_HEADERS = {"anthropic-version": ANTHROPIC_VERSION}

    CACHE_CONTROL = {"type": "ephemeral"}

    # Anthropic 4 档 effort；规范档位先 clamp 到这些档，再映射为线上名称
    SUPPORTED_EFFORTS: tuple[ReasoningEffort, ...] = (
        ReasoningEffort.LOW,
        ReasoningEffort.MEDIUM,
        ReasoningEffort.HIGH,
        ReasoningEffort.XHIGH,
    )
    EFFORT_WIRE_NAMES: dict[ReasoningEffort, str] = {
        ReasoningEffort.LOW: "low",
        ReasoningEffort.MEDIUM: "medium",
        ReasoningEffort.HIGH: "high",
        ReasoningEffort.XHIGH: "max",
    }

    _THINKING_MODEL_RE = re.compile(r"(?:sonnet|opus)-4")

    def build_url(self, context: RequestContext, credential: str | None) -> str:
        return self.ENDPOINT

    @classmethod
    def supports_thinking(cls, model_id: str) -> bool:
        return bool(cls._THINKING_MODEL_RE.search(model_id.lower()))

    @classmethod
    def effort_for(cls, effort: ReasoningEffort) -> str:
        return cls.EFFORT_WIRE_NAMES[effort.clamp(cls.SUPPORTED_EFFORTS)]

    def build_messages(self, context: RequestContext) -> list[dict[str, Any]]:
        messages: list[dict[str, Any]] = [
            {"role": m.role.value, "content": [{"type": "text", "text": m.text}]}
            for m in context.messages
        ]

        last_user_index = next(
            (
                i
                for i in range(len(context.messages) - 1, -1, -1)
                if context.messages[i].role == MessageRole.USER
            ),
            None,
        )
        if last_user_index is not None:
            messages[last_user_index]["content"][0]["cache_control"] = dict(self.CACHE_CONTROL)
        return messages

    def build_body(self, context: RequestContext) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": context.model_id,
            "messages": self.build_messages(context),
            "max_tokens": context.effective_max_tokens,
            "stream": True,
        }

        if context.system_prompt:
            body["system"] = context.system_prompt

        thinking = context.reasoning_enabled and self.supports_thinking(context.model_id)
        if thinking:
            body["thinking"] = {"type": "adaptive"}
            body["output_config"] = {"effort": self.effort_for(context.reasoning_effort)}
        else:
            body["temperature"] = context.effective_temperature

        return body
