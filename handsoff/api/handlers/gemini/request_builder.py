"""
Gemini streamGenerateContent 请求构建
"""

from __future__ import annotations

import re
from typing import Any
from urllib.parse import quote, urlencode

from handsoff.api.handlers.base.request_builder import RequestBuilder
from handsoff.core.providers.enums import LLMProvider, ReasoningEffort
from handsoff.models.chat import RequestContext


class GeminiRequestBuilder(RequestBuilder):
    """
    POST /v1beta/models/{model}:streamGenerateContent?alt=sse[&key=...]

    思考配置按子模型区分：
    - flash: thinkingBudget 整数（开启 8192，关闭 0）
    - pro: thinkingLevel 定性档位，gemini-3-pro 只有 low/high，后续 pro 为 low/medium/high；
      pro 无法关闭思考，推理关闭时不发送 thinkingConfig
    """

    PROVIDER = LLMProvider.GEMINI
    BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"

    FLASH_THINKING_BUDGET = 8192

    # gemini-3-pro（含 -preview 等后缀）只有 low/high
    _TWO_LEVEL_PRO_RE = re.compile(r"^gemini-3-pro(?:$|[-_])")
    TWO_LEVEL_EFFORTS = (ReasoningEffort.LOW, ReasoningEffort.HIGH)
    THREE_LEVEL_EFFORTS = (ReasoningEffort.LOW, ReasoningEffort.MEDIUM, ReasoningEffort.HIGH)

    SAFETY_CATEGORIES: tuple[str, ...] = (
        "HARM_CATEGORY_HARASSMENT",
        "HARM_CATEGORY_HATE_SPEECH",
        "HARM_CATEGORY_SEXUALLY_EXPLICIT",
        "HARM_CATEGORY_DANGEROUS_CONTENT",
    )

    ROLE_MAP = {"user": "user", "assistant": "model"}

    def build_url(self, context: RequestContext, credential: str | None) -> str:
        query = [("alt", "sse")]
        if credential is not None:
            query.append(("key", credential))
        model = quote(context.model_id, safe="")
        return f"{self.BASE_URL}/{model}:streamGenerateContent?{urlencode(query)}"

    def build_thinking_config(self, context: RequestContext) -> dict[str, Any] | None:
        model = context.model_id.lower()

        if "flash" in model:
            budget = self.FLASH_THINKING_BUDGET if context.reasoning_enabled else 0
            return {"thinkingBudget": budget}

        if "pro" in model and context.reasoning_enabled:
            supported = (
                self.TWO_LEVEL_EFFORTS
                if self._TWO_LEVEL_PRO_RE.search(model)
                else self.THREE_LEVEL_EFFORTS
            )
            return {"thinkingLevel": context.reasoning_effort.clamp(supported).value}

        return None

    def build_body(self, context: RequestContext) -> dict[str, Any]:
        generation_config: dict[str, Any] = {
            "temperature": context.effective_temperature,
            "maxOutputTokens": context.effective_max_tokens,
            "responseMimeType": "text/plain",
        }
        thinking_config = self.build_thinking_config(context)
        if thinking_config is not None:
            generation_config["thinkingConfig"] = thinking_config

        body: dict[str, Any] = {
            "contents": [
                {"role": self.ROLE_MAP[m.role.value], "parts": [{"text": m.text}]}
                for m in context.messages
            ],
            "generationConfig": generation_config,
            "safetySettings": [
                {"category": category, "threshold": "BLOCK_NONE"}
                for category in self.SAFETY_CATEGORIES
            ],
        }

        if context.system_prompt:
            body["systemInstruction"] = {"parts": [{"text": context.system_prompt}]}

        return body
