"""
OpenAI Responses API 请求构建
"""

from __future__ import annotations

import re
from typing import Any

from handsoff.api.handlers.base.request_builder import RequestBuilder
from handsoff.core.providers.enums import LLMProvider
from handsoff.models.chat import RequestContext


class ResponsesRequestBuilder(RequestBuilder):
    """
    POST /v1/responses

    - input: 按角色区分 input_text / output_text
    - instructions: 系统提示
    - reasoning.effort: 5 档原样透传（仅推理模型）
    - tools: 开启联网时注入 web_search_preview
    """

    PROVIDER = LLMProvider.OPENAI
    ENDPOINT = "https://api.openai.com/v1/responses"

    WEB_SEARCH_TOOL = {"type": "web_search_preview"}

    # gpt-5 系列、codex、o 系列支持 reasoning 参数
    _REASONING_MODEL_RE = re.compile(r"^(?:gpt-5|codex|o\d)")

    def build_url(self, context: RequestContext, credential: str | None) -> str:
        return self.ENDPOINT

    @classmethod
    def supports_reasoning(cls, model_id: str) -> bool:
        return bool(cls._REASONING_MODEL_RE.search(model_id.lower()))

    def build_body(self, context: RequestContext) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": context.model_id,
            "input": [
                {
                    "role": message.role.value,
                    "content": [
                        {
                            "type": "output_text" if self.is_assistant(message.role) else "input_text",
                            "text": message.text,
                        }
                    ],
                }
                for message in context.messages
            ],
            "stream": True,
            "temperature": context.effective_temperature,
            "max_output_tokens": context.effective_max_tokens,
        }

        if context.system_prompt:
            body["instructions"] = context.system_prompt

        if context.reasoning_enabled and self.supports_reasoning(context.model_id):
            body["reasoning"] = {"effort": context.reasoning_effort.value}

        if context.web_search_enabled:
            body["tools"] = [dict(self.WEB_SEARCH_TOOL)]

        return body
