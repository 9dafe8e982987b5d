"""
规范化的对话数据模型

Message / RequestContext 构造后不可变；RequestBuilder 只读取它们。
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType

from handsoff.core.providers.enums import LLMProvider, ReasoningEffort


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    ASSISTANT_ERROR = "assistant_error"  # 仅本地展示，不发送给上游


@dataclass(frozen=True, slots=True)
class Message:
    role: MessageRole
    text: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def is_sendable(self) -> bool:
        return self.role in (MessageRole.USER, MessageRole.ASSISTANT) and bool(self.text.strip())


@dataclass(frozen=True)
class RequestContext:
    """
    一个对话回合的 Provider 无关描述

    Attributes:
        messages: 按时间顺序的消息（仅 user/assistant）
        model_id: 目标模型 ID
        system_prompt: 可选系统提示
        temperature / max_tokens: 调用方请求值
        temperature_cap / token_cap: 上限，构建请求时取 min
        credentials: Provider -> 用户自有 Key（可选）
        web_search_enabled / reasoning_enabled: 开关
        reasoning_effort: 5 档推理强度
    """

    messages: tuple[Message, ...]
    model_id: str
    system_prompt: str | None = None
    temperature: float = 0.7
    max_tokens: int = 4096
    temperature_cap: float = 1.0
    token_cap: int = 8192
    credentials: Mapping[LLMProvider, str] = field(default_factory=lambda: MappingProxyType({}))
    web_search_enabled: bool = False
    reasoning_enabled: bool = False
    reasoning_effort: ReasoningEffort = ReasoningEffort.MEDIUM

    def __post_init__(self) -> None:
        # 冻结可变容器；只保留可发送给上游的消息
        object.__setattr__(self, "messages", tuple(m for m in self.messages if m.is_sendable))
        object.__setattr__(self, "credentials", MappingProxyType(dict(self.credentials)))

    @classmethod
    def from_history(cls, history: Iterable[Message], model_id: str, **kwargs) -> RequestContext:
        """从会话历史构建；assistant_error 与空白消息在构造时被丢弃"""
        return cls(
            messages=tuple(history),
            model_id=model_id,
            **kwargs,
        )

    @property
    def effective_temperature(self) -> float:
        return min(self.temperature, self.temperature_cap)

    @property
    def effective_max_tokens(self) -> int:
        return min(self.max_tokens, self.token_cap)

    def credential_for(self, provider: LLMProvider) -> str | None:
        value = (self.credentials.get(provider) or "").strip()
        return value or None


__all__ = ["Message", "MessageRole", "RequestContext"]
