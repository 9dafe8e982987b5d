"""
Provider 相关枚举定义
"""

from __future__ import annotations

from enum import Enum


class LLMProvider(str, Enum):
    """客户端侧 Provider 标识（同时是代理信封中的 provider 字段）"""

    OPENAI = "openai"
    CLAUDE = "claude"
    GEMINI = "gemini"
    XAI = "xai"
    MOONSHOT = "moonshot"
    MISTRAL = "mistral"  # 仅语音转写
    REPLICATE = "replicate"  # 仅异步 TTS


class PricingProvider(str, Enum):
    """计费表中的 Provider 键"""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GEMINI = "gemini"
    XAI = "xai"
    MOONSHOT = "moonshot"
    MISTRAL = "mistral"
    REPLICATE = "replicate"


class AuthMethod(str, Enum):
    """认证方式 - 决定如何向上游注入凭证"""

    BEARER = "bearer"  # Authorization: Bearer {key}
    API_KEY = "api_key"  # x-api-key: {key}
    QUERY_KEY = "query_key"  # ?key={key}（Gemini）


class BillingMode(str, Enum):
    """计费方式"""

    TOKEN = "token"  # 每百万 token
    DURATION = "duration"  # 每秒
    HYBRID = "hybrid"  # 输入按分钟 + 输出按百万 token（语音转写）


class ReasoningEffort(str, Enum):
    """
    规范化的推理强度，全序：minimal < low < medium < high < xhigh

    各 Provider 通过 clamp 映射到自己支持的子集。
    """

    MINIMAL = "minimal"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    XHIGH = "xhigh"

    @property
    def rank(self) -> int:
        return _EFFORT_ORDER.index(self)

    def clamp(self, supported: tuple[ReasoningEffort, ...]) -> ReasoningEffort:
        """
        映射到 supported 中不高于自身的最高档；若全部高于自身则取最低档

        不做插值，同一输入永远得到同一输出。
        """
        if not supported:
            raise ValueError("supported effort levels must not be empty")
        ordered = sorted(supported, key=lambda e: e.rank)
        candidates = [e for e in ordered if e.rank <= self.rank]
        return candidates[-1] if candidates else ordered[0]


_EFFORT_ORDER: tuple[ReasoningEffort, ...] = (
    ReasoningEffort.MINIMAL,
    ReasoningEffort.LOW,
    ReasoningEffort.MEDIUM,
    ReasoningEffort.HIGH,
    ReasoningEffort.XHIGH,
)


__all__ = [
    "AuthMethod",
    "BillingMode",
    "LLMProvider",
    "PricingProvider",
    "ReasoningEffort",
]
