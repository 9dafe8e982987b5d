"""
Provider 元数据

网关侧以小写 provider 字符串为键（兼容 "anthropic"、"moonshot ai" 等别名），
得到计费键、环境变量前缀和凭证注入方式；客户端侧提供按模型 ID 推断 Provider。
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from types import MappingProxyType

from handsoff.core.exceptions import UnsupportedProviderError
from handsoff.core.providers.enums import AuthMethod, LLMProvider, PricingProvider


@dataclass(frozen=True, slots=True)
class ProviderDefinition:
    """
    单个 Provider 的静态定义

    - aliases: 网关接受的 provider 别名（全小写）
    - env_key: 服务端 Key 的环境变量前缀，实际读取 {env_key}_API_KEY
    - is_llm: 是否为对话类 Provider（可构建聊天请求）
    - forwarded_headers: 需要从客户端信封透传给上游的 header（小写）
    """

    provider: LLMProvider
    pricing_provider: PricingProvider
    env_key: str
    auth_method: AuthMethod = AuthMethod.BEARER
    aliases: Sequence[str] = field(default_factory=tuple)
    is_llm: bool = True
    forwarded_headers: frozenset[str] = field(default_factory=frozenset)


_PROVIDER_DEFINITIONS: dict[LLMProvider, ProviderDefinition] = {
    LLMProvider.OPENAI: ProviderDefinition(
        provider=LLMProvider.OPENAI,
        pricing_provider=PricingProvider.OPENAI,
        env_key="OPENAI",
    ),
    LLMProvider.CLAUDE: ProviderDefinition(
        provider=LLMProvider.CLAUDE,
        pricing_provider=PricingProvider.ANTHROPIC,
        env_key="ANTHROPIC",
        auth_method=AuthMethod.API_KEY,
        aliases=("anthropic",),
        forwarded_headers=frozenset({"anthropic-version", "anthropic-beta"}),
    ),
    LLMProvider.GEMINI: ProviderDefinition(
        provider=LLMProvider.GEMINI,
        pricing_provider=PricingProvider.GEMINI,
        env_key="GEMINI",
        auth_method=AuthMethod.QUERY_KEY,
    ),
    LLMProvider.XAI: ProviderDefinition(
        provider=LLMProvider.XAI,
        pricing_provider=PricingProvider.XAI,
        env_key="XAI",
    ),
    LLMProvider.MOONSHOT: ProviderDefinition(
        provider=LLMProvider.MOONSHOT,
        pricing_provider=PricingProvider.MOONSHOT,
        env_key="MOONSHOT",
        aliases=("moonshot ai",),
    ),
    LLMProvider.MISTRAL: ProviderDefinition(
        provider=LLMProvider.MISTRAL,
        pricing_provider=PricingProvider.MISTRAL,
        env_key="MISTRAL",
        is_llm=False,
    ),
    LLMProvider.REPLICATE: ProviderDefinition(
        provider=LLMProvider.REPLICATE,
        pricing_provider=PricingProvider.REPLICATE,
        env_key="REPLICATE",
        is_llm=False,
        forwarded_headers=frozenset({"prefer"}),
    ),
}

PROVIDER_DEFINITIONS = MappingProxyType(_PROVIDER_DEFINITIONS)

_ALIAS_INDEX: dict[str, ProviderDefinition] = {
    alias: definition
    for definition in _PROVIDER_DEFINITIONS.values()
    for alias in (definition.provider.value, *definition.aliases)
}


def get_provider_definition(provider: LLMProvider) -> ProviderDefinition:
    return _PROVIDER_DEFINITIONS[provider]


def resolve_gateway_provider(name: str | None) -> ProviderDefinition:
    """
    解析信封中的 provider 字段（大小写不敏感）

    Raises:
        UnsupportedProviderError: 未知 provider
    """
    key = (name or "").strip().lower()
    definition = _ALIAS_INDEX.get(key)
    if definition is None:
        raise UnsupportedProviderError(name or "")
    return definition


def is_llm_provider(provider: LLMProvider) -> bool:
    return _PROVIDER_DEFINITIONS[provider].is_llm


# 模型 ID 前缀 -> Provider，按顺序匹配
_MODEL_ID_RULES: tuple[tuple[re.Pattern[str], LLMProvider], ...] = (
    (re.compile(r"^(?:gpt|chatgpt|codex|o\d)"), LLMProvider.OPENAI),
    (re.compile(r"^claude"), LLMProvider.CLAUDE),
    (re.compile(r"^gemini"), LLMProvider.GEMINI),
    (re.compile(r"^grok"), LLMProvider.XAI),
    (re.compile(r"^(?:kimi|moonshot)"), LLMProvider.MOONSHOT),
    (re.compile(r"^voxtral"), LLMProvider.MISTRAL),
)


def provider_for_model_id(model_id: str | None) -> LLMProvider | None:
    """按模型 ID 推断 Provider，无法识别返回 None"""
    normalized = (model_id or "").strip().lower()
    if not normalized:
        return None
    for pattern, provider in _MODEL_ID_RULES:
        if pattern.search(normalized):
            return provider
    return None


__all__ = [
    "PROVIDER_DEFINITIONS",
    "ProviderDefinition",
    "get_provider_definition",
    "is_llm_provider",
    "provider_for_model_id",
    "resolve_gateway_provider",
]
