"""
定价解析

(provider, 原始模型 ID) -> PricingEntry，解析顺序（命中即止）:
1. 忽略大小写的精确键匹配
2. 按顺序的别名正则（首个命中）
3. 原始 ID 中包含的最长规范键
4. 调用方提供的 fallback_key

均未命中返回 None，调用方按 0 成本处理。费率表与别名表在导入时构建，之后只读。
"""

from __future__ import annotations

import re
from types import MappingProxyType

from handsoff.core.logger import logger
from handsoff.core.providers.enums import PricingProvider
from handsoff.services.billing.models import PricingEntry, UsageAccumulator

_P = PricingEntry

# =========================================================================
# 费率表（美元 / 百万 token，另有注明除外）
# =========================================================================

_PRICING: dict[PricingProvider, dict[str, PricingEntry]] = {
    PricingProvider.OPENAI: {
        "gpt-4o": _P.tokens(input=2.5, output=10.0, cached_input=1.25),
        "gpt-4o-mini-tts": _P.tokens(input=0.6, output=12.0),
        "gpt-5.2": _P.tokens(input=2.0, output=8.0, cached_input=0.5),
        "gpt-5.2-mini": _P.tokens(input=0.5, output=2.0, cached_input=0.05),
        "codex-mini-5.3": _P.tokens(input=1.5, output=6.0, cached_input=0.375),
    },
    PricingProvider.ANTHROPIC: {
        "claude-sonnet-4.6": _P.tokens(input=3.75, output=15.0, cached_input=0.30),
        "claude-opus-4.6": _P.tokens(input=18.75, output=75.0, cached_input=1.5),
    },
    PricingProvider.GEMINI: {
        "gemini-3-flash": _P.tokens(input=0.3, output=2.5, cached_input=0.03),
        "gemini-3-flash-preview": _P.tokens(input=0.3, output=2.5, cached_input=0.03),
        "gemini-3-pro": _P.tokens(input=1.25, output=5.0, cached_input=0.125),
    },
    PricingProvider.XAI: {
        "grok-4-fast": _P.tokens(input=0.2, output=0.5, cached_input=0.05),
        "grok-4": _P.tokens(input=3.0, output=15.0, cached_input=0.75),
    },
    PricingProvider.MOONSHOT: {
        "kimi-k2.5": _P.tokens(input=0.6, output=2.5, cached_input=0.15),
    },
    PricingProvider.MISTRAL: {
        # 输入按音频分钟，输出按百万 token
        "voxtral-mini": _P.hybrid(per_minute=0.002, output=0.04),
    },
    PricingProvider.REPLICATE: {
        "kokoro-82m": _P.duration(per_second=0.000225),
    },
}

# =========================================================================
# 别名规则：带日期/后缀的模型 ID -> 规范键，按顺序首个命中
# =========================================================================

_SEP = r"(?:$|[-_])"

_MODEL_ALIASES: dict[PricingProvider, tuple[tuple[re.Pattern[str], str], ...]] = {
    PricingProvider.OPENAI: (
        (re.compile(rf"^gpt-4o-mini-tts{_SEP}"), "gpt-4o-mini-tts"),
        (re.compile(rf"^gpt-4o{_SEP}"), "gpt-4o"),
        (re.compile(rf"^chatgpt-4o{_SEP}"), "gpt-4o"),
        (re.compile(rf"^o4-mini{_SEP}"), "gpt-4o"),
        (re.compile(rf"^gpt-5(?:[._-]?2)-mini{_SEP}"), "gpt-5.2-mini"),
        (re.compile(rf"^gpt-5(?:[._-]?2){_SEP}"), "gpt-5.2"),
        (re.compile(rf"^codex-mini-5(?:[._-]?3){_SEP}"), "codex-mini-5.3"),
    ),
    PricingProvider.ANTHROPIC: (
        (re.compile(rf"^claude-sonnet-4(?:[._-]?6){_SEP}"), "claude-sonnet-4.6"),
        (re.compile(rf"^claude-opus-4(?:[._-]?6){_SEP}"), "claude-opus-4.6"),
    ),
    PricingProvider.GEMINI: (
        (re.compile(rf"^gemini-3-flash-preview{_SEP}"), "gemini-3-flash-preview"),
        (re.compile(rf"^gemini-3-flash{_SEP}"), "gemini-3-flash"),
        (re.compile(rf"^gemini-3-pro{_SEP}"), "gemini-3-pro"),
    ),
    PricingProvider.XAI: (
        (re.compile(rf"^grok-4-fast{_SEP}"), "grok-4-fast"),
        (re.compile(rf"^grok-4{_SEP}"), "grok-4"),
    ),
    PricingProvider.MOONSHOT: (
        (re.compile(rf"^kimi-k2(?:[._-]?5){_SEP}"), "kimi-k2.5"),
    ),
    PricingProvider.MISTRAL: (
        (re.compile(rf"^voxtral-mini{_SEP}"), "voxtral-mini"),
        (re.compile(rf"^voxtral{_SEP}"), "voxtral-mini"),
    ),
    PricingProvider.REPLICATE: (),
}

PRICING = MappingProxyType({p: MappingProxyType(t) for p, t in _PRICING.items()})

# 子串匹配时长键优先
_KEYS_BY_LENGTH: dict[PricingProvider, tuple[str, ...]] = {
    provider: tuple(sorted(table, key=len, reverse=True)) for provider, table in _PRICING.items()
}


class PricingResolver:
    """定价解析器（无状态）"""

    @staticmethod
    def _coerce_provider(provider: PricingProvider | str) -> PricingProvider | None:
        if isinstance(provider, PricingProvider):
            return provider
        try:
            return PricingProvider((provider or "").strip().lower())
        except ValueError:
            return None

    @classmethod
    def resolve_key(
        cls,
        provider: PricingProvider | str,
        model: str | None,
        fallback_key: str | None = None,
    ) -> str | None:
        """返回命中的规范键"""
        pricing_provider = cls._coerce_provider(provider)
        if pricing_provider is None:
            return None
        table = _PRICING[pricing_provider]
        normalized = (model or "").strip().lower()

        if normalized:
            if normalized in table:
                return normalized

            for pattern, key in _MODEL_ALIASES[pricing_provider]:
                if pattern.search(normalized):
                    return key

            for key in _KEYS_BY_LENGTH[pricing_provider]:
                if key in normalized:
                    return key

        if fallback_key and fallback_key.lower() in table:
            return fallback_key.lower()
        return None

    @classmethod
    def resolve(
        cls,
        provider: PricingProvider | str,
        model: str | None,
        fallback_key: str | None = None,
    ) -> PricingEntry | None:
        """
        解析费率卡

        Args:
            provider: 计费 Provider
            model: 原始模型 ID（可带日期/后缀）
            fallback_key: 未命中时使用的规范键

        Returns:
            费率卡；未命中返回 None
        """
        pricing_provider = cls._coerce_provider(provider)
        if pricing_provider is None:
            return None
        key = cls.resolve_key(pricing_provider, model, fallback_key)
        if key is None:
            return None
        return _PRICING[pricing_provider][key]

    @classmethod
    def calculate_cost(
        cls,
        provider: PricingProvider | str,
        model: str | None,
        usage: UsageAccumulator,
        fallback_key: str | None = None,
    ) -> float:
        """计算美元成本；未知模型返回 0"""
        entry = cls.resolve(provider, model, fallback_key)
        if entry is None:
            logger.warning("未找到定价: provider={}, model={}，按 0 计费", provider, model)
            return 0.0
        return entry.calculate(usage)


resolve_pricing = PricingResolver.resolve
calculate_cost = PricingResolver.calculate_cost

__all__ = ["PRICING", "PricingResolver", "calculate_cost", "resolve_pricing"]
