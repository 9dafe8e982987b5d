"""
计费模块

- models: UsageAccumulator / PricingEntry
- pricing: 费率表与定价解析
- usage_mapper: 多 Provider 用量提取

使用示例:
    from handsoff.services.billing import PricingResolver, UsageExtractor

    usage = UsageExtractor.extract(chunk, PricingProvider.GEMINI)
    cost = PricingResolver.calculate_cost(PricingProvider.GEMINI, "gemini-3-flash", usage)
"""

from handsoff.services.billing.models import PricingEntry, UsageAccumulator
from handsoff.services.billing.pricing import (
    PRICING,
    PricingResolver,
    calculate_cost,
    resolve_pricing,
)
from handsoff.services.billing.usage_mapper import (
    UsageExtractor,
    extract_usage,
    has_usage_signal,
)

__all__ = [
    "PRICING",
    "PricingEntry",
    "PricingResolver",
    "UsageAccumulator",
    "UsageExtractor",
    "calculate_cost",
    "extract_usage",
    "has_usage_signal",
    "resolve_pricing",
]
