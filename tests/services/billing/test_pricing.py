"""
定价解析与成本计算测试
"""

import pytest

from handsoff.core.providers.enums import BillingMode, PricingProvider
from handsoff.services.billing import PricingEntry, PricingResolver, UsageAccumulator


class TestResolveKey:
    """测试 模型 ID -> 规范键"""

    def test_exact_match_case_insensitive(self) -> None:
        assert PricingResolver.resolve_key(PricingProvider.OPENAI, "GPT-4o") == "gpt-4o"

    def test_dated_alias(self) -> None:
        assert (
            PricingResolver.resolve_key(PricingProvider.OPENAI, "gpt-4o-2024-08-06") == "gpt-4o"
        )
        assert (
            PricingResolver.resolve_key(PricingProvider.ANTHROPIC, "claude-sonnet-4-6-20260115")
            == "claude-sonnet-4.6"
        )

    def test_longer_key_not_shadowed(self) -> None:
        assert (
            PricingResolver.resolve_key(PricingProvider.OPENAI, "gpt-4o-mini-tts")
            == "gpt-4o-mini-tts"
        )
        assert (
            PricingResolver.resolve_key(PricingProvider.XAI, "grok-4-fast-reasoning")
            == "grok-4-fast"
        )

    def test_voxtral_latest_alias(self) -> None:
        assert (
            PricingResolver.resolve_key(PricingProvider.MISTRAL, "voxtral-mini-latest")
            == "voxtral-mini"
        )

    def test_substring_match(self) -> None:
        assert (
            PricingResolver.resolve_key(PricingProvider.GEMINI, "models/gemini-3-pro")
            == "gemini-3-pro"
        )

    def test_fallback_key(self) -> None:
        assert (
            PricingResolver.resolve_key(PricingProvider.MISTRAL, "unknown", "voxtral-mini")
            == "voxtral-mini"
        )

    def test_unknown_model(self) -> None:
        assert PricingResolver.resolve_key(PricingProvider.OPENAI, "davinci-002") is None
        assert PricingResolver.resolve(PricingProvider.OPENAI, "") is None

    def test_provider_as_string(self) -> None:
        assert PricingResolver.resolve_key("Anthropic", "claude-opus-4.6") == "claude-opus-4.6"
        assert PricingResolver.resolve_key("nope", "gpt-4o") is None

    def test_resolve_with_string_provider(self) -> None:
        assert PricingResolver.resolve(" Anthropic ", "claude-opus-4.6") is PricingResolver.resolve(
            PricingProvider.ANTHROPIC, "claude-opus-4.6"
        )
        assert PricingResolver.resolve("nope", "gpt-4o") is None


class TestPricingEntry:
    """测试三种计费方式"""

    def test_token_billing(self) -> None:
        entry = PricingEntry.tokens(input=3.0, output=15.0, cached_input=0.3)
        usage = UsageAccumulator(
            cached_input_tokens=1_000_000,
            input_tokens=1_000_000,
            reasoning_output_tokens=0,
            output_tokens=1_000_000,
        )
        assert entry.calculate(usage) == pytest.approx(18.3)

    def test_missing_rates_fall_back(self) -> None:
        # 无缓存价按输入价，无推理价按输出价
        entry = PricingEntry.tokens(input=1.0, output=4.0)
        usage = UsageAccumulator(cached_input_tokens=500_000, reasoning_output_tokens=250_000)
        assert entry.calculate(usage) == pytest.approx(0.5 + 1.0)

    def test_duration_billing(self) -> None:
        entry = PricingEntry.duration(per_second=0.000225)
        assert entry.billing_mode == BillingMode.DURATION
        assert entry.calculate(UsageAccumulator(prompt_seconds=60.0)) == pytest.approx(0.0135)

    def test_hybrid_billing(self) -> None:
        entry = PricingEntry.hybrid(per_minute=0.002, output=0.04)
        usage = UsageAccumulator(output_tokens=1000, prompt_seconds=30.0)
        assert entry.calculate(usage) == pytest.approx(0.001 + 0.00004)


class TestCalculateCost:
    def test_known_model(self) -> None:
        usage = UsageAccumulator(
            cached_input_tokens=120, input_tokens=300, output_tokens=450
        )
        cost = PricingResolver.calculate_cost(
            PricingProvider.ANTHROPIC, "claude-sonnet-4-6", usage
        )
        assert cost == pytest.approx((120 * 0.30 + 300 * 3.75 + 450 * 15.0) / 1_000_000)

    def test_unknown_model_costs_zero(self) -> None:
        usage = UsageAccumulator(input_tokens=1000, output_tokens=1000)
        assert PricingResolver.calculate_cost(PricingProvider.XAI, "mystery-1", usage) == 0.0
