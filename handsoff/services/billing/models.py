"""
计费数据模型

- UsageAccumulator: 单次调用的用量累加器（不可变，每次折叠返回新实例）
- PricingEntry: 费率卡（token / 时长 / 混合三种计费方式）
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from typing import Any

from handsoff.core.providers.enums import BillingMode

TOKENS_PER_MILLION = 1_000_000


@dataclass(frozen=True)
class UsageAccumulator:
    """
    一次调用的用量

    流式场景下逐事件折叠：Anthropic 的 message_delta 合并到已有值上，
    Gemini 的 usageMetadata 则整体替换。
    """

    cached_input_tokens: int = 0
    input_tokens: int = 0
    reasoning_output_tokens: int = 0
    output_tokens: int = 0
    prompt_seconds: float | None = None

    def merge(self, **fields: Any) -> UsageAccumulator:
        """只覆盖给出的非 None 字段"""
        updates = {k: v for k, v in fields.items() if v is not None}
        return replace(self, **updates) if updates else self

    @property
    def total_tokens(self) -> int:
        return (
            self.cached_input_tokens
            + self.input_tokens
            + self.reasoning_output_tokens
            + self.output_tokens
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class PricingEntry:
    """
    费率卡

    TOKEN: input/output/cached_input/reasoning_output 为每百万 token 美元
    DURATION: per_second 为每秒美元
    HYBRID: input 为每分钟音频美元，output 为每百万 token 美元
    """

    billing_mode: BillingMode = BillingMode.TOKEN
    input: float = 0.0
    output: float = 0.0
    cached_input: float | None = None
    reasoning_output: float | None = None
    per_second: float = 0.0

    @classmethod
    def tokens(
        cls,
        input: float,
        output: float,
        cached_input: float | None = None,
        reasoning_output: float | None = None,
    ) -> PricingEntry:
        return cls(
            billing_mode=BillingMode.TOKEN,
            input=input,
            output=output,
            cached_input=cached_input,
            reasoning_output=reasoning_output,
        )

    @classmethod
    def duration(cls, per_second: float) -> PricingEntry:
        return cls(billing_mode=BillingMode.DURATION, per_second=per_second)

    @classmethod
    def hybrid(cls, per_minute: float, output: float) -> PricingEntry:
        return cls(billing_mode=BillingMode.HYBRID, input=per_minute, output=output)

    def calculate(self, usage: UsageAccumulator) -> float:
        """按计费方式计算美元成本"""
        if self.billing_mode == BillingMode.DURATION:
            return (usage.prompt_seconds or 0.0) * self.per_second

        if self.billing_mode == BillingMode.HYBRID:
            minutes = (usage.prompt_seconds or 0.0) / 60
            return minutes * self.input + usage.output_tokens / TOKENS_PER_MILLION * self.output

        cached_rate = self.cached_input if self.cached_input is not None else self.input
        reasoning_rate = (
            self.reasoning_output if self.reasoning_output is not None else self.output
        )
        return (
            usage.cached_input_tokens / TOKENS_PER_MILLION * cached_rate
            + usage.input_tokens / TOKENS_PER_MILLION * self.input
            + usage.reasoning_output_tokens / TOKENS_PER_MILLION * reasoning_rate
            + usage.output_tokens / TOKENS_PER_MILLION * self.output
        )


__all__ = ["PricingEntry", "TOKENS_PER_MILLION", "UsageAccumulator"]
