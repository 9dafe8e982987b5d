"""
Usage 提取器

把各 Provider 的流式块 / 缓冲响应折叠进 UsageAccumulator。

支持的方言：
- OPENAI (Responses): response.usage（completed/incomplete/failed 终止事件）或扁平 usage
- ANTHROPIC: message_start.message.usage 先给输入与缓存，message_delta.usage 再给输出
- GEMINI: usageMetadata 一次给出完整快照（替换）
- XAI / MOONSHOT: 空 choices 的终止块 usage，completion_tokens 含推理 token，需拆分
- MISTRAL: 语音转写 usage（prompt_audio_seconds + completion_tokens）
- REPLICATE: 线上不返回用量，由网关估算
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from handsoff.core.logger import logger
from handsoff.core.providers.enums import PricingProvider
from handsoff.services.billing.models import UsageAccumulator
from handsoff.utils.sse_parser import iter_data_payloads, parse_json_object

# (payload, 当前累加器, 是否为整段缓冲 JSON) -> 新累加器 / None
UsageMapperFn = Callable[[dict[str, Any], UsageAccumulator, bool], "UsageAccumulator | None"]

USAGE_SIGNAL = "usage"


def has_usage_signal(text: str) -> bool:
    """常数级预检：不含 usage 字样的块直接跳过 JSON 解析（usageMetadata 同样命中）"""
    return USAGE_SIGNAL in text


def _get_nested_value(data: Any, path: str) -> Any:
    """按点号路径取值，如 "prompt_tokens_details.cached_tokens" """
    current = data
    for part in path.split("."):
        if not isinstance(current, dict):
            return None
        current = current.get(part)
    return current


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    return None


def _first_int(data: dict[str, Any], *paths: str) -> int | None:
    for path in paths:
        value = _as_int(_get_nested_value(data, path))
        if value is not None:
            return value
    return None


def _as_float(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    return None


class UsageExtractor:
    """
    Usage 提取器（纯函数，无 I/O）

    示例:
        acc = None
        for chunk in chunks:
            acc = UsageExtractor.extract(chunk, PricingProvider.ANTHROPIC, acc) or acc
    """

    # OpenAI Responses 字段（含 Chat Completions 旧字段回退）
    OPENAI_INPUT_PATHS = ("input_tokens", "prompt_tokens")
    OPENAI_OUTPUT_PATHS = ("output_tokens", "completion_tokens")
    OPENAI_CACHED_PATHS = (
        "cached_input_tokens",
        "input_tokens_details.cached_tokens",
        "prompt_tokens_details.cached_tokens",
    )
    OPENAI_REASONING_PATHS = (
        "reasoning_tokens",
        "reasoning_output_tokens",
        "output_tokens_details.reasoning_tokens",
        "completion_tokens_details.reasoning_tokens",
    )

    ANTHROPIC_EVENT_MESSAGE_START = "message_start"
    ANTHROPIC_EVENT_MESSAGE_DELTA = "message_delta"

    # =========================================================================
    # 入口
    # =========================================================================

    @classmethod
    def extract(
        cls,
        chunk: str | bytes,
        provider: PricingProvider,
        accumulator: UsageAccumulator | None = None,
    ) -> UsageAccumulator | None:
        """
        从一个块中提取用量

        Args:
            chunk: 原始块（SSE 文本或完整 JSON 响应体）
            provider: 计费 Provider
            accumulator: 本次调用当前累加器

        Returns:
            更新后的累加器；块中没有用量时返回 None（调用方保留原值）
        """
        text = chunk.decode("utf-8", errors="replace") if isinstance(chunk, bytes) else chunk
        if not text or not has_usage_signal(text):
            return None

        mapper = _MAPPERS.get(provider)
        if mapper is None:
            return None

        current = accumulator or UsageAccumulator()
        found = False
        for payload in iter_data_payloads(text):
            if not isinstance(payload, dict):
                continue
            updated = cls._apply(mapper, payload, current, buffered=False)
            if updated is not None:
                current = updated
                found = True

        if found:
            return current

        # 非 SSE：整段作为一个 JSON 对象
        document = parse_json_object(text)
        if document is None:
            return None
        return cls._apply(mapper, document, current, buffered=True)

    @staticmethod
    def _apply(
        mapper: UsageMapperFn,
        payload: dict[str, Any],
        current: UsageAccumulator,
        *,
        buffered: bool,
    ) -> UsageAccumulator | None:
        try:
            return mapper(payload, current, buffered)
        except (TypeError, ValueError, AttributeError) as exc:
            # 意外的 usage 结构：保留原累加器
            logger.debug("usage 结构无法解析，已跳过: {}", exc)
            return None

    # =========================================================================
    # OpenAI Responses
    # =========================================================================

    @classmethod
    def map_openai_usage(
        cls, usage: dict[str, Any], base: UsageAccumulator
    ) -> UsageAccumulator:
        return UsageAccumulator(
            cached_input_tokens=_first_int(usage, *cls.OPENAI_CACHED_PATHS) or 0,
            input_tokens=_first_int(usage, *cls.OPENAI_INPUT_PATHS) or 0,
            reasoning_output_tokens=_first_int(usage, *cls.OPENAI_REASONING_PATHS) or 0,
            output_tokens=_first_int(usage, *cls.OPENAI_OUTPUT_PATHS) or 0,
            prompt_seconds=base.prompt_seconds,
        )

    @classmethod
    def _from_openai(
        cls, payload: dict[str, Any], base: UsageAccumulator, buffered: bool
    ) -> UsageAccumulator | None:
        response = payload.get("response")
        usage = response.get("usage") if isinstance(response, dict) else None
        if not isinstance(usage, dict):
            usage = payload.get("usage")
        if not isinstance(usage, dict):
            return None
        return cls.map_openai_usage(usage, base)

    # =========================================================================
    # Anthropic
    # =========================================================================

    @staticmethod
    def _anthropic_cached(usage: dict[str, Any]) -> int | None:
        read = _as_int(usage.get("cache_read_input_tokens"))
        creation = _as_int(usage.get("cache_creation_input_tokens"))
        if read is None and creation is None:
            return None
        return (read or 0) + (creation or 0)

    @classmethod
    def _from_anthropic(
        cls, payload: dict[str, Any], base: UsageAccumulator, buffered: bool
    ) -> UsageAccumulator | None:
        event_type = payload.get("type")

        if event_type == cls.ANTHROPIC_EVENT_MESSAGE_START:
            usage = _get_nested_value(payload, "message.usage")
        elif event_type == cls.ANTHROPIC_EVENT_MESSAGE_DELTA or buffered:
            usage = payload.get("usage")
        else:
            return None

        if not isinstance(usage, dict):
            return None

        # 合并：message_delta 通常只带 output_tokens，之前的输入与缓存值保留
        return base.merge(
            input_tokens=_first_int(usage, "input_tokens", "prompt_tokens"),
            output_tokens=_as_int(usage.get("output_tokens")),
            cached_input_tokens=cls._anthropic_cached(usage),
        )

    # =========================================================================
    # Gemini
    # =========================================================================

    @staticmethod
    def _from_gemini(
        payload: dict[str, Any], base: UsageAccumulator, buffered: bool
    ) -> UsageAccumulator | None:
        metadata = payload.get("usageMetadata")
        if not isinstance(metadata, dict):
            return None
        # 完整快照：替换
        return UsageAccumulator(
            cached_input_tokens=_as_int(metadata.get("cachedContentTokenCount")) or 0,
            input_tokens=_as_int(metadata.get("promptTokenCount")) or 0,
            reasoning_output_tokens=_as_int(metadata.get("thoughtsTokenCount")) or 0,
            output_tokens=_as_int(metadata.get("candidatesTokenCount")) or 0,
            prompt_seconds=base.prompt_seconds,
        )

    # =========================================================================
    # xAI / Moonshot（OpenAI 兼容 Chat Completions）
    # =========================================================================

    @staticmethod
    def _from_openai_compatible_chat(
        payload: dict[str, Any], base: UsageAccumulator, buffered: bool
    ) -> UsageAccumulator | None:
        usage = payload.get("usage")
        # xAI 偶尔返回 usage 数组，取最后一个对象
        if isinstance(usage, list):
            usage = next((item for item in reversed(usage) if isinstance(item, dict)), None)
        if not isinstance(usage, dict):
            return None

        if not buffered:
            choices = payload.get("choices")
            if not isinstance(choices, list) or choices:
                return None

        completion = _first_int(usage, "completion_tokens", "output_tokens") or 0
        reasoning = (
            _first_int(
                usage,
                "completion_tokens_details.reasoning_tokens",
                "reasoning_tokens",
            )
            or 0
        )
        return UsageAccumulator(
            cached_input_tokens=_first_int(usage, "prompt_tokens_details.cached_tokens") or 0,
            input_tokens=_first_int(usage, "prompt_tokens", "input_tokens") or 0,
            reasoning_output_tokens=reasoning,
            output_tokens=max(0, completion - reasoning),
            prompt_seconds=base.prompt_seconds,
        )

    # =========================================================================
    # Mistral 语音转写
    # =========================================================================

    @staticmethod
    def _from_mistral(
        payload: dict[str, Any], base: UsageAccumulator, buffered: bool
    ) -> UsageAccumulator | None:
        usage = payload.get("usage")
        if not isinstance(usage, dict):
            return None
        seconds = _as_float(usage.get("prompt_audio_seconds"))
        return UsageAccumulator(
            input_tokens=_as_int(usage.get("prompt_tokens")) or 0,
            output_tokens=_as_int(usage.get("completion_tokens")) or 0,
            prompt_seconds=seconds if seconds is not None else base.prompt_seconds,
        )


_MAPPERS: dict[PricingProvider, UsageMapperFn] = {
    PricingProvider.OPENAI: UsageExtractor._from_openai,
    PricingProvider.ANTHROPIC: UsageExtractor._from_anthropic,
    PricingProvider.GEMINI: UsageExtractor._from_gemini,
    PricingProvider.XAI: UsageExtractor._from_openai_compatible_chat,
    PricingProvider.MOONSHOT: UsageExtractor._from_openai_compatible_chat,
    PricingProvider.MISTRAL: UsageExtractor._from_mistral,
}


extract_usage = UsageExtractor.extract

__all__ = ["UsageExtractor", "extract_usage", "has_usage_signal"]
