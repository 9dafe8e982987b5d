"""
用量估算 / 流式跟踪 / 落库测试
"""

from unittest.mock import MagicMock

import pytest
from sqlalchemy import select

from handsoff.core.providers.enums import PricingProvider
from handsoff.models.database import UsageLog
from handsoff.services.billing import UsageAccumulator
from handsoff.services.usage import (
    UsageRecorder,
    UsageStreamTracker,
    estimate_narration_seconds,
    estimate_tts_usage,
    is_sse_content_type,
)


class TestEstimation:
    def test_tts_usage(self) -> None:
        usage = estimate_tts_usage("x" * 41)
        assert usage.input_tokens == 11
        assert usage.output_tokens == 69  # ceil(11 * 6.25)

    def test_tts_empty_text(self) -> None:
        assert estimate_tts_usage(None) == UsageAccumulator()

    def test_narration_seconds(self) -> None:
        assert estimate_narration_seconds("a" * 750) == pytest.approx(60.0)
        # 下限 0.005 分钟
        assert estimate_narration_seconds("") == pytest.approx(0.3)

    def test_sse_content_type(self) -> None:
        assert is_sse_content_type("text/event-stream; charset=utf-8")
        assert not is_sse_content_type("application/json")
        assert not is_sse_content_type(None)


class TestUsageStreamTracker:
    def test_event_split_across_chunks(self) -> None:
        stream = (
            b'data: {"type":"message_start","message":{"usage":{"input_tokens":300,'
            b'"cache_read_input_tokens":120}}}\n\n'
            b'data: {"type":"content_block_delta","delta":{"type":"text_delta","text":"hi"}}\n\n'
            b'data: {"type":"message_delta","usage":{"output_tokens":450}}\n\n'
        )
        tracker = UsageStreamTracker(PricingProvider.ANTHROPIC, "req1")
        for i in range(0, len(stream), 17):
            tracker.feed(stream[i : i + 17])

        usage = tracker.finish()
        assert usage is not None
        assert (usage.input_tokens, usage.cached_input_tokens, usage.output_tokens) == (
            300,
            120,
            450,
        )
        assert tracker.chunk_count == (len(stream) + 16) // 17

    def test_trailing_line_without_newline_flushed(self) -> None:
        tracker = UsageStreamTracker(PricingProvider.GEMINI)
        tracker.feed(b'data: {"usageMetadata":{"promptTokenCount":5,"candidatesTokenCount":2}}')
        assert tracker.usage is None
        usage = tracker.finish()
        assert usage is not None
        assert usage.input_tokens == 5

    def test_stream_without_usage(self) -> None:
        tracker = UsageStreamTracker(PricingProvider.XAI)
        tracker.feed(b'data: {"choices":[{"delta":{"content":"x"}}]}\n\ndata: [DONE]\n\n')
        assert tracker.finish() is None


class TestUsageRecorder:
    def test_record_writes_row(self, db_session) -> None:
        cost = UsageRecorder().record(
            user_id="u1",
            provider=PricingProvider.OPENAI,
            model="gpt-4o-2024-08-06",
            usage=UsageAccumulator(input_tokens=1_000_000, output_tokens=100_000),
            request_id="req1",
        )
        assert cost == pytest.approx(2.5 + 1.0)

        row = db_session.execute(select(UsageLog)).scalar_one()
        assert row.user_id == "u1"
        assert row.provider == "openai"
        assert row.model == "gpt-4o-2024-08-06"
        assert row.input_tokens == 1_000_000
        assert row.cost_usd == pytest.approx(3.5)

    def test_unknown_model_recorded_at_zero(self, db_session) -> None:
        cost = UsageRecorder().record(
            user_id="u1",
            provider=PricingProvider.XAI,
            model="mystery",
            usage=UsageAccumulator(input_tokens=10),
        )
        assert cost == 0.0
        assert db_session.execute(select(UsageLog)).scalar_one().cost_usd == 0.0

    def test_write_failure_is_swallowed(self) -> None:
        session = MagicMock()
        session.commit.side_effect = RuntimeError("db down")
        recorder = UsageRecorder(session_factory=lambda: session)

        result = recorder.record(
            user_id="u1",
            provider=PricingProvider.OPENAI,
            model="gpt-4o",
            usage=UsageAccumulator(input_tokens=1),
        )
        assert result is None
        session.rollback.assert_called_once()
        session.close.assert_called_once()
