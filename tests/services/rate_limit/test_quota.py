"""
月度额度与突发限流测试（内存 sqlite）
"""

from datetime import datetime, timedelta, timezone

from sqlalchemy import func, select

from handsoff.models.database import RateLimitLog, UsageLog, UserLimit
from handsoff.services.rate_limit import QuotaService
from handsoff.services.rate_limit.quota import month_bounds

NOW = datetime(2026, 10, 17, 9, 30, tzinfo=timezone.utc)


def _log(db, user_id: str, cost: float, when: datetime) -> None:
    db.add(
        UsageLog(
            user_id=user_id,
            provider="openai",
            model="gpt-4o",
            cost_usd=cost,
            timestamp=when,
        )
    )
    db.commit()


class TestMonthBounds:
    def test_regular_month(self) -> None:
        start, end = month_bounds(NOW)
        assert start == datetime(2026, 10, 1, tzinfo=timezone.utc)
        assert end == datetime(2026, 11, 1, tzinfo=timezone.utc)

    def test_december_rolls_over(self) -> None:
        start, end = month_bounds(datetime(2026, 12, 31, 23, 59, tzinfo=timezone.utc))
        assert start == datetime(2026, 12, 1, tzinfo=timezone.utc)
        assert end == datetime(2027, 1, 1, tzinfo=timezone.utc)


class TestCheckUserQuota:
    def test_new_user_uses_default_limit(self, db_session) -> None:
        state = QuotaService.check_user_quota(db_session, "u1", default_limit=8.0, now=NOW)
        assert state.current_usage == 0.0
        assert state.monthly_limit == 8.0
        assert state.quota_exceeded is False

    def test_sums_current_month_only(self, db_session) -> None:
        _log(db_session, "u1", 5.0, NOW - timedelta(days=1))
        _log(db_session, "u1", 3.5, NOW - timedelta(hours=1))
        _log(db_session, "u1", 100.0, datetime(2026, 9, 30, 23, 0, tzinfo=timezone.utc))
        _log(db_session, "other", 50.0, NOW - timedelta(hours=1))

        state = QuotaService.check_user_quota(db_session, "u1", default_limit=8.0, now=NOW)
        assert state.current_usage == 8.5
        assert state.quota_exceeded is True

    def test_limit_reached_exactly_is_exceeded(self, db_session) -> None:
        _log(db_session, "u1", 8.0, NOW - timedelta(hours=1))
        state = QuotaService.check_user_quota(db_session, "u1", default_limit=8.0, now=NOW)
        assert state.quota_exceeded is True

    def test_user_override_limit(self, db_session) -> None:
        db_session.add(UserLimit(user_id="u1", monthly_limit_usd=20.0))
        db_session.commit()
        _log(db_session, "u1", 9.0, NOW - timedelta(hours=1))

        state = QuotaService.check_user_quota(db_session, "u1", default_limit=8.0, now=NOW)
        assert state.monthly_limit == 20.0
        assert state.quota_exceeded is False

    def test_usage_is_monotonic_within_month(self, db_session) -> None:
        seen = []
        for cost in (0.25, 0.0, 1.5):
            _log(db_session, "u1", cost, NOW - timedelta(minutes=5))
            seen.append(QuotaService.check_user_quota(db_session, "u1", now=NOW).current_usage)
        assert seen == sorted(seen)

    def test_to_dict(self, db_session) -> None:
        state = QuotaService.check_user_quota(db_session, "u1", default_limit=2.0, now=NOW)
        assert state.to_dict() == {
            "current_usage": 0.0,
            "monthly_limit": 2.0,
            "quota_exceeded": False,
        }


class TestCheckRateLimit:
    def test_blocks_after_limit(self, db_session) -> None:
        decisions = [
            QuotaService.check_rate_limit(db_session, "u1", max_requests=2, now=NOW)
            for _ in range(3)
        ]
        assert [d.allowed for d in decisions] == [True, True, False]
        assert decisions[-1].recent_requests == 2

    def test_every_request_is_logged(self, db_session) -> None:
        for _ in range(3):
            QuotaService.check_rate_limit(db_session, "u1", max_requests=1, now=NOW)
        count = db_session.execute(
            select(func.count(RateLimitLog.id)).where(RateLimitLog.user_id == "u1")
        ).scalar_one()
        assert count == 3

    def test_window_is_one_minute(self, db_session) -> None:
        db_session.add(RateLimitLog(user_id="u1", request_timestamp=NOW - timedelta(minutes=2)))
        db_session.commit()
        decision = QuotaService.check_rate_limit(db_session, "u1", max_requests=1, now=NOW)
        assert decision.allowed is True
        assert decision.recent_requests == 0

    def test_users_are_independent(self, db_session) -> None:
        QuotaService.check_rate_limit(db_session, "u1", max_requests=1, now=NOW)
        decision = QuotaService.check_rate_limit(db_session, "u2", max_requests=1, now=NOW)
        assert decision.allowed is True
