from datetime import datetime, timedelta, timezone
from email.utils import format_datetime

import httpx

from handsoff.services.rate_limit import RetryAfterDetector


def _detect(headers=None, body=None) -> float:
    return RetryAfterDetector.detect(
        httpx.Headers(headers or {}), body, default=5.0, max_seconds=30.0
    )


def test_header_seconds() -> None:
    assert _detect({"Retry-After": "3"}) == 3.0


def test_header_wins_over_body() -> None:
    assert _detect({"retry-after": "2"}, b'{"retry_after": 9}') == 2.0


def test_header_http_date() -> None:
    when = datetime.now(timezone.utc) + timedelta(seconds=20)
    seconds = _detect({"Retry-After": format_datetime(when, usegmt=True)})
    assert 15.0 <= seconds <= 20.0


def test_body_retry_after_zero() -> None:
    body = b'{"detail":"Rate limit exceeded","status":429,"retry_after":0}'
    assert _detect(body=body) == 0.0


def test_default_when_absent() -> None:
    assert _detect(body=b"not json") == 5.0


def test_clamped_to_range() -> None:
    assert _detect({"Retry-After": "600"}) == 30.0
    assert _detect({"Retry-After": "-4"}) == 0.0
