"""
限额与限流

- quota: 月度消费额度、一分钟突发限流（先读后写，容忍并发竞态）
- detector: 429 响应的等待时长解析
"""

from handsoff.services.rate_limit.detector import RetryAfterDetector
from handsoff.services.rate_limit.quota import QuotaService, QuotaState, RateLimitDecision

__all__ = ["QuotaService", "QuotaState", "RateLimitDecision", "RetryAfterDetector"]
