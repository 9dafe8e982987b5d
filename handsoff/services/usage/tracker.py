"""
流式用量跟踪

转发每个网络块之后调用 feed()；块先经过 SSELineBuffer 对齐到整行，
再做常数级预检，只有含 usage 字样的文本才进入 JSON 解析。
"""

from __future__ import annotations

from handsoff.core.logger import logger
from handsoff.core.providers.enums import PricingProvider
from handsoff.services.billing.models import UsageAccumulator
from handsoff.services.billing.usage_mapper import UsageExtractor, has_usage_signal
from handsoff.utils.sse_parser import SSELineBuffer


class UsageStreamTracker:
    """单次调用的用量累加（每个在途调用一个实例）"""

    def __init__(self, provider: PricingProvider, request_id: str = "-"):
        self.provider = provider
        self.request_id = request_id
        self.usage: UsageAccumulator | None = None
        self.chunk_count = 0
        self._buffer = SSELineBuffer()
        self._finished = False

    def feed(self, chunk: bytes) -> None:
        self.chunk_count += 1
        self._consume(self._buffer.feed(chunk))

    def finish(self) -> UsageAccumulator | None:
        """流结束时调用一次，返回最终累加器"""
        if not self._finished:
            self._finished = True
            self._consume(self._buffer.flush())
        return self.usage

    def _consume(self, text: str) -> None:
        if not text or not has_usage_signal(text):
            return
        try:
            updated = UsageExtractor.extract(text, self.provider, self.usage)
        except Exception as exc:
            # 计量不能影响转发
            logger.warning("  [{}] 用量提取失败，已忽略: {}", self.request_id, exc)
            return
        if updated is not None:
            self.usage = updated
            logger.debug("  [{}] 用量更新: {}", self.request_id, updated.to_dict())


__all__ = ["UsageStreamTracker"]
