"""
异步媒体服务
"""

from handsoff.services.media.replicate_tts import ReplicateTTSClient, normalize_output_url

__all__ = ["ReplicateTTSClient", "normalize_output_url"]
