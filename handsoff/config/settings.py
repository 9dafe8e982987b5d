"""
网关配置

所有配置在进程启动时从环境变量读取一次；Provider Key 在调用时按需读取。
"""

from __future__ import annotations

import os


def _get_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return float(value)


def _get_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return int(value)


class Config:
    def __init__(self) -> None:
        self.environment = os.getenv("ENVIRONMENT", "development")

        # 数据库（账本）
        self.database_url = os.getenv("DATABASE_URL", "sqlite:///./handsoff.db")
        self.db_pool_size = _get_int("DB_POOL_SIZE", 10)
        self.db_max_overflow = _get_int("DB_MAX_OVERFLOW", 20)

        # 身份服务（Supabase 风格 /auth/v1/user）
        self.identity_url = os.getenv("IDENTITY_URL", "").rstrip("/")
        self.identity_anon_key = os.getenv("IDENTITY_ANON_KEY", "")

        # 用量与限额
        self.disable_usage_tracking = _get_bool("DISABLE_USAGE_TRACKING")
        self.default_monthly_limit_usd = _get_float("DEFAULT_MONTHLY_LIMIT_USD", 8.0)
        self.rate_limit_per_minute = _get_int("RATE_LIMIT_PER_MINUTE", 30)

        # HTTP 客户端
        self.http_connect_timeout = _get_float("HTTP_CONNECT_TIMEOUT", 10.0)
        self.http_read_timeout = _get_float("HTTP_READ_TIMEOUT", 300.0)
        self.http_write_timeout = _get_float("HTTP_WRITE_TIMEOUT", 60.0)
        self.http_pool_timeout = _get_float("HTTP_POOL_TIMEOUT", 10.0)
        self.http_max_connections = _get_int("HTTP_MAX_CONNECTIONS", 100)
        self.http_keepalive_connections = _get_int("HTTP_KEEPALIVE_CONNECTIONS", 20)
        self.http_keepalive_expiry = _get_float("HTTP_KEEPALIVE_EXPIRY", 30.0)

        # 客户端侧：网关地址
        self.gateway_url = os.getenv("GATEWAY_URL", "http://localhost:8084").rstrip("/")

        self.cors_allow_origin = os.getenv("CORS_ALLOW_ORIGIN", "*")

        # Replicate Kokoro TTS 模型版本
        self.replicate_tts_version = os.getenv("REPLICATE_TTS_VERSION", "jaaari/kokoro-82m")

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    def get_provider_api_key(self, env_key: str) -> str | None:
        """读取 {ENV_KEY}_API_KEY，空白视为未配置"""
        value = os.getenv(f"{env_key}_API_KEY", "").strip()
        return value or None


config = Config()
