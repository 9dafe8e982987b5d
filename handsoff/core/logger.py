"""
统一日志系统 - 基于 loguru

日志级别:
- DEBUG: 流式块、用量提取细节
- INFO:  请求进出、用量落库
- WARNING: 降级（未找到用量、未知定价）、上游非 2xx
- ERROR: 落库失败、内部异常

控制台级别由 LOG_LEVEL 决定；文件日志写入 logs/，测试时用 LOG_DISABLE_FILE=true 关闭。

使用方式:
    from handsoff.core.logger import logger

    logger.info("[{}] 请求完成", request_id)
"""

from __future__ import annotations

import logging
import os
import re
import sys
from pathlib import Path

from loguru import logger

# ============================================================================
# 环境
# ============================================================================

IS_PRODUCTION = os.getenv("ENVIRONMENT", "development").lower() == "production"

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO" if IS_PRODUCTION else "DEBUG").upper()

DISABLE_FILE_LOG = os.getenv("LOG_DISABLE_FILE", "false").lower() == "true"

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent

CONSOLE_FORMAT_DEV = (
    "<green>{time:HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{message}</cyan>"
)
CONSOLE_FORMAT_PROD = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {message}"
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} | {message}"

_NOISY_LOGGERS = ("httpx", "httpcore", "uvicorn.access", "watchfiles")

# URL 中的 key=xxx（Gemini 直连）
_QUERY_KEY_RE = re.compile(r"([?&]key=)[^&#]+", re.IGNORECASE)


def _configure() -> None:
    logger.remove()

    logger.add(
        sys.stdout,
        format=CONSOLE_FORMAT_PROD if IS_PRODUCTION else CONSOLE_FORMAT_DEV,
        level=LOG_LEVEL,
        colorize=not IS_PRODUCTION,
        backtrace=not IS_PRODUCTION,
        diagnose=not IS_PRODUCTION,
    )

    if not DISABLE_FILE_LOG:
        log_dir = PROJECT_ROOT / "logs"
        log_dir.mkdir(exist_ok=True)

        # enqueue=False：gunicorn 多 worker 下不使用 multiprocessing 队列
        common = {
            "format": FILE_FORMAT,
            "retention": "30 days",
            "compression": "gz",
            "enqueue": False,
            "encoding": "utf-8",
            "catch": True,
            "backtrace": not IS_PRODUCTION,
            "diagnose": False,
        }
        logger.add(log_dir / "gateway.log", level="DEBUG", rotation="100 MB", **common)  # type: ignore[call-overload]
        logger.add(log_dir / "error.log", level="ERROR", rotation="50 MB", **common)  # type: ignore[call-overload]

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def redact_url(url: str) -> str:
    """日志输出前遮蔽 URL 中的 key 查询参数"""
    return _QUERY_KEY_RE.sub(r"\1****", url)


_configure()

__all__ = ["logger", "redact_url"]
