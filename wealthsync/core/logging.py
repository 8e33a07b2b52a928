"""Application logging with Loguru + Slack notifications."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Any, Optional

import httpx
from loguru import logger

from wealthsync.core.config import Settings

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level} | {extra[name]}:{function}:{line} | {message}"

# Track if logging is already configured to prevent duplicates
_logging_configured = False

logger.configure(extra={"name": "wealthsync"})


class InterceptHandler(logging.Handler):
    """Redirect stdlib logs to Loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_name == "emit":
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def _make_slack_sink(webhook_url: str):
    def _slack_sink(message: Any) -> None:
        record = message.record
        name = record["extra"].get("name") or record.get("name", "wealthsync")
        text = f"[{record['level'].name}] {name}:{record['function']}:{record['line']}\n{record['message']}"
        try:
            httpx.post(webhook_url, json={"text": text}, timeout=5.0)
        except httpx.HTTPError:
            # Avoid recursive logging on Slack failures
            pass

    return _slack_sink


def _normalize_level(raw: Optional[str]) -> str:
    level = (raw or "INFO").strip().upper()
    level = {
        "WARN": "WARNING",
        "FATAL": "CRITICAL",
    }.get(level, level)
    if level not in {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}:
        level = "INFO"
    return level


def configure_logging(settings: Settings, log_dir: Path | str = "logs") -> None:
    global _logging_configured

    # Prevent duplicate configuration
    if _logging_configured:
        return
    _logging_configured = True

    log_dir = Path(log_dir)
    log_dir.mkdir(exist_ok=True)

    level = _normalize_level(settings.effective_log_level)

    logger.remove()
    logger.add(
        sys.stdout,
        level=level,
        format=LOG_FORMAT,
        backtrace=False,
        diagnose=False,
    )
    logger.add(
        log_dir / "app.log",
        level=level,
        format=LOG_FORMAT,
        rotation="10 MB",
        retention="14 days",
        enqueue=True,
        backtrace=False,
        diagnose=False,
    )

    if settings.SLACK_WEBHOOK_URL:
        logger.add(_make_slack_sink(settings.SLACK_WEBHOOK_URL), level="ERROR", enqueue=True)

    # Intercept stdlib logging and disable propagation to avoid duplicates
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    for logger_name in ["uvicorn", "uvicorn.error", "uvicorn.access"]:
        logging.getLogger(logger_name).handlers = [InterceptHandler()]
        logging.getLogger(logger_name).propagate = False
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def get_logger(name: str) -> logger.__class__:
    return logger.bind(name=name)
