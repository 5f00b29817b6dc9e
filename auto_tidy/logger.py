"""Structured logging utilities for auto-tidy."""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

ROOT_LOGGER_NAME = "auto_tidy"

_LOG_FORMAT = "%(message)s"
_MAX_BYTES = 10 * 1024 * 1024
_BACKUP_COUNT = 5


def _sanitize(value: str) -> str:
    """Replace home directory with ``~/`` to protect privacy."""

    home_str = str(Path.home())
    if value.startswith(home_str):
        remainder = value[len(home_str):]
        if not remainder:
            return "~"
        if remainder.startswith(("/", "\\")):
            return f"~/{remainder[1:]}"
    return value


def log_directory() -> Path:
    return Path.home() / ".autotidy" / "logs"


def next_log_path(prefix: str) -> Path:
    """Return a fresh timestamped log file path for *prefix*."""

    stamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    directory = log_directory()
    directory.mkdir(parents=True, exist_ok=True)
    candidate = directory / f"{prefix}-{stamp}.log"
    counter = 1
    while candidate.exists():
        candidate = directory / f"{prefix}-{stamp}-{counter}.log"
        counter += 1
    return candidate


def configure_logging(
    log_path: Path | None = None,
    *,
    level: int = logging.INFO,
    max_bytes: int = _MAX_BYTES,
    backup_count: int = _BACKUP_COUNT,
) -> logging.Logger:
    """Send the ``auto_tidy`` logger hierarchy to a single JSON-lines handler.

    Called without *log_path* on an already configured logger, only the level
    changes and the existing destination is kept.
    """

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    if logger.handlers and log_path is None:
        for existing in logger.handlers:
            existing.setLevel(level)
        return logger

    for existing in list(logger.handlers):
        logger.removeHandler(existing)
        existing.close()

    handler = _build_handler(log_path, max_bytes=max_bytes, backup_count=backup_count)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    logger.addHandler(handler)
    return logger


def _build_handler(log_path: Path | None, *, max_bytes: int, backup_count: int) -> logging.Handler:
    if log_path is None:
        return logging.StreamHandler()
    log_path = Path(log_path).expanduser()
    log_path.parent.mkdir(parents=True, exist_ok=True)
    return RotatingFileHandler(log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8")


def _prepare_payload(data: dict[str, Any]) -> dict[str, Any]:
    sanitized: dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, str):
            sanitized[key] = _sanitize(value)
        elif isinstance(value, Path):
            sanitized[key] = _sanitize(str(value))
        elif isinstance(value, dict):
            sanitized[key] = _prepare_payload(value)
        elif isinstance(value, (list, tuple)):
            sanitized[key] = [
                _sanitize(str(item)) if isinstance(item, (str, Path)) else item for item in value
            ]
        else:
            sanitized[key] = value
    return sanitized


def log_event(
    logger: logging.Logger,
    *,
    level: int,
    action: str,
    message: str,
    bytes_processed: int | None = None,
    duration_ms: float | None = None,
    extra: dict[str, Any] | None = None,
    exc_info: bool = False,
) -> None:
    """Emit a structured JSON log entry."""

    if not logger.isEnabledFor(level):
        return

    payload: dict[str, Any] = {
        "ts": _utcnow_iso(),
        "level": logging.getLevelName(level),
        "action": action,
        "message": _sanitize(message),
    }
    if bytes_processed is not None:
        payload["bytes"] = bytes_processed
    if duration_ms is not None:
        payload["ms"] = round(duration_ms, 3)
    if extra:
        payload.update(_prepare_payload(extra))

    logger.log(level, json.dumps(payload, ensure_ascii=False), exc_info=exc_info)


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


__all__ = ["ROOT_LOGGER_NAME", "configure_logging", "log_event", "next_log_path"]
