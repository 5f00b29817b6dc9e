from __future__ import annotations

import json
import logging
from pathlib import Path

from auto_tidy.logger import configure_logging, log_event, next_log_path


def _read_entries(log_file: Path, logger: logging.Logger) -> list[dict]:
    for handler in logger.handlers:
        handler.flush()
    return [json.loads(line) for line in log_file.read_text(encoding="utf-8").splitlines() if line]


def test_log_event_sanitizes_home_directory(tmp_path: Path) -> None:
    log_file = tmp_path / "auto.log"
    logger = configure_logging(log_file, level=logging.INFO)
    sensitive_path = Path.home() / "Documents" / "secret.txt"
    log_event(
        logger,
        level=logging.INFO,
        action="test",
        message=str(sensitive_path),
        extra={"path": str(sensitive_path), "files": [sensitive_path]},
    )
    payload = _read_entries(log_file, logger)[-1]
    assert payload["path"].startswith("~/")
    assert payload["files"][0].startswith("~/")
    assert str(Path.home()) not in payload["message"]


def test_log_event_core_fields(tmp_path: Path) -> None:
    log_file = tmp_path / "auto.log"
    logger = configure_logging(log_file)
    child = logging.getLogger("auto_tidy.test")
    log_event(
        child,
        level=logging.WARNING,
        action="duplicates.group",
        message="Found duplicates",
        bytes_processed=42,
        duration_ms=1.23456,
    )
    payload = _read_entries(log_file, logger)[-1]
    assert payload["level"] == "WARNING"
    assert payload["action"] == "duplicates.group"
    assert payload["bytes"] == 42
    assert payload["ms"] == 1.235
    assert payload["ts"].endswith("Z")


def test_log_event_respects_level(tmp_path: Path) -> None:
    log_file = tmp_path / "auto.log"
    logger = configure_logging(log_file, level=logging.INFO)
    log_event(logger, level=logging.DEBUG, action="hidden", message="not written")
    log_event(logger, level=logging.INFO, action="shown", message="written")
    actions = [entry["action"] for entry in _read_entries(log_file, logger)]
    assert actions == ["shown"]


def test_next_log_path_lives_under_home(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("HOME", str(tmp_path))
    first = next_log_path("run")
    assert first.parent == tmp_path / ".autotidy" / "logs"
    assert first.name.startswith("run-")
    first.touch()
    assert next_log_path("run") != first
