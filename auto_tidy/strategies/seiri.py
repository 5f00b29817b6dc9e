"""Scheduled relocation of files that have not been modified for a while."""
from __future__ import annotations

import logging
import os
from pathlib import Path

from ..config import MoveOldFilesRule
from ..file_mover import FileTransferResolver
from ..logger import log_event
from ..models import ScanContext
from ..utils.fs import file_extension, is_within
from .base import ScheduledStrategy

LOGGER = logging.getLogger("auto_tidy.seiri")

SECONDS_PER_DAY = 86400


class AgeBasedMoveStrategy(ScheduledStrategy):
    """Move files older than ``rule.days`` into ``destination/<EXT>``."""

    name = "seiri.move_old_files"

    def __init__(
        self,
        rule: MoveOldFilesRule,
        resolver: FileTransferResolver,
        logger: logging.Logger | None = None,
    ) -> None:
        self.rule = rule
        self.resolver = resolver
        self.logger = logger or LOGGER

    @property
    def threshold_seconds(self) -> float:
        return self.rule.days * SECONDS_PER_DAY

    def is_stale(self, modified_at: float, now: float) -> bool:
        return (now - modified_at) > self.threshold_seconds

    def destination_for(self, path: Path) -> Path:
        assert self.rule.destination is not None
        extension = file_extension(path)
        if extension:
            return self.rule.destination / extension.upper()
        return self.rule.destination

    def execute(self, context: ScanContext) -> int:
        """Return the number of files moved during this firing."""

        if not self.rule.enabled or self.rule.destination is None:
            log_event(
                self.logger,
                level=logging.INFO,
                action="seiri.disabled",
                message="Rule for moving old files is disabled",
            )
            return 0

        log_event(
            self.logger,
            level=logging.INFO,
            action="seiri.scan",
            message=f"Checking for files not modified for {self.rule.days} day(s)",
            extra={"folders": [str(folder) for folder in context.folders]},
        )
        moved = 0
        for folder in context.folders:
            if context.is_cancelled():
                break
            moved += self._scan_folder(Path(folder), context)
        return moved

    def _scan_folder(self, folder: Path, context: ScanContext) -> int:
        destination = self.rule.destination
        assert destination is not None
        moved = 0
        stale: list[Path] = []

        def on_error(exc: OSError) -> None:
            log_event(
                self.logger,
                level=logging.ERROR,
                action="seiri.walk_error",
                message=f"Error while walking {exc.filename}",
                extra={"path": str(exc.filename), "error": str(exc)},
            )

        for current, dirnames, filenames in os.walk(folder, onerror=on_error):
            current_path = Path(current)
            dirnames[:] = [
                name for name in dirnames if not is_within(current_path / name, destination)
            ]
            for filename in filenames:
                path = current_path / filename
                try:
                    if path.is_symlink() or not path.is_file():
                        continue
                    modified_at = path.stat().st_mtime
                except OSError as exc:
                    log_event(
                        self.logger,
                        level=logging.ERROR,
                        action="seiri.stat_error",
                        message=f"Could not read attributes of {path}",
                        extra={"path": str(path), "error": str(exc)},
                    )
                    continue
                if self.is_stale(modified_at, context.now):
                    stale.append(path)

        for path in stale:
            if context.is_cancelled():
                break
            log_event(
                self.logger,
                level=logging.INFO,
                action="seiri.stale",
                message=f"{path} is considered old; moving",
                extra={"path": str(path)},
            )
            if self.resolver.move(path, self.destination_for(path)) is not None:
                moved += 1
        return moved


__all__ = ["AgeBasedMoveStrategy"]
