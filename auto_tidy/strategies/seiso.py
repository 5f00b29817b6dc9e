"""Scheduled purge of temporary folders."""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Sequence

from ..logger import log_event
from ..models import ScanContext
from .base import ScheduledStrategy

LOGGER = logging.getLogger("auto_tidy.seiso")


def deletion_order(root: Path) -> list[Path]:
    """Every entry below *root*, deepest first; *root* itself is excluded."""

    entries: list[Path] = []
    for current, dirnames, filenames in os.walk(root):
        current_path = Path(current)
        entries.extend(current_path / name for name in dirnames)
        entries.extend(current_path / name for name in filenames)
    return sorted(entries, key=lambda path: path.parts, reverse=True)


class TempFolderCleanupStrategy(ScheduledStrategy):
    """Empty each configured folder while keeping the folder itself."""

    name = "seiso.clean_temp_folders"

    def __init__(
        self,
        folders: Sequence[Path],
        *,
        enabled: bool = True,
        logger: logging.Logger | None = None,
    ) -> None:
        self.folders = [Path(folder) for folder in folders]
        self.enabled = enabled
        self.logger = logger or LOGGER

    def execute(self, context: ScanContext) -> int:
        """Return the number of entries deleted during this firing."""

        if not self.enabled:
            log_event(
                self.logger,
                level=logging.INFO,
                action="seiso.disabled",
                message="Temporary folder cleanup is disabled",
            )
            return 0

        deleted = 0
        for folder in self.folders:
            if context.is_cancelled():
                break
            if not folder.is_dir():
                log_event(
                    self.logger,
                    level=logging.WARNING,
                    action="seiso.missing_folder",
                    message=f"Folder to clean does not exist: {folder}",
                    extra={"path": str(folder)},
                )
                continue
            deleted += self.clean(folder, context)
        return deleted

    def clean(self, root: Path, context: ScanContext | None = None) -> int:
        deleted = 0
        failed = 0
        for entry in deletion_order(root):
            if context is not None and context.is_cancelled():
                break
            try:
                if entry.is_dir() and not entry.is_symlink():
                    entry.rmdir()
                else:
                    entry.unlink()
            except FileNotFoundError:
                continue
            except OSError as exc:
                failed += 1
                log_event(
                    self.logger,
                    level=logging.WARNING,
                    action="seiso.delete_failed",
                    message=f"Could not delete {entry}; it may be in use",
                    extra={"path": str(entry), "error": str(exc)},
                )
                continue
            deleted += 1
            log_event(
                self.logger,
                level=logging.DEBUG,
                action="seiso.deleted",
                message=f"Deleted {entry}",
                extra={"path": str(entry)},
            )
        log_event(
            self.logger,
            level=logging.INFO,
            action="seiso.cleaned",
            message=f"Cleanup finished for {root}",
            extra={"path": str(root), "deleted": deleted, "failed": failed},
        )
        return deleted


__all__ = ["TempFolderCleanupStrategy", "deletion_order"]
