"""Content-addressed duplicate detection."""
from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Sequence

from ..config import DuplicateRules, KeepStrategy
from ..dedup_index import DuplicateIndex, iter_files, write_reports
from ..file_mover import FileTransferResolver
from ..logger import log_event
from ..models import DuplicateGroup, DuplicateReport, FileRecord, ScanContext
from ..system_filter import SystemFilter
from ..utils.fs import ScanCancelled, hash_file, is_within
from .base import ScheduledStrategy

LOGGER = logging.getLogger("auto_tidy.duplicates")

_MEBIBYTE = 1024 * 1024


def select_survivor(records: Sequence[FileRecord], strategy: KeepStrategy) -> FileRecord:
    """Pick the record that is kept when a group is remediated.

    Ties resolve to the first-seen record.
    """

    if strategy is KeepStrategy.NEWEST:
        return max(records, key=lambda record: record.modified_at)
    if strategy is KeepStrategy.OLDEST:
        return min(records, key=lambda record: record.modified_at)
    return records[0]


class DuplicateDetectionStrategy(ScheduledStrategy):
    name = "duplicates.detect"

    def __init__(
        self,
        rules: DuplicateRules,
        resolver: FileTransferResolver,
        *,
        system_filter: SystemFilter | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.rules = rules
        self.resolver = resolver
        self.system_filter = system_filter or SystemFilter()
        self.logger = logger or LOGGER

    def is_relevant(self, path: Path, size: int) -> bool:
        if self.rules.min_file_size_bytes > 0 and size < self.rules.min_file_size_bytes:
            return False
        if self.rules.max_file_size_bytes > 0 and size > self.rules.max_file_size_bytes:
            return False
        if self.rules.duplicates_destination is not None and is_within(
            path, self.rules.duplicates_destination
        ):
            return False
        return not self.system_filter.is_artifact(path)

    def scan(self, context: ScanContext) -> DuplicateIndex:
        """Hash every relevant file under the context folders."""

        index = DuplicateIndex()
        for path in iter_files(Path(folder) for folder in context.folders):
            if context.is_cancelled():
                break
            try:
                if path.is_symlink() or not path.is_file():
                    continue
                stat_result = path.stat()
                if not self.is_relevant(path, stat_result.st_size):
                    continue
                digest = hash_file(path, context.cancelled)
            except ScanCancelled:
                log_event(
                    self.logger,
                    level=logging.INFO,
                    action="duplicates.cancelled",
                    message=f"Scan cancelled while hashing {path}",
                    extra={"path": str(path)},
                )
                break
            except OSError as exc:
                log_event(
                    self.logger,
                    level=logging.DEBUG,
                    action="duplicates.read_error",
                    message=f"Could not process {path}",
                    extra={"path": str(path), "error": str(exc)},
                )
                continue
            index.add(
                FileRecord(
                    path=path,
                    size=stat_result.st_size,
                    modified_at=stat_result.st_mtime,
                    digest=digest,
                )
            )
        return index

    def execute(self, context: ScanContext) -> DuplicateReport:
        log_event(
            self.logger,
            level=logging.INFO,
            action="duplicates.scan_started",
            message="Scanning for duplicate files",
            extra={"folders": [str(folder) for folder in context.folders]},
        )
        started = time.monotonic()
        index = self.scan(context)
        report = index.build_report((time.monotonic() - started) * 1000)

        log_event(
            self.logger,
            level=logging.INFO,
            action="duplicates.analysing",
            message=f"Analysing {len(index)} hash group(s)",
        )
        for group in report.groups:
            self._report_group(group)
            if self.rules.auto_remove and not context.is_cancelled():
                self.remediate(group)

        self._log_summary(report)
        if self.rules.report_destination is not None:
            try:
                json_path, _ = write_reports(report, self.rules.report_destination)
            except OSError as exc:
                log_event(
                    self.logger,
                    level=logging.ERROR,
                    action="duplicates.report_failed",
                    message="Could not write duplicate report",
                    extra={"path": str(self.rules.report_destination), "error": str(exc)},
                )
            else:
                log_event(
                    self.logger,
                    level=logging.INFO,
                    action="duplicates.report_written",
                    message=f"Duplicate report written to {json_path}",
                    extra={"path": str(json_path)},
                )
        return report

    def remediate(self, group: DuplicateGroup) -> list[Path]:
        """Delete or quarantine every member of *group* except the survivor."""

        survivor = select_survivor(group.records, self.rules.keep_strategy)
        handled: list[Path] = []
        for record in group.records:
            if record is survivor:
                continue
            if self.rules.duplicates_destination is not None:
                target = self.resolver.move(record.path, self.rules.duplicates_destination)
                if target is not None:
                    handled.append(record.path)
                    log_event(
                        self.logger,
                        level=logging.INFO,
                        action="duplicates.quarantined",
                        message=f"Duplicate moved: {record.path} -> {target}",
                        extra={"path": str(record.path), "kept": str(survivor.path)},
                    )
                continue
            try:
                record.path.unlink()
            except OSError as exc:
                log_event(
                    self.logger,
                    level=logging.ERROR,
                    action="duplicates.remove_failed",
                    message=f"Could not remove duplicate {record.path}",
                    extra={"path": str(record.path), "error": str(exc)},
                )
                continue
            handled.append(record.path)
            log_event(
                self.logger,
                level=logging.INFO,
                action="duplicates.removed",
                message=f"Duplicate removed: {record.path}",
                extra={"path": str(record.path), "kept": str(survivor.path)},
            )
        return handled

    def _report_group(self, group: DuplicateGroup) -> None:
        log_event(
            self.logger,
            level=logging.WARNING,
            action="duplicates.group",
            message=(
                f"Found {group.count} duplicates: "
                f"{group.wasted_bytes / _MEBIBYTE:.2f} MB wasted"
            ),
            bytes_processed=group.wasted_bytes,
            extra={"hash": group.digest, "files": [str(record.path) for record in group.records]},
        )

    def _log_summary(self, report: DuplicateReport) -> None:
        log_event(
            self.logger,
            level=logging.INFO,
            action="duplicates.summary",
            message="Duplicate detection finished",
            duration_ms=report.duration_ms,
            extra={
                "scanned_files": report.scanned_files,
                "scanned_bytes": report.scanned_bytes,
                "groups": len(report.groups),
                "duplicate_files": report.duplicate_files,
                "wasted_bytes": report.total_wasted_bytes,
                "duplication_percent": round(report.duplication_ratio * 100, 1),
            },
        )


__all__ = ["DuplicateDetectionStrategy", "select_survivor"]
