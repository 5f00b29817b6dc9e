"""Core dataclasses shared across auto-tidy modules."""
from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Sequence


@dataclass(slots=True)
class ScanContext:
    """Input handed to scheduled strategies for a single firing."""

    folders: Sequence[Path]
    now: float = field(default_factory=time.time)
    cancelled: threading.Event = field(default_factory=threading.Event)

    def is_cancelled(self) -> bool:
        return self.cancelled.is_set()


@dataclass(frozen=True, slots=True)
class FileRecord:
    """Snapshot of a file taken during a duplicate scan."""

    path: Path
    size: int
    modified_at: float
    digest: str

    def to_dict(self) -> dict[str, str | int]:
        return {
            "path": str(self.path),
            "size": self.size,
            "modified_at": datetime.fromtimestamp(self.modified_at).isoformat(),
            "hash": self.digest,
        }


@dataclass(slots=True)
class DuplicateGroup:
    """Records sharing one content digest, in first-seen order."""

    digest: str
    records: list[FileRecord] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.records)

    @property
    def size(self) -> int:
        return self.records[0].size if self.records else 0

    @property
    def is_duplicate(self) -> bool:
        return self.count > 1

    @property
    def wasted_bytes(self) -> int:
        return self.size * max(self.count - 1, 0)

    def to_dict(self) -> dict[str, object]:
        return {
            "hash": self.digest,
            "count": self.count,
            "size_each": self.size,
            "wasted_bytes": self.wasted_bytes,
            "files": [record.to_dict() for record in self.records],
        }


@dataclass(slots=True)
class DuplicateReport:
    """Outcome of one duplicate detection pass."""

    groups: list[DuplicateGroup]
    scanned_files: int = 0
    scanned_bytes: int = 0
    duration_ms: float = 0.0

    @property
    def total_wasted_bytes(self) -> int:
        return sum(group.wasted_bytes for group in self.groups)

    @property
    def duplicate_files(self) -> int:
        return sum(group.count for group in self.groups)

    @property
    def duplication_ratio(self) -> float:
        if not self.scanned_bytes:
            return 0.0
        return self.total_wasted_bytes / self.scanned_bytes

    def to_dict(self) -> dict[str, object]:
        return {
            "groups": [group.to_dict() for group in self.groups],
            "total_groups": len(self.groups),
            "duplicate_files": self.duplicate_files,
            "total_wasted_bytes": self.total_wasted_bytes,
            "scanned_files": self.scanned_files,
            "scanned_bytes": self.scanned_bytes,
            "duration_ms": round(self.duration_ms, 3),
        }


__all__ = ["DuplicateGroup", "DuplicateReport", "FileRecord", "ScanContext"]
