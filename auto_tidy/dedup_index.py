"""Scan-local duplicate index and report writer."""
from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Iterator

from .models import DuplicateGroup, DuplicateReport, FileRecord


class DuplicateIndex:
    """Digest -> records map owned by a single duplicate detection pass.

    Nothing survives the pass: a new index is built for every scan.
    """

    def __init__(self) -> None:
        self._groups: dict[str, DuplicateGroup] = {}
        self.scanned_files = 0
        self.scanned_bytes = 0

    def add(self, record: FileRecord) -> None:
        group = self._groups.get(record.digest)
        if group is None:
            group = self._groups[record.digest] = DuplicateGroup(record.digest)
        group.records.append(record)
        self.scanned_files += 1
        self.scanned_bytes += record.size

    def __len__(self) -> int:
        return len(self._groups)

    def duplicates(self) -> list[DuplicateGroup]:
        """Groups with more than one member, in first-seen order."""

        return [group for group in self._groups.values() if group.is_duplicate]

    def build_report(self, duration_ms: float = 0.0) -> DuplicateReport:
        return DuplicateReport(
            groups=self.duplicates(),
            scanned_files=self.scanned_files,
            scanned_bytes=self.scanned_bytes,
            duration_ms=duration_ms,
        )


def iter_files(roots: Iterable[Path]) -> Iterator[Path]:
    """Yield every file below *roots* in a stable, sorted order."""

    for root in roots:
        for current, dirnames, filenames in os.walk(root):
            dirnames.sort()
            for filename in sorted(filenames):
                yield Path(current, filename)


def write_reports(report: DuplicateReport, output_dir: str | os.PathLike[str]) -> tuple[Path, Path]:
    """Write JSON and text reports summarising *report*."""

    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)
    json_path = output_path / "duplicates_report.json"
    txt_path = output_path / "duplicates_report.txt"

    payload = {
        "generated_at": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        **report.to_dict(),
    }
    json_path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")

    lines = [
        "auto-tidy Duplicate Report",
        "==========================",
        f"Scanned files: {report.scanned_files}",
        f"Groups: {len(report.groups)}",
        f"Potential space recovery: {report.total_wasted_bytes} bytes",
        "",
    ]
    for group in report.groups:
        lines.append(f"Hash: {group.digest} ({group.count} files, {group.wasted_bytes} bytes wasted)")
        for record in group.records:
            lines.append(f"  - {record.path} [{record.size} bytes]")
        lines.append("")
    txt_path.write_text("\n".join(lines), encoding="utf-8")
    return json_path, txt_path


__all__ = ["DuplicateIndex", "iter_files", "write_reports"]
