from __future__ import annotations

import json
import os
import threading
from pathlib import Path

from auto_tidy.config import DuplicateRules, KeepStrategy
from auto_tidy.file_mover import FileTransferResolver
from auto_tidy.models import FileRecord, ScanContext
from auto_tidy.strategies import DuplicateDetectionStrategy, select_survivor


def create_file(path: Path, content: str, *, mtime: float | None = None) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    if mtime is not None:
        os.utime(path, (mtime, mtime))
    return path


def _detector(**overrides) -> DuplicateDetectionStrategy:
    return DuplicateDetectionStrategy(DuplicateRules(**overrides), FileTransferResolver())


def test_groups_identical_content(tmp_path) -> None:
    watched = tmp_path / "watched"
    create_file(watched / "a.txt", "same")
    create_file(watched / "nested" / "b.txt", "same")
    create_file(watched / "c.txt", "different")

    report = _detector().execute(ScanContext(folders=[watched]))

    assert report.scanned_files == 3
    assert len(report.groups) == 1
    group = report.groups[0]
    assert group.count == 2
    assert {record.path.name for record in group.records} == {"a.txt", "b.txt"}
    assert report.total_wasted_bytes == len("same")


def test_size_bounds_and_artifacts_are_skipped(tmp_path) -> None:
    watched = tmp_path / "watched"
    create_file(watched / "tiny1.txt", "x")
    create_file(watched / "tiny2.txt", "x")
    create_file(watched / "big1.txt", "y" * 100)
    create_file(watched / "big2.txt", "y" * 100)
    create_file(watched / "mid1.txt", "z" * 10)
    create_file(watched / "mid2.txt", "z" * 10)
    create_file(watched / ".DS_Store", "z" * 10)
    create_file(watched / "~$mid.docx", "z" * 10)

    report = _detector(min_file_size_bytes=5, max_file_size_bytes=50).execute(
        ScanContext(folders=[watched])
    )

    assert report.scanned_files == 2
    assert [record.path.name for record in report.groups[0].records] == ["mid1.txt", "mid2.txt"]


def test_select_survivor_strategies() -> None:
    records = [
        FileRecord(Path("b"), 1, 200.0, "h"),
        FileRecord(Path("a"), 1, 100.0, "h"),
        FileRecord(Path("c"), 1, 300.0, "h"),
    ]
    assert select_survivor(records, KeepStrategy.NEWEST).path == Path("c")
    assert select_survivor(records, KeepStrategy.OLDEST).path == Path("a")
    assert select_survivor(records, KeepStrategy.MANUAL).path == Path("b")


def test_auto_remove_deletes_all_but_newest(tmp_path) -> None:
    watched = tmp_path / "watched"
    old = create_file(watched / "old.txt", "payload", mtime=1_000_000)
    newest = create_file(watched / "new.txt", "payload", mtime=3_000_000)
    middle = create_file(watched / "mid.txt", "payload", mtime=2_000_000)

    report = _detector(auto_remove=True).execute(ScanContext(folders=[watched]))

    assert len(report.groups) == 1
    assert newest.exists()
    assert not old.exists()
    assert not middle.exists()


def test_auto_remove_quarantines_and_is_idempotent(tmp_path) -> None:
    watched = tmp_path / "watched"
    quarantine = watched / "Duplicates"
    oldest = create_file(watched / "first.txt", "payload", mtime=1_000_000)
    newer = create_file(watched / "second.txt", "payload", mtime=2_000_000)
    detector = _detector(
        auto_remove=True,
        keep_strategy=KeepStrategy.OLDEST,
        duplicates_destination=quarantine,
    )

    detector.execute(ScanContext(folders=[watched]))

    assert oldest.exists()
    assert not newer.exists()
    assert (quarantine / "second.txt").read_text(encoding="utf-8") == "payload"

    second_pass = detector.execute(ScanContext(folders=[watched]))
    assert second_pass.groups == []
    assert oldest.exists()
    assert (quarantine / "second.txt").exists()


def test_report_only_leaves_files_and_writes_reports(tmp_path) -> None:
    watched = tmp_path / "watched"
    first = create_file(watched / "a.txt", "payload")
    second = create_file(watched / "b.txt", "payload")
    reports = tmp_path / "reports"

    _detector(report_destination=reports).execute(ScanContext(folders=[watched]))

    assert first.exists() and second.exists()
    data = json.loads((reports / "duplicates_report.json").read_text(encoding="utf-8"))
    assert data["total_groups"] == 1
    assert (reports / "duplicates_report.txt").exists()


def test_cancelled_scan_reports_nothing(tmp_path) -> None:
    watched = tmp_path / "watched"
    create_file(watched / "a.txt", "payload")
    create_file(watched / "b.txt", "payload")
    context = ScanContext(folders=[watched])
    context.cancelled.set()

    report = _detector(auto_remove=True).execute(context)

    assert report.scanned_files == 0
    assert (watched / "a.txt").exists() and (watched / "b.txt").exists()


def test_repeated_scans_give_identical_groups(tmp_path) -> None:
    watched = tmp_path / "watched"
    create_file(watched / "b.txt", "alpha")
    create_file(watched / "a.txt", "alpha")
    create_file(watched / "deep" / "c.txt", "beta")
    create_file(watched / "d.txt", "beta")
    detector = _detector()

    first = detector.execute(ScanContext(folders=[watched]))
    second = detector.execute(ScanContext(folders=[watched]))

    def membership(report):
        return [[record.path for record in group.records] for group in report.groups]

    assert membership(first) == membership(second)
    assert len(first.groups) == 2
    assert first.total_wasted_bytes == second.total_wasted_bytes


class TripAfter(threading.Event):
    def __init__(self, checks: int) -> None:
        super().__init__()
        self.remaining = checks

    def is_set(self) -> bool:
        self.remaining -= 1
        return self.remaining < 0 or super().is_set()


def test_cancellation_interrupts_hashing_mid_file(tmp_path) -> None:
    watched = tmp_path / "watched"
    watched.mkdir()
    payload = b"z" * (512 * 1024)
    first = watched / "a.bin"
    second = watched / "b.bin"
    first.write_bytes(payload)
    second.write_bytes(payload)
    context = ScanContext(folders=[watched], cancelled=TripAfter(3))

    report = _detector(auto_remove=True).execute(context)

    assert report.scanned_files == 0
    assert report.groups == []
    assert first.exists() and second.exists()
