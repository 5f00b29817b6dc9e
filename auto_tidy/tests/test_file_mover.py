from __future__ import annotations

import errno
import json
import logging
import os
from pathlib import Path

import pytest

from auto_tidy import file_mover
from auto_tidy.file_mover import FileTransferResolver
from auto_tidy.logger import configure_logging
from auto_tidy.utils.fs import UniqueNameExhausted, file_extension, hash_file, unique_path


def _actions(log_file: Path) -> list[str]:
    for handler in logging.getLogger("auto_tidy").handlers:
        handler.flush()
    return [json.loads(line)["action"] for line in log_file.read_text(encoding="utf-8").splitlines()]


def test_move_into_new_folder(tmp_path) -> None:
    source = tmp_path / "in" / "report.pdf"
    source.parent.mkdir()
    source.write_text("pdf", encoding="utf-8")

    target = FileTransferResolver().move(source, tmp_path / "Docs" / "nested")

    assert target == tmp_path / "Docs" / "nested" / "report.pdf"
    assert target.read_text(encoding="utf-8") == "pdf"
    assert not source.exists()


def test_collisions_get_numbered_names(tmp_path) -> None:
    destination = tmp_path / "Docs"
    destination.mkdir()
    (destination / "report.pdf").write_text("existing", encoding="utf-8")
    resolver = FileTransferResolver()

    first = tmp_path / "report.pdf"
    first.write_text("one", encoding="utf-8")
    assert resolver.move(first, destination) == destination / "report_1.pdf"

    second = tmp_path / "report.pdf"
    second.write_text("two", encoding="utf-8")
    assert resolver.move(second, destination) == destination / "report_2.pdf"

    assert (destination / "report.pdf").read_text(encoding="utf-8") == "existing"
    assert (destination / "report_1.pdf").read_text(encoding="utf-8") == "one"


def test_unique_path_limit(tmp_path) -> None:
    base = tmp_path / "a.txt"
    base.touch()
    (tmp_path / "a_1.txt").touch()
    (tmp_path / "a_2.txt").touch()
    with pytest.raises(UniqueNameExhausted):
        unique_path(base, limit=2)

    dotfile = tmp_path / ".bashrc"
    dotfile.touch()
    assert unique_path(dotfile) == tmp_path / ".bashrc_1"


def test_exhausted_names_leave_source(tmp_path) -> None:
    log_file = tmp_path / "move.log"
    configure_logging(log_file)
    destination = tmp_path / "Docs"
    destination.mkdir()
    (destination / "a.txt").touch()
    (destination / "a_1.txt").touch()
    source = tmp_path / "a.txt"
    source.write_text("keep", encoding="utf-8")

    assert FileTransferResolver(name_limit=1).move(source, destination) is None
    assert source.exists()
    assert "move.name_exhausted" in _actions(log_file)


def test_missing_source_is_logged(tmp_path) -> None:
    log_file = tmp_path / "move.log"
    configure_logging(log_file)
    assert FileTransferResolver().move(tmp_path / "ghost.txt", tmp_path / "Docs") is None
    assert "move.source_missing" in _actions(log_file)


@pytest.mark.skipif(os.name == "nt" or os.geteuid() == 0, reason="requires POSIX permissions as non-root")
def test_permission_denied_keeps_source(tmp_path) -> None:
    log_file = tmp_path / "move.log"
    configure_logging(log_file)
    locked = tmp_path / "locked"
    locked.mkdir()
    source = tmp_path / "a.txt"
    source.write_text("data", encoding="utf-8")
    locked.chmod(0o500)
    try:
        assert FileTransferResolver().move(source, locked) is None
    finally:
        locked.chmod(0o700)
    assert source.exists()
    assert "move.permission_denied" in _actions(log_file)


def test_cross_volume_move_copies_and_verifies(tmp_path, monkeypatch) -> None:
    source = tmp_path / "big.bin"
    source.write_bytes(os.urandom(100 * 1024))
    digest = hash_file(source)

    def fake_link(src, dst, *, follow_symlinks=True):
        raise OSError(errno.EXDEV, "Invalid cross-device link")

    monkeypatch.setattr(file_mover.os, "link", fake_link)
    target = FileTransferResolver().move(source, tmp_path / "other")

    assert target == tmp_path / "other" / "big.bin"
    assert hash_file(target) == digest
    assert not source.exists()


def test_cross_volume_copy_never_replaces_existing_target(tmp_path, monkeypatch) -> None:
    source = tmp_path / "notes.txt"
    source.write_text("mine", encoding="utf-8")
    destination = tmp_path / "other"
    destination.mkdir()
    existing = destination / "notes.txt"

    def fake_link(src, dst, *, follow_symlinks=True):
        if not existing.exists():
            existing.write_text("theirs", encoding="utf-8")
        raise OSError(errno.EXDEV, "Invalid cross-device link")

    monkeypatch.setattr(file_mover.os, "link", fake_link)
    target = FileTransferResolver().move(source, destination)

    assert target == destination / "notes_1.txt"
    assert target.read_text(encoding="utf-8") == "mine"
    assert existing.read_text(encoding="utf-8") == "theirs"
    assert not source.exists()


def test_name_taken_concurrently_is_skipped(tmp_path, monkeypatch) -> None:
    destination = tmp_path / "Docs"
    destination.mkdir()
    source = tmp_path / "report.pdf"
    source.write_text("mine", encoding="utf-8")
    raced: list[Path] = []

    def racing_unique_path(base, *, limit):
        candidate = unique_path(base, limit=limit)
        if not raced:
            candidate.write_text("theirs", encoding="utf-8")
            raced.append(candidate)
        return candidate

    monkeypatch.setattr(file_mover, "unique_path", racing_unique_path)
    target = FileTransferResolver().move(source, destination)

    assert raced == [destination / "report.pdf"]
    assert target == destination / "report_1.pdf"
    assert target.read_text(encoding="utf-8") == "mine"
    assert (destination / "report.pdf").read_text(encoding="utf-8") == "theirs"
    assert not source.exists()


def test_filesystem_without_hard_links_falls_back_to_rename(tmp_path, monkeypatch) -> None:
    source = tmp_path / "photo.jpg"
    source.write_bytes(b"jpeg")

    def fake_link(src, dst, *, follow_symlinks=True):
        raise PermissionError(errno.EPERM, "Operation not permitted")

    monkeypatch.setattr(file_mover.os, "link", fake_link)
    target = FileTransferResolver().move(source, tmp_path / "Pictures")

    assert target == tmp_path / "Pictures" / "photo.jpg"
    assert target.read_bytes() == b"jpeg"
    assert not source.exists()


@pytest.mark.skipif(os.name == "nt", reason="requires symlink support")
def test_dangling_symlink_name_counts_as_taken(tmp_path) -> None:
    (tmp_path / "a.txt").symlink_to(tmp_path / "missing")
    assert unique_path(tmp_path / "a.txt") == tmp_path / "a_1.txt"


def test_file_extension_rules() -> None:
    assert file_extension(Path("report.PDF")) == "pdf"
    assert file_extension(Path("archive.tar.gz")) == "gz"
    assert file_extension(Path("README")) is None
    assert file_extension(Path("trailing.")) is None
    assert file_extension(Path(".bashrc")) == "bashrc"
