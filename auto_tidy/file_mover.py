"""Collision-safe file relocation."""
from __future__ import annotations

import errno
import logging
import os
import shutil
from pathlib import Path

from .logger import log_event
from .utils.fs import UNIQUE_NAME_LIMIT, UniqueNameExhausted, ensure_directory, hash_file, unique_path

LOGGER = logging.getLogger("auto_tidy.mover")

# Filesystems without hard links fall back to a plain rename.
_NO_HARD_LINKS = {errno.EPERM, errno.ENOTSUP, errno.EOPNOTSUPP, errno.EMLINK, errno.ENOSYS}


class FileTransferResolver:
    """Move files into folders without overwriting what is already there.

    Failures never propagate: they are logged with the offending path and
    :meth:`move` returns ``None`` with the source left where it was.
    """

    def __init__(
        self,
        logger: logging.Logger | None = None,
        *,
        name_limit: int = UNIQUE_NAME_LIMIT,
    ) -> None:
        self.logger = logger or LOGGER
        self.name_limit = name_limit

    def move(self, source: Path, destination_folder: Path) -> Path | None:
        """Move *source* into *destination_folder* and return the new path."""

        source = Path(source)
        destination_folder = Path(destination_folder)
        try:
            ensure_directory(destination_folder)
            target = self._place(source, destination_folder)
            if target.name != source.name:
                log_event(
                    self.logger,
                    level=logging.INFO,
                    action="move.renamed",
                    message=f"{source.name} already exists in {destination_folder}; using {target.name}",
                    extra={"path": str(source), "target": str(target)},
                )
        except UniqueNameExhausted as exc:
            log_event(
                self.logger,
                level=logging.ERROR,
                action="move.name_exhausted",
                message=str(exc),
                extra={"path": str(source)},
            )
            return None
        except FileNotFoundError as exc:
            log_event(
                self.logger,
                level=logging.WARNING,
                action="move.source_missing",
                message=f"Source disappeared before it could be moved: {source}",
                extra={"path": str(source), "error": str(exc)},
            )
            return None
        except PermissionError as exc:
            log_event(
                self.logger,
                level=logging.ERROR,
                action="move.permission_denied",
                message=f"Permission denied moving {source}",
                extra={"path": str(source), "error": str(exc)},
            )
            return None
        except OSError as exc:
            log_event(
                self.logger,
                level=logging.ERROR,
                action="move.io_error",
                message=f"Could not move {source}; it may be in use or the disk may be full",
                extra={"path": str(source), "error": str(exc)},
            )
            return None

        log_event(
            self.logger,
            level=logging.INFO,
            action="move.success",
            message=f"Moved {source} -> {target}",
            extra={"path": str(source), "target": str(target)},
        )
        return target

    def _place(self, source: Path, destination_folder: Path) -> Path:
        """Relocate *source* under the first free name and return it.

        A name taken by another writer between the check and the move is
        skipped and the next candidate is tried.
        """

        for _ in range(self.name_limit + 1):
            target = unique_path(destination_folder / source.name, limit=self.name_limit)
            try:
                self._relocate(source, target)
            except FileExistsError:
                log_event(
                    self.logger,
                    level=logging.DEBUG,
                    action="move.name_taken",
                    message=f"{target.name} was taken concurrently; retrying",
                    extra={"path": str(source), "target": str(target)},
                )
                continue
            return target
        raise UniqueNameExhausted(f"No free name for {source.name} in {destination_folder}")

    def _relocate(self, source: Path, target: Path) -> None:
        # Linking never replaces an existing target, unlike rename.
        try:
            os.link(source, target, follow_symlinks=False)
        except OSError as exc:
            if exc.errno == errno.EXDEV:
                self._copy_and_verify(source, target)
            elif exc.errno in _NO_HARD_LINKS:
                source.rename(target)
            else:
                raise
            return
        try:
            source.unlink()
        except OSError:
            target.unlink()
            raise

    def _copy_and_verify(self, source: Path, target: Path) -> None:
        """Cross-volume move: copy, compare digests, then drop the source."""

        writer = target.open("xb")
        try:
            with writer, source.open("rb") as reader:
                shutil.copyfileobj(reader, writer)
            shutil.copystat(source, target)
            if hash_file(source) != hash_file(target):
                raise OSError(f"SHA-256 verification failed for {source}")
            source.unlink()
        except OSError:
            # Leave no partial copy behind; the source is still intact.
            if source.exists():
                target.unlink(missing_ok=True)
            raise
        log_event(
            self.logger,
            level=logging.INFO,
            action="move.copy_and_verify",
            message=f"Moved cross-volume {source} -> {target}",
            bytes_processed=target.stat().st_size,
        )


__all__ = ["FileTransferResolver"]
