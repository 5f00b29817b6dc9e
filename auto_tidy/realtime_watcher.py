"""Realtime directory watcher built on watchdog."""
from __future__ import annotations

import contextlib
import logging
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from queue import Empty, Full, Queue
from typing import Any, Callable, Iterable, Sequence

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.polling import PollingObserver

from .logger import log_event
from .strategies.base import RuleStrategy
from .utils.fs import file_extension

LOGGER = logging.getLogger("auto_tidy.realtime")

DEFAULT_SETTLE_DELAY = 0.5
DEFAULT_POLL_INTERVAL = 0.5
DEFAULT_QUEUE_SIZE = 4096


@dataclass(frozen=True, slots=True)
class _PendingFile:
    path: Path
    queued_at: float = field(default_factory=time.monotonic, compare=False)


@dataclass(frozen=True, slots=True)
class _RootLost:
    root: Path


_Sentinel = object()


def default_observer_factory(use_polling: bool = False) -> Callable[[], Any]:
    """Return a factory for the platform observer or the polling fallback."""

    return PollingObserver if use_polling else Observer


class _FolderEventHandler(FileSystemEventHandler):
    """Translate watchdog events for one watched root into watcher items."""

    def __init__(self, watcher: "DirectoryWatcher", root: Path) -> None:
        super().__init__()
        self._watcher = watcher
        self._root = root

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._watcher.publish(_as_path(event.src_path))

    def on_moved(self, event: FileSystemEvent) -> None:
        if _as_path(event.src_path) == self._root:
            self._watcher.invalidate(self._root)
            return
        destination = _as_path(event.dest_path)
        if not event.is_directory and destination.parent == self._root:
            self._watcher.publish(destination)

    def on_deleted(self, event: FileSystemEvent) -> None:
        if _as_path(event.src_path) == self._root:
            self._watcher.invalidate(self._root)


def _as_path(value: str | bytes) -> Path:
    if isinstance(value, bytes):
        value = value.decode()
    return Path(value)


class DirectoryWatcher:
    """Dispatch files created in watched folders to real-time strategies.

    Watches are non-recursive. Events flow from the observer thread into a
    bounded queue that :meth:`start` drains on the calling thread; events that
    do not fit are dropped and reported after the next batch.
    """

    def __init__(
        self,
        *,
        settle_delay: float = DEFAULT_SETTLE_DELAY,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        observer_factory: Callable[[], Any] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.settle_delay = settle_delay
        self.poll_interval = poll_interval
        self._observer_factory = observer_factory or default_observer_factory()
        self._queue: Queue[object] = Queue(maxsize=queue_size)
        self._stop_event = threading.Event()
        self._lock = threading.Lock()
        self._watches: dict[Path, Any] = {}
        self._active = False
        self._running = False
        self._dropped = 0
        self.logger = logger or LOGGER

    @property
    def running(self) -> bool:
        return self._running

    @property
    def watched_folders(self) -> tuple[Path, ...]:
        with self._lock:
            return tuple(self._watches)

    def publish(self, path: str | Path) -> None:
        """Submit a newly created file for dispatch."""

        self._put(_PendingFile(Path(path)))

    def invalidate(self, root: Path) -> None:
        """Report that a watched root was deleted or moved away."""

        self._put(_RootLost(Path(root)))

    def stop(self) -> None:
        """Ask :meth:`start` to return once the current batch is handled."""

        if self._stop_event.is_set():
            return
        self._stop_event.set()
        with contextlib.suppress(Full):
            self._queue.put_nowait(_Sentinel)
        log_event(
            self.logger,
            level=logging.INFO,
            action="watcher.stop_requested",
            message="Stop requested for directory watcher",
        )

    def start(self, folders: Iterable[str | Path], strategies: Sequence[RuleStrategy]) -> None:
        """Watch *folders* and block until :meth:`stop` is called."""

        with self._lock:
            if self._active:
                log_event(
                    self.logger,
                    level=logging.WARNING,
                    action="watcher.already_running",
                    message="Directory watcher is already running",
                )
                return
            if self._stop_event.is_set():
                return
            self._active = True

        observer = self._observer_factory()
        try:
            self._register(observer, folders)
            if not self._watches:
                log_event(
                    self.logger,
                    level=logging.ERROR,
                    action="watcher.no_folders",
                    message="No folder could be registered; directory watcher is not started",
                )
                return
            try:
                observer.start()
            except OSError as exc:
                log_event(
                    self.logger,
                    level=logging.ERROR,
                    action="watcher.start_failed",
                    message="Could not start filesystem observer",
                    extra={"error": str(exc)},
                )
                return
            with self._lock:
                self._running = True
            log_event(
                self.logger,
                level=logging.INFO,
                action="watcher.started",
                message=f"Watching {len(self._watches)} folder(s)",
                extra={"folders": [str(folder) for folder in self._watches]},
            )
            self._loop(observer, strategies)
        except KeyboardInterrupt:
            log_event(
                self.logger,
                level=logging.INFO,
                action="watcher.interrupted",
                message="Directory watcher interrupted",
            )
        finally:
            self._shutdown(observer)

    def _register(self, observer: Any, folders: Iterable[str | Path]) -> None:
        for raw_folder in folders:
            folder = Path(raw_folder).expanduser()
            if not folder.is_dir():
                log_event(
                    self.logger,
                    level=logging.ERROR,
                    action="watcher.folder_invalid",
                    message=f"Not a directory, skipping: {folder}",
                    extra={"path": str(folder)},
                )
                continue
            try:
                watch = observer.schedule(_FolderEventHandler(self, folder), str(folder), recursive=False)
            except OSError as exc:
                log_event(
                    self.logger,
                    level=logging.ERROR,
                    action="watcher.register_failed",
                    message=f"Could not watch {folder}",
                    extra={"path": str(folder), "error": str(exc)},
                )
                continue
            with self._lock:
                self._watches[folder] = watch
            log_event(
                self.logger,
                level=logging.DEBUG,
                action="watcher.registered",
                message=f"Registered {folder}",
                extra={"path": str(folder)},
            )

    def _loop(self, observer: Any, strategies: Sequence[RuleStrategy]) -> None:
        while not self._stop_event.is_set():
            if not observer.is_alive():
                log_event(
                    self.logger,
                    level=logging.ERROR,
                    action="watcher.observer_died",
                    message="Filesystem observer stopped unexpectedly",
                )
                return
            batch = self._drain()
            self._report_overflow()
            for item in batch:
                if isinstance(item, _RootLost):
                    self._forget(observer, item.root)
                elif isinstance(item, _PendingFile):
                    self._handle(item, strategies)
            self._check_roots(observer)

    def _drain(self) -> list[object]:
        try:
            first = self._queue.get(timeout=self.poll_interval)
        except Empty:
            return []
        batch = [first]
        while True:
            try:
                batch.append(self._queue.get_nowait())
            except Empty:
                break
        # Collapse repeated notifications for the same file, keeping order.
        return [item for item in dict.fromkeys(batch) if item is not _Sentinel]

    def _handle(self, item: _PendingFile, strategies: Sequence[RuleStrategy]) -> None:
        remaining = item.queued_at + self.settle_delay - time.monotonic()
        if remaining > 0 and self._stop_event.wait(remaining):
            return

        path = item.path
        try:
            regular = path.is_file() and not path.is_symlink()
        except OSError:
            regular = False
        if not regular:
            log_event(
                self.logger,
                level=logging.DEBUG,
                action="watcher.skipped",
                message=f"Not a regular file anymore: {path}",
                extra={"path": str(path)},
            )
            return
        if file_extension(path) is None:
            log_event(
                self.logger,
                level=logging.DEBUG,
                action="watcher.no_extension",
                message=f"No extension, leaving in place: {path}",
                extra={"path": str(path)},
            )
            return

        for strategy in strategies:
            try:
                if strategy.apply(path):
                    return
            except Exception as exc:
                log_event(
                    self.logger,
                    level=logging.ERROR,
                    action="watcher.strategy_failed",
                    message=f"Strategy '{strategy.name}' failed for {path}",
                    extra={"path": str(path), "strategy": strategy.name, "error": repr(exc)},
                    exc_info=True,
                )
                if self._claims(strategy, path):
                    return
        log_event(
            self.logger,
            level=logging.DEBUG,
            action="watcher.unmatched",
            message=f"No rule matched {path}",
            extra={"path": str(path)},
        )

    def _claims(self, strategy: RuleStrategy, path: Path) -> bool:
        # A matching rule that failed still owns the file; later rules are not consulted.
        try:
            return strategy.matches(path)
        except Exception as exc:
            log_event(
                self.logger,
                level=logging.ERROR,
                action="watcher.match_failed",
                message=f"Strategy '{strategy.name}' could not match {path}",
                extra={"path": str(path), "strategy": strategy.name, "error": repr(exc)},
            )
            return True

    def _check_roots(self, observer: Any) -> None:
        for root in self.watched_folders:
            if not root.is_dir():
                self._forget(observer, root)

    def _forget(self, observer: Any, root: Path) -> None:
        with self._lock:
            watch = self._watches.pop(root, None)
        if watch is None:
            return
        try:
            observer.unschedule(watch)
        except (KeyError, OSError) as exc:
            log_event(
                self.logger,
                level=logging.DEBUG,
                action="watcher.unschedule_failed",
                message=f"Watch for {root} was already gone",
                extra={"path": str(root), "error": repr(exc)},
            )
        log_event(
            self.logger,
            level=logging.WARNING,
            action="watcher.invalidated",
            message=f"Watched folder disappeared, registration dropped: {root}",
            extra={"path": str(root), "remaining": len(self._watches)},
        )

    def _put(self, item: object) -> None:
        try:
            self._queue.put_nowait(item)
        except Full:
            with self._lock:
                self._dropped += 1

    def _report_overflow(self) -> None:
        with self._lock:
            dropped, self._dropped = self._dropped, 0
        if dropped:
            log_event(
                self.logger,
                level=logging.WARNING,
                action="watcher.overflow",
                message=f"Event queue overflowed; {dropped} event(s) lost",
                extra={"dropped": dropped},
            )

    def _shutdown(self, observer: Any) -> None:
        try:
            observer.stop()
            if observer.is_alive():
                observer.join()
        finally:
            with self._lock:
                self._watches.clear()
                self._running = False
                self._active = False
            log_event(
                self.logger,
                level=logging.INFO,
                action="watcher.stopped",
                message="Directory watcher stopped",
            )


__all__ = ["DirectoryWatcher", "default_observer_factory"]
