"""Engine lifecycle: scheduler plus real-time watcher."""
from __future__ import annotations

import logging
import threading

from .config import Configuration
from .file_mover import FileTransferResolver
from .logger import log_event
from .realtime_watcher import DirectoryWatcher
from .scheduler import TaskScheduler, build_jobs
from .strategies import build_seiton_strategies

LOGGER = logging.getLogger("auto_tidy.engine")


class Engine:
    """Own the watcher and the scheduler built from one configuration."""

    def __init__(
        self,
        config: Configuration,
        *,
        watcher: DirectoryWatcher | None = None,
        scheduler: TaskScheduler | None = None,
        resolver: FileTransferResolver | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.config = config
        self.resolver = resolver or FileTransferResolver()
        self.watcher = watcher or DirectoryWatcher()
        self.scheduler = scheduler or TaskScheduler(
            config.monitor_folders, build_jobs(config, self.resolver)
        )
        self.strategies = build_seiton_strategies(config.seiton_rules, self.resolver)
        self.logger = logger or LOGGER
        self._lock = threading.Lock()
        self._stopped = False

    def start(self) -> None:
        """Start scheduled tasks, then block in the watcher until stopped."""

        with self._lock:
            if self._stopped:
                log_event(
                    self.logger,
                    level=logging.INFO,
                    action="engine.start_skipped",
                    message="Engine was stopped before it started",
                )
                return
        log_event(
            self.logger,
            level=logging.INFO,
            action="engine.started",
            message="auto-tidy engine starting",
            extra={
                "folders": [str(folder) for folder in self.config.monitor_folders],
                "seiton_rules": len(self.strategies),
            },
        )
        self.scheduler.start_scheduler()
        try:
            self.watcher.start(self.config.monitor_folders, self.strategies)
        finally:
            self.stop()

    def stop(self) -> None:
        with self._lock:
            if self._stopped:
                return
            self._stopped = True
        self.watcher.stop()
        self.scheduler.stop_scheduler()
        log_event(
            self.logger,
            level=logging.INFO,
            action="engine.stopped",
            message="auto-tidy engine stopped",
        )


__all__ = ["Engine"]
