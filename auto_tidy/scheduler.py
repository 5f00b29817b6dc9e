"""Fixed-rate scheduling of the periodic task families."""
from __future__ import annotations

import logging
import threading
import time
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterable, Sequence

from .config import Configuration, TaskSettings
from .file_mover import FileTransferResolver
from .logger import log_event
from .models import ScanContext
from .strategies import (
    AgeBasedMoveStrategy,
    DuplicateDetectionStrategy,
    ScheduledStrategy,
    TempFolderCleanupStrategy,
)

LOGGER = logging.getLogger("auto_tidy.scheduler")

DEFAULT_GRACE_PERIOD = 60.0


class TaskFamily(str, Enum):
    SEIRI = "seiri"
    SEISO = "seiso"
    DUPLICATES = "duplicates"


@dataclass(slots=True)
class ScheduledJob:
    """One task family with its timing expressed in seconds."""

    family: TaskFamily
    enabled: bool
    initial_delay: float
    period: float
    strategies: list[ScheduledStrategy] = field(default_factory=list)

    @classmethod
    def from_settings(
        cls,
        family: TaskFamily,
        settings: TaskSettings,
        strategies: Iterable[ScheduledStrategy],
    ) -> "ScheduledJob":
        return cls(
            family=family,
            enabled=settings.enabled,
            initial_delay=settings.initial_delay_seconds,
            period=settings.period_seconds,
            strategies=list(strategies),
        )

    @property
    def schedulable(self) -> bool:
        return self.enabled and self.period > 0


def build_jobs(config: Configuration, resolver: FileTransferResolver) -> list[ScheduledJob]:
    """Create one job per task family from *config*."""

    seiri_strategies: list[ScheduledStrategy] = []
    if config.seiri.move_old_files is not None:
        seiri_strategies.append(AgeBasedMoveStrategy(config.seiri.move_old_files, resolver))

    seiso_strategies: list[ScheduledStrategy] = []
    clean_rule = config.seiso.clean_temp_folders
    if clean_rule is not None:
        seiso_strategies.append(TempFolderCleanupStrategy(clean_rule.folders, enabled=clean_rule.enabled))

    duplicate_strategies: list[ScheduledStrategy] = [
        DuplicateDetectionStrategy(config.duplicate_detection.rules, resolver)
    ]

    return [
        ScheduledJob.from_settings(TaskFamily.SEIRI, config.seiri.schedule, seiri_strategies),
        ScheduledJob.from_settings(TaskFamily.SEISO, config.seiso.schedule, seiso_strategies),
        ScheduledJob.from_settings(
            TaskFamily.DUPLICATES, config.duplicate_detection.schedule, duplicate_strategies
        ),
    ]


class TaskScheduler:
    """Run enabled jobs at a fixed rate, one daemon worker thread per job.

    A firing that overruns its period makes the next one start immediately;
    firings of the same job never overlap. Workers still busy when the grace
    period of :meth:`stop_scheduler` ends are abandoned and do not keep the
    process alive.
    """

    def __init__(
        self,
        folders: Sequence[Path],
        jobs: Iterable[ScheduledJob],
        *,
        grace_period: float = DEFAULT_GRACE_PERIOD,
        logger: logging.Logger | None = None,
    ) -> None:
        self.folders = [Path(folder) for folder in folders]
        self.jobs = list(jobs)
        self.grace_period = grace_period
        self.logger = logger or LOGGER
        self._stop_event = threading.Event()
        self._lock = threading.Lock()
        self._workers: list[threading.Thread] = []
        self._firings: Counter[TaskFamily] = Counter()
        self._started = False
        self._stopped = False

    @property
    def running(self) -> bool:
        return self._started and not self._stopped

    def firings(self, family: TaskFamily) -> int:
        with self._lock:
            return self._firings[family]

    def start_scheduler(self) -> None:
        with self._lock:
            if self._started or self._stopped:
                return
            self._started = True
            active = [job for job in self.jobs if job.schedulable]
            for job in self.jobs:
                if not job.schedulable:
                    log_event(
                        self.logger,
                        level=logging.INFO,
                        action="scheduler.job_disabled",
                        message=f"{job.family.value} is disabled",
                        extra={"family": job.family.value},
                    )
            for job in active:
                worker = threading.Thread(
                    target=self._run_fixed_rate,
                    args=(job,),
                    name=f"auto-tidy-{job.family.value}",
                    daemon=True,
                )
                self._workers.append(worker)
                worker.start()
                log_event(
                    self.logger,
                    level=logging.INFO,
                    action="scheduler.job_scheduled",
                    message=(
                        f"{job.family.value} scheduled every {job.period:g}s "
                        f"after {job.initial_delay:g}s"
                    ),
                    extra={"family": job.family.value},
                )

    def run_job(self, job: ScheduledJob) -> int:
        """Run one firing of *job* and return how many strategies failed."""

        context = ScanContext(folders=tuple(self.folders), cancelled=self._stop_event)
        with self._lock:
            self._firings[job.family] += 1
            firing = self._firings[job.family]
        started = time.monotonic()
        failed = 0
        for strategy in job.strategies:
            if context.is_cancelled():
                log_event(
                    self.logger,
                    level=logging.INFO,
                    action="scheduler.firing_cancelled",
                    message=f"{job.family.value} firing cancelled",
                    extra={"family": job.family.value},
                )
                break
            try:
                strategy.execute(context)
            except Exception as exc:
                failed += 1
                log_event(
                    self.logger,
                    level=logging.ERROR,
                    action="scheduler.strategy_failed",
                    message=f"{job.family.value} strategy '{strategy.name}' failed",
                    extra={"family": job.family.value, "strategy": strategy.name, "error": repr(exc)},
                    exc_info=True,
                )
        log_event(
            self.logger,
            level=logging.INFO,
            action="scheduler.firing_done",
            message=f"{job.family.value} firing #{firing} finished",
            duration_ms=(time.monotonic() - started) * 1000,
            extra={"family": job.family.value, "failed": failed},
        )
        return failed

    def stop_scheduler(self) -> None:
        with self._lock:
            if self._stopped:
                return
            self._stopped = True
            workers = list(self._workers)
        self._stop_event.set()
        if not workers:
            return

        deadline = time.monotonic() + self.grace_period
        for worker in workers:
            worker.join(max(deadline - time.monotonic(), 0))
        pending = [worker.name for worker in workers if worker.is_alive()]
        if pending:
            log_event(
                self.logger,
                level=logging.WARNING,
                action="scheduler.forced_shutdown",
                message=(
                    f"{len(pending)} task(s) still running after {self.grace_period:g}s; "
                    "abandoned, they end with the process"
                ),
                extra={"pending": pending},
            )
        log_event(
            self.logger,
            level=logging.INFO,
            action="scheduler.stopped",
            message="Scheduler stopped",
        )

    def _run_fixed_rate(self, job: ScheduledJob) -> None:
        next_run = time.monotonic() + job.initial_delay
        while not self._stop_event.wait(max(next_run - time.monotonic(), 0)):
            try:
                self.run_job(job)
            except Exception as exc:
                log_event(
                    self.logger,
                    level=logging.ERROR,
                    action="scheduler.firing_failed",
                    message=f"{job.family.value} firing failed",
                    extra={"family": job.family.value, "error": repr(exc)},
                    exc_info=True,
                )
            next_run += job.period


__all__ = ["ScheduledJob", "TaskFamily", "TaskScheduler", "build_jobs"]
