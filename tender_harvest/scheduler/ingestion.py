"""Centralized ingestion scheduler driving one job per enabled source."""

from __future__ import annotations

from concurrent.futures import Future, wait
from datetime import datetime, timedelta
from threading import Lock
from typing import Any, Callable, Iterable

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..config import SchedulerSettings, SourceConfig
from ..engine.models import utc_now
from ..engine.store import RunLogEntry
from ..engine.worker_pool import WorkerPool
from ..errors import FetchError, StorageError, UnknownSourceError
from ..logging_conf import configure_logging, source_logger
from ..orchestrator import IngestionPipeline, RunSummary
from .jobs import Job, JobSnapshot, JobStatus, backoff_delay

TICK_JOB_ID = "ingestion::tick"


class IngestionScheduler:
    """Decide which sources are due, run them concurrently and track outcomes.

    A periodic APScheduler tick calls :meth:`check_due`; each due job runs on
    the worker pool. The only concurrency control is the per-job running
    guard, so different sources never wait on each other.
    """

    def __init__(
        self,
        sources: Iterable[SourceConfig],
        pipeline: IngestionPipeline,
        settings: SchedulerSettings | None = None,
        *,
        clock: Callable[[], datetime] = utc_now,
        worker_pool: WorkerPool | None = None,
        run_log: Callable[[RunLogEntry], None] | None = None,
        scheduler_factory: Callable[[], Any] = BackgroundScheduler,
    ) -> None:
        self.settings = settings or SchedulerSettings()
        self.sources = {source.source_id: source for source in sources}
        self.pipeline = pipeline
        self.worker_pool = worker_pool or WorkerPool(self.settings.max_workers)
        self.run_log = run_log
        self._clock = clock
        self._scheduler_factory = scheduler_factory
        self._scheduler: Any = None
        self._lock = Lock()
        self._lifecycle_lock = Lock()
        self.logger = configure_logging().bind(component="scheduler")

        now = clock()
        ordered = sorted(self.sources.values(), key=lambda s: (s.priority, s.source_id))
        self._jobs: dict[str, Job] = {
            source.source_id: Job(source_id=source.source_id, next_run=now)
            for source in ordered
            if source.enabled
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    @property
    def started(self) -> bool:
        return self._scheduler is not None

    def start(self) -> None:
        with self._lifecycle_lock:
            if self._scheduler is not None:
                self.logger.info("scheduler_already_running")
                return
            scheduler = self._scheduler_factory()
            scheduler.add_job(
                self.check_due,
                trigger=IntervalTrigger(seconds=self.settings.tick_interval_seconds),
                id=TICK_JOB_ID,
                replace_existing=True,
                max_instances=1,
                coalesce=True,
            )
            scheduler.start()
            self._scheduler = scheduler
        self.logger.info(
            "scheduler_started",
            jobs=len(self._jobs),
            tick_seconds=self.settings.tick_interval_seconds,
        )
        self.check_due()

    def stop(self) -> None:
        """Stop ticking; runs already in flight are left to finish."""

        with self._lifecycle_lock:
            if self._scheduler is None:
                return
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
        self.logger.info("scheduler_stopped", in_flight=self.worker_pool.in_flight())

    def close(self, wait: bool = True) -> None:
        self.stop()
        self.worker_pool.shutdown(wait=wait)

    # ------------------------------------------------------------------
    # Triggering runs
    # ------------------------------------------------------------------
    def check_due(self) -> list[Future]:
        """Launch every job whose next run is due and that is not running."""

        now = self._clock()
        launched: list[Future] = []
        for source_id in list(self._jobs):
            future = self._launch(source_id, due_by=now)
            if future is not None:
                launched.append(future)
        if launched:
            self.logger.info("due_jobs_launched", count=len(launched))
        return launched

    def run_one(self, source_id: str, wait: bool = True) -> bool:
        """Force an out-of-schedule run; False when unknown or already running."""

        if source_id not in self._jobs:
            self.logger.warning("run_unknown_source", source=source_id)
            return False
        future = self._launch(source_id)
        if future is None:
            self.logger.info("run_skipped_busy", source=source_id)
            return False
        if wait:
            future.result()
        return True

    def run_all(self) -> dict[str, bool]:
        """Launch every job at once and wait until all of them settle."""

        futures = {source_id: self._launch(source_id) for source_id in list(self._jobs)}
        wait([future for future in futures.values() if future is not None])
        return {source_id: future is not None for source_id, future in futures.items()}

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------
    def status_of(self, source_id: str) -> JobSnapshot:
        with self._lock:
            job = self._jobs.get(source_id)
            if job is None:
                raise UnknownSourceError(f"Unknown or disabled source: {source_id}")
            return self._snapshot(job)

    def status_all(self) -> dict[str, JobSnapshot]:
        with self._lock:
            return {source_id: self._snapshot(job) for source_id, job in self._jobs.items()}

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _launch(self, source_id: str, due_by: datetime | None = None) -> Future | None:
        with self._lock:
            job = self._jobs[source_id]
            if job.status is JobStatus.RUNNING:
                return None
            if due_by is not None and job.next_run > due_by:
                return None
            previous = job.status
            job.status = JobStatus.RUNNING
            job.last_run = self._clock()
            started_at = job.last_run
        try:
            return self.worker_pool.submit(self._execute, source_id, started_at)
        except RuntimeError as exc:
            with self._lock:
                job.status = previous
            self.logger.error("run_submit_failed", source=source_id, error=str(exc))
            return None

    def _execute(self, source_id: str, started_at: datetime) -> None:
        source = self.sources[source_id]
        log = source_logger(source_id).bind(component="scheduler")
        log.info("run_started", name=source.name)
        summary: RunSummary | None = None
        error: str | None = None
        fetched: int | None = None
        try:
            summary = self.pipeline.run(source)
        except FetchError as exc:
            error = exc.message
        except StorageError as exc:
            error = exc.message
            fetched = exc.fetched_count
        except Exception as exc:  # noqa: BLE001
            error = str(exc) or type(exc).__name__
            log.exception("run_crashed", error=error)

        finished_at = self._clock()
        with self._lock:
            job = self._jobs[source_id]
            if summary is not None:
                self._record_success(job, source, summary, finished_at)
            else:
                delay = self._record_failure(job, error or "Unknown error", fetched, finished_at)
            snapshot = self._snapshot(job)

        if summary is not None:
            log.info(
                "run_succeeded",
                fetched=summary.fetched,
                new=summary.new,
                success_count=snapshot.success_count,
                next_run=snapshot.next_run.isoformat(),
            )
        else:
            log.error(
                "run_failed",
                error=error,
                fetched=fetched,
                error_count=snapshot.error_count,
                retry_in_minutes=delay.total_seconds() / 60,
                next_run=snapshot.next_run.isoformat(),
            )
        self._write_run_log(
            RunLogEntry(
                source=source_id,
                started_at=started_at,
                finished_at=finished_at,
                status="success" if summary is not None else "error",
                fetched=summary.fetched if summary is not None else fetched,
                new=summary.new if summary is not None else None,
                error=error,
            )
        )

    def _record_success(
        self, job: Job, source: SourceConfig, summary: RunSummary, now: datetime
    ) -> None:
        job.status = JobStatus.IDLE
        job.success_count += 1
        job.last_error = None
        job.last_fetched = summary.fetched
        job.last_new = summary.new
        job.next_run = now + timedelta(minutes=source.scrape_interval_minutes)

    def _record_failure(
        self, job: Job, error: str, fetched: int | None, now: datetime
    ) -> timedelta:
        job.error_count += 1
        delay = backoff_delay(
            job.error_count,
            timedelta(minutes=self.settings.retry_base_minutes),
            timedelta(minutes=self.settings.retry_max_minutes),
        )
        job.status = JobStatus.ERROR
        job.last_error = error
        job.last_fetched = fetched
        job.last_new = None
        job.next_run = now + delay
        return delay

    def _write_run_log(self, entry: RunLogEntry) -> None:
        if self.run_log is None:
            return
        try:
            self.run_log(entry)
        except Exception as exc:  # noqa: BLE001
            self.logger.warning("run_log_failed", source=entry.source, error=str(exc))

    def _snapshot(self, job: Job) -> JobSnapshot:
        source = self.sources[job.source_id]
        return JobSnapshot(
            source_id=job.source_id,
            name=source.name,
            status=job.status,
            last_run=job.last_run,
            next_run=job.next_run,
            success_count=job.success_count,
            error_count=job.error_count,
            last_error=job.last_error,
            last_fetched=job.last_fetched,
            last_new=job.last_new,
            priority=source.priority,
            interval_minutes=source.scrape_interval_minutes,
        )


__all__ = ["IngestionScheduler", "TICK_JOB_ID"]
