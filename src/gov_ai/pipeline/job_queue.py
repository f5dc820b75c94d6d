"""
In-memory job queue for the HTTP API.

Jobs are processed FIFO by a fixed number of asyncio workers (one by
default); each job runs the blocking analysis pipeline in a worker thread
and writes its report, or an error report, to ``<reports_dir>/<job_id>.json``.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

import structlog

from gov_ai.config import get_settings
from gov_ai.exceptions import ConfigurationError
from gov_ai.pipeline.orchestrator import AnalysisPipeline, get_analysis_pipeline, load_principles
from gov_ai.services.report_store import ReportStore, timestamp_slug

logger = structlog.get_logger(__name__)


def make_job_id(moment: datetime | None = None) -> str:
    """Filename-safe ISO timestamp, e.g. ``2025-01-31T12-00-00-000Z``."""
    return timestamp_slug(moment or datetime.now(timezone.utc))


@dataclass
class Job:
    """A queued analysis request."""

    job_id: str
    url: str
    principles: Any = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def run_analysis_job(
    job: Job,
    store: ReportStore,
    pipeline: AnalysisPipeline | None = None,
) -> Path:
    """
    Run one job to completion and persist the outcome.

    Any failure is written as ``{"status": "error", "error": ...}`` under the
    job id, so pollers always eventually see a file.
    """
    filename = f"{job.job_id}.json"
    try:
        if not get_settings().ambient_api_key:
            raise ConfigurationError("AMBIENT_API_KEY is not set")

        if isinstance(job.principles, (dict, list)):
            principles = job.principles
        else:
            principles = load_principles()

        pipeline = pipeline or get_analysis_pipeline()
        result = pipeline.run(job.url, principles)
        if not result.ok:
            return store.save(filename, {"status": "error", "error": result.error})
        return store.save(filename, result.report)

    except Exception as e:
        logger.error("job_failed", job_id=job.job_id, error=str(e))
        return store.save(filename, {"status": "error", "error": str(e)})


class JobQueue:
    """FIFO queue drained by ``max_concurrent`` workers."""

    def __init__(
        self,
        reports_dir: Path | str | None = None,
        max_concurrent: int | None = None,
        runner: Callable[[Job, ReportStore], Any] | None = None,
    ):
        settings = get_settings()
        self.store = ReportStore(reports_dir or settings.api_reports_dir)
        self.max_concurrent = max(1, max_concurrent or settings.max_concurrent_jobs)
        self.runner = runner or run_analysis_job
        self.running = 0
        self._queue: asyncio.Queue[Job] | None = None
        self._workers: list[asyncio.Task] = []
        self._issued: set[str] = set()

    @property
    def started(self) -> bool:
        return bool(self._workers)

    @property
    def pending(self) -> int:
        return self._queue.qsize() if self._queue is not None else 0

    async def start(self) -> None:
        """Start the workers on the running event loop."""
        if self._workers:
            return
        self.store.directory.mkdir(parents=True, exist_ok=True)
        self._queue = asyncio.Queue()
        self._workers = [
            asyncio.create_task(self._worker(i)) for i in range(self.max_concurrent)
        ]
        logger.info("job_queue_started", concurrency=self.max_concurrent)

    async def stop(self) -> None:
        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        logger.info("job_queue_stopped", pending=self.pending)

    def new_job_id(self) -> str:
        """Timestamp id, suffixed when two requests land in the same millisecond."""
        base = make_job_id()
        job_id, n = base, 1
        while job_id in self._issued or self.store.exists(f"{job_id}.json"):
            job_id = f"{base}-{n}"
            n += 1
        self._issued.add(job_id)
        return job_id

    def enqueue(self, url: str, principles: Any = None) -> Job:
        if self._queue is None:
            raise RuntimeError("Job queue is not started")
        job = Job(job_id=self.new_job_id(), url=url, principles=principles)
        self._queue.put_nowait(job)
        logger.info("job_queued", job_id=job.job_id, url=url, pending=self.pending)
        return job

    def get_report(self, job_id: str) -> dict[str, Any] | None:
        """The job's report once written, else None."""
        filename = f"{job_id}.json"
        if not self.store.exists(filename):
            return None
        return self.store.load(filename)

    async def _worker(self, index: int) -> None:
        assert self._queue is not None
        while True:
            job = await self._queue.get()
            self.running += 1
            logger.info("job_started", job_id=job.job_id, worker=index)
            try:
                await asyncio.to_thread(self.runner, job, self.store)
            except Exception as e:
                logger.error("job_runner_crashed", job_id=job.job_id, error=str(e))
            finally:
                self.running -= 1
                self._queue.task_done()
                logger.info("job_finished", job_id=job.job_id)

    async def join(self) -> None:
        """Wait until every queued job has finished."""
        if self._queue is not None:
            await self._queue.join()
