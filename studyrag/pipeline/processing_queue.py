"""In-memory ingestion job queue with bounded retries.

One job exists per material at a time.  Jobs are processed one by one,
oldest first; a failed run goes back to ``pending`` until the job has
used ``max_attempts`` runs, after which it stays ``failed``.

The queue holds no material state of its own: every run goes through
:meth:`RAGPipeline.ingest`, which records status on the material.
"""

from __future__ import annotations

import asyncio
import uuid
from datetime import datetime, timezone

import structlog

from studyrag.models.queue import JobStatus, QueueJob, QueueStats
from studyrag.pipeline.orchestrator import RAGPipeline
from studyrag.utils.errors import PipelineError
from studyrag.utils.logging import get_logger

_ACTIVE = (JobStatus.PENDING, JobStatus.PROCESSING)
_FINISHED = (JobStatus.COMPLETED, JobStatus.FAILED)


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)  # noqa: UP017


class ProcessingQueue:
    """Queues materials for ingestion and works through them sequentially.

    Parameters
    ----------
    pipeline:
        The pipeline whose :meth:`~RAGPipeline.ingest` runs each job.
    max_attempts:
        Runs allowed per job before it is marked ``failed`` (default 3).
    """

    def __init__(self, pipeline: RAGPipeline, max_attempts: int = 3) -> None:
        if max_attempts < 1:
            msg = f"max_attempts must be >= 1, got {max_attempts}"
            raise ValueError(msg)
        self._pipeline = pipeline
        self._max_attempts = max_attempts
        self._jobs: dict[str, QueueJob] = {}
        self._by_material: dict[str, str] = {}
        self._run_lock = asyncio.Lock()
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def add_job(self, material_id: str) -> QueueJob:
        """Queue *material_id* for ingestion.

        An active (pending or processing) job for the same material is
        returned unchanged.  A finished job is replaced by a fresh one.

        Raises
        ------
        PipelineError
            If the material does not exist.
        """
        existing = self.get_job_for_material(material_id)
        if existing is not None and existing.status in _ACTIVE:
            self._logger.info("queue_job_exists", job_id=existing.id, material_id=material_id)
            return existing

        if await self._pipeline.get_material(material_id) is None:
            raise PipelineError(f"Material not found: {material_id}")

        if existing is not None:
            del self._jobs[existing.id]

        job = QueueJob(
            id=uuid.uuid4().hex,
            material_id=material_id,
            max_attempts=self._max_attempts,
        )
        self._jobs[job.id] = job
        self._by_material[material_id] = job.id
        self._logger.info("queue_job_added", job_id=job.id, material_id=material_id)
        return job

    async def process_next(self) -> QueueJob | None:
        """Run the oldest pending job.

        Returns the job as it stands after the run, or ``None`` when
        nothing is pending or another run is already in progress.
        """
        if self._run_lock.locked():
            self._logger.debug("queue_busy")
            return None

        async with self._run_lock:
            job = next(
                (j for j in self._jobs.values() if j.status == JobStatus.PENDING),
                None,
            )
            if job is None:
                return None
            return await self._run_job(job)

    async def process_all(self) -> list[QueueJob]:
        """Run jobs until none is pending; returns each run's outcome in order."""
        processed: list[QueueJob] = []
        while True:
            job = await self.process_next()
            if job is None:
                return processed
            processed.append(job)

    def retry_failed(self) -> int:
        """Return failed jobs to ``pending`` with a fresh attempt budget.

        Returns the number of jobs requeued.
        """
        count = 0
        for job_id, job in list(self._jobs.items()):
            if job.status != JobStatus.FAILED:
                continue
            self._jobs[job_id] = job.model_copy(
                update={
                    "status": JobStatus.PENDING,
                    "attempts": 0,
                    "error": None,
                    "started_at": None,
                    "completed_at": None,
                }
            )
            count += 1
        if count:
            self._logger.info("queue_jobs_requeued", count=count)
        return count

    def get_job(self, job_id: str) -> QueueJob | None:
        return self._jobs.get(job_id)

    def get_job_for_material(self, material_id: str) -> QueueJob | None:
        job_id = self._by_material.get(material_id)
        return self._jobs.get(job_id) if job_id else None

    def get_stats(self) -> QueueStats:
        counts = {status: 0 for status in JobStatus}
        for job in self._jobs.values():
            counts[job.status] += 1
        return QueueStats(
            pending=counts[JobStatus.PENDING],
            processing=counts[JobStatus.PROCESSING],
            completed=counts[JobStatus.COMPLETED],
            failed=counts[JobStatus.FAILED],
            total=len(self._jobs),
            is_processing=self._run_lock.locked(),
        )

    def clear_finished(self) -> int:
        """Drop completed and failed jobs; returns how many were removed."""
        finished = [job for job in self._jobs.values() if job.status in _FINISHED]
        for job in finished:
            del self._jobs[job.id]
            if self._by_material.get(job.material_id) == job.id:
                del self._by_material[job.material_id]
        return len(finished)

    async def run(self, poll_interval: float = 5.0, stop_event: asyncio.Event | None = None) -> None:
        """Worker loop: drain pending jobs, then sleep *poll_interval* seconds.

        Returns once *stop_event* is set (checked between runs).
        """
        stop_event = stop_event or asyncio.Event()
        self._logger.info("queue_worker_started", poll_interval=poll_interval)
        while not stop_event.is_set():
            while not stop_event.is_set() and await self.process_next() is not None:
                pass
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=poll_interval)
            except asyncio.TimeoutError:
                continue
        self._logger.info("queue_worker_stopped")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _run_job(self, job: QueueJob) -> QueueJob:
        job = self._store(
            job,
            status=JobStatus.PROCESSING,
            attempts=job.attempts + 1,
            started_at=_utcnow(),
            completed_at=None,
        )
        self._logger.info(
            "queue_job_started",
            job_id=job.id,
            material_id=job.material_id,
            attempt=job.attempts,
            max_attempts=job.max_attempts,
        )

        result = await self._pipeline.ingest(job.material_id)

        if result.success:
            self._logger.info("queue_job_completed", job_id=job.id, chunks=result.chunks_created)
            return self._store(job, status=JobStatus.COMPLETED, error=None, completed_at=_utcnow())

        if job.can_retry:
            self._logger.warning(
                "queue_job_retrying",
                job_id=job.id,
                attempt=job.attempts,
                error=result.error,
            )
            return self._store(job, status=JobStatus.PENDING, error=result.error)

        self._logger.error(
            "queue_job_failed",
            job_id=job.id,
            attempts=job.attempts,
            error=result.error,
        )
        return self._store(job, status=JobStatus.FAILED, error=result.error, completed_at=_utcnow())

    def _store(self, job: QueueJob, **updates: object) -> QueueJob:
        updated = job.model_copy(update=updates)
        self._jobs[job.id] = updated
        return updated
