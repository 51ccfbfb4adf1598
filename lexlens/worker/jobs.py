"""
RQ job functions for the clause pipeline.
These are the entry points that the worker calls.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Optional

import structlog
from redis import Redis
from redis.exceptions import RedisError
from rq import Queue, Retry

from lexlens.config import settings
from lexlens.errors import QueueError
from lexlens.models.enums import JobStatus, JobType
from lexlens.observability.logging import job_log_context
from lexlens.observability.metrics import jobs_enqueued_total, jobs_purged_total
from lexlens.pipeline.registry import PipelineRegistry
from lexlens.schemas.contracts import JobPayload, JobRecord
from lexlens.storage.base import ClauseStore

logger = structlog.get_logger(__name__)

CLEANUP_JOB_PREFIX = "lexlens-retention-sweep"


# ── Worker-process registry ─────────────────────────────────
_registry: Optional[PipelineRegistry] = None


def configure_worker(registry: PipelineRegistry) -> None:
    """Install the registry built at worker start-up."""
    global _registry
    _registry = registry


def get_registry() -> PipelineRegistry:
    """Get the worker registry, creating a default one on first use."""
    global _registry
    if _registry is None:
        _registry = PipelineRegistry(settings)
    return _registry


# ── Queue ────────────────────────────────────────────────────

def get_queue() -> Queue:
    """Get the contract processing queue."""
    conn = Redis.from_url(settings.REDIS_URL)
    return Queue(settings.QUEUE_NAME, connection=conn)


def backoff_intervals(
    max_attempts: Optional[int] = None,
    base_seconds: Optional[int] = None,
) -> list[int]:
    """Exponential delays between attempts: base, base*2, base*4, ..."""
    attempts = max_attempts if max_attempts is not None else settings.JOB_MAX_ATTEMPTS
    base = base_seconds if base_seconds is not None else settings.JOB_BACKOFF_BASE_SECONDS
    return [base * 2 ** i for i in range(max(attempts - 1, 0))]


def enqueue_document_processing(payload: JobPayload, queue: Optional[Queue] = None) -> str:
    """
    Enqueue a document for clause processing.
    Returns the queue job ID. Raises QueueError if Redis is unavailable.
    """
    intervals = backoff_intervals()
    try:
        q = queue if queue is not None else get_queue()
        job = q.enqueue(
            process_document_job,
            payload.model_dump(by_alias=True),
            job_timeout=settings.JOB_TIMEOUT_SECONDS,
            retry=Retry(max=len(intervals), interval=intervals) if intervals else None,
            result_ttl=86400,  # Keep results for 24 hours
            failure_ttl=settings.JOB_RETENTION_DAYS * 86400,
        )
    except RedisError as e:
        raise QueueError(f"Failed to enqueue document {payload.document_id}: {e}") from e

    jobs_enqueued_total.inc()
    logger.info(
        "job_enqueued",
        doc_id=payload.document_id,
        job_id=payload.job_id,
        queue_job_id=job.id,
    )
    return job.id


async def request_processing(
    store: ClauseStore,
    document_id: str,
    file_path: str,
    file_type: str,
    user_id: str,
    queue: Optional[Queue] = None,
) -> tuple[JobRecord, str]:
    """
    Create the pending job record for a document, then enqueue it.
    If enqueueing fails the record is marked failed and QueueError is raised.
    """
    job = await store.create_job(document_id, JobType.EXTRACTION.value)
    payload = JobPayload(
        document_id=document_id,
        file_path=file_path,
        file_type=file_type,
        user_id=user_id,
        job_id=job.job_id,
    )
    try:
        queue_job_id = enqueue_document_processing(payload, queue=queue)
    except QueueError as e:
        await store.transition_job(
            job.job_id,
            JobStatus.FAILED,
            completed_at=datetime.now(timezone.utc),
            error_message=str(e)[:500],
        )
        raise
    return job, queue_job_id


# ── Job entry points ─────────────────────────────────────────

def process_document_job(payload: dict) -> dict:
    """
    Main job function: run one document through the clause pipeline.
    Runs inside the RQ worker process. Raising lets RQ schedule a retry.
    """
    doc_id = payload.get("documentId") or payload.get("document_id")
    job_id = payload.get("jobId") or payload.get("job_id")

    with job_log_context(doc_id=doc_id, job_id=job_id):
        logger.info("job_started")
        try:
            result = asyncio.run(_process_document_async(payload))
        except Exception as e:
            logger.error("job_failed", error=str(e))
            raise
        logger.info("job_completed", status=result.get("status"))
        return result


async def _process_document_async(payload: dict) -> dict:
    """
    Async wrapper for document processing.
    The engine is created per run since each job gets its own event loop.
    """
    from lexlens.models.database import create_engine, create_session_factory
    from lexlens.pipeline.orchestrator import ClausePipeline
    from lexlens.storage.sql_store import SqlClauseStore

    engine = create_engine()
    try:
        store = SqlClauseStore(create_session_factory(engine))
        pipeline = ClausePipeline(store, get_registry())
        return await pipeline.process(payload)
    finally:
        await engine.dispose()


async def purge_finished_jobs(store: ClauseStore, retention_days: Optional[int] = None) -> int:
    """Delete completed/failed job records older than the retention window."""
    days = retention_days if retention_days is not None else settings.JOB_RETENTION_DAYS
    cutoff = datetime.now(timezone.utc) - timedelta(days=days)
    purged = await store.purge_finished_jobs(cutoff)
    jobs_purged_total.inc(purged)
    logger.info("job_retention_sweep", purged=purged, retention_days=days)
    return purged


def purge_finished_jobs_job() -> int:
    """Periodic sweep. Reschedules itself after running."""
    try:
        return asyncio.run(_purge_async())
    finally:
        schedule_cleanup()


async def _purge_async() -> int:
    from lexlens.models.database import create_engine, create_session_factory
    from lexlens.storage.sql_store import SqlClauseStore

    engine = create_engine()
    try:
        return await purge_finished_jobs(SqlClauseStore(create_session_factory(engine)))
    finally:
        await engine.dispose()


def schedule_cleanup(queue: Optional[Queue] = None) -> str:
    """Schedule the next retention sweep. Returns the scheduled job id."""
    delay = timedelta(hours=settings.CLEANUP_INTERVAL_HOURS)
    run_at = datetime.now(timezone.utc) + delay
    job_id = f"{CLEANUP_JOB_PREFIX}-{run_at:%Y%m%d%H%M%S}"
    try:
        q = queue if queue is not None else get_queue()
        q.enqueue_in(delay, purge_finished_jobs_job, job_id=job_id)
    except RedisError as e:
        raise QueueError(f"Failed to schedule retention sweep: {e}") from e
    logger.info("cleanup_scheduled", job_id=job_id, in_hours=settings.CLEANUP_INTERVAL_HOURS)
    return job_id


def ensure_cleanup_scheduled(queue: Optional[Queue] = None) -> bool:
    """Schedule a sweep unless one is already waiting. Returns True if one was added."""
    try:
        q = queue if queue is not None else get_queue()
        pending = q.scheduled_job_registry.get_job_ids()
    except RedisError as e:
        raise QueueError(f"Failed to read scheduled jobs: {e}") from e
    if any(job_id.startswith(CLEANUP_JOB_PREFIX) for job_id in pending):
        return False
    schedule_cleanup(q)
    return True
