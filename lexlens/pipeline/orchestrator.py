"""
Pipeline orchestrator: drives one processing attempt for one document.

Stages: START → EXTRACT → SEGMENT → ANALYSE → PERSIST → COMPLETE

Extraction and segmentation failures fail the document and the job and are
re-raised so the queue can retry the whole attempt. Clause-level failures are
collected as tagged outcomes and only reduce the clause count.
"""

import asyncio
import time
from datetime import datetime, timezone
from typing import Optional, Union

import structlog

from lexlens.engines.base import TextExtractor
from lexlens.engines.text_extractor import DocumentTextExtractor
from lexlens.errors import ClauseProcessingError, PipelineError, RecordNotFoundError
from lexlens.models.enums import (
    ClauseStage,
    DocumentStatus,
    JobStatus,
    JobType,
    TERMINAL_JOB_STATUSES,
)
from lexlens.observability.metrics import (
    clauses_failed_total,
    clauses_persisted_total,
    document_processing_duration_seconds,
    documents_processed_total,
    pipeline_stage_duration_seconds,
)
from lexlens.pipeline.clause_classifier import ClauseClassifier, extract_clause_title
from lexlens.pipeline.embeddings import EmbeddingGenerator
from lexlens.pipeline.registry import PipelineRegistry
from lexlens.pipeline.risk_scorer import score_clause_risk
from lexlens.pipeline.segmenter import segment_clauses
from lexlens.schemas.contracts import (
    ClauseBatchResult,
    ClauseCandidate,
    ClauseOutcome,
    ClauseRecord,
    JobPayload,
    JobRecord,
    JobSummary,
)
from lexlens.storage.base import ClauseStore

logger = structlog.get_logger(__name__)

MAX_ERROR_CHARS = 500


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ClausePipeline:
    """
    Main clause pipeline.
    Processes a single document through all stages.
    """

    def __init__(
        self,
        store: ClauseStore,
        registry: PipelineRegistry,
        extractor: Optional[TextExtractor] = None,
    ):
        self.store = store
        self.registry = registry
        self.extractor = extractor or DocumentTextExtractor()
        self.classifier = ClauseClassifier(registry)
        self.embedder = EmbeddingGenerator(registry)

        config = registry.config
        self.clause_workers = max(1, config.CLAUSE_WORKERS)
        self.clause_queue_size = max(1, config.CLAUSE_QUEUE_SIZE)
        self.embedding_concurrency = max(1, config.EMBEDDING_MAX_CONCURRENCY)

    async def process(self, payload: Union[JobPayload, dict]) -> dict:
        """
        Main entry point: process a document end-to-end.
        Returns summary dict with status and clause counts.
        """
        if not isinstance(payload, JobPayload):
            payload = JobPayload.model_validate(payload)

        started_at = time.monotonic()
        doc_id = payload.document_id
        log = logger.bind(doc_id=doc_id, user_id=payload.user_id)

        job = await self._start_job(payload)
        log = log.bind(job_id=job.job_id, attempt=job.attempt)
        log.info("pipeline_started", engine=self.extractor.engine_name)

        try:
            # ── Stage 1: EXTRACT ──
            with pipeline_stage_duration_seconds.labels(stage="extract").time():
                extraction = await asyncio.to_thread(
                    self.extractor.extract, payload.file_path, payload.file_type
                )
            await self.store.update_document(
                doc_id,
                extracted_text=extraction.text,
                metadata_json=extraction.metadata.model_dump(),
                page_count=extraction.metadata.pages,
                processed_at=_now(),
            )

            # ── Stage 2: SEGMENT ──
            # A new cycle replaces the previous clause set, keeping (doc_id, position) unique
            removed = await self.store.delete_clauses(doc_id)
            if removed:
                log.info("previous_clauses_removed", count=removed)
            with pipeline_stage_duration_seconds.labels(stage="segment").time():
                candidates = segment_clauses(extraction.text)
            if not candidates:
                log.warning("no_clauses_found")

            # ── Stage 3: ANALYSE ──
            with pipeline_stage_duration_seconds.labels(stage="analyse").time():
                batch = await self._analyse_clauses(candidates)

            # ── Stage 4: PERSIST ──
            with pipeline_stage_duration_seconds.labels(stage="persist").time():
                batch = await self._persist_clauses(doc_id, batch)

            # ── Stage 5: COMPLETE ──
            summary = JobSummary(
                text_length=len(extraction.text),
                page_count=extraction.metadata.pages,
                word_count=extraction.metadata.word_count,
                clause_count=len(batch.succeeded),
                failed_clause_count=len(batch.failed),
                pipeline_version=self.registry.config.PIPELINE_VERSION,
            )
            await self.store.transition_document(doc_id, DocumentStatus.ANALYZED)
            await self.store.transition_job(
                job.job_id,
                JobStatus.COMPLETED,
                completed_at=_now(),
                result_json=summary.model_dump(),
            )

        except PipelineError as e:
            await self._fail(doc_id, job.job_id, str(e))
            raise
        except Exception as e:
            error_msg = f"{type(e).__name__}: {e}"
            log.error("pipeline_failed", error=error_msg, exc_info=True)
            await self._fail(doc_id, job.job_id, error_msg)
            raise PipelineError(error_msg) from e

        duration = time.monotonic() - started_at
        document_processing_duration_seconds.observe(duration)
        documents_processed_total.labels(status=DocumentStatus.ANALYZED.value).inc()

        log.info(
            "pipeline_completed",
            clauses=summary.clause_count,
            failed_clauses=summary.failed_clause_count,
            duration_ms=int(duration * 1000),
        )

        return {
            "doc_id": doc_id,
            "job_id": job.job_id,
            "status": DocumentStatus.ANALYZED.value,
            "clauses": summary.clause_count,
            "failed_clauses": summary.failed_clause_count,
            "duration_ms": int(duration * 1000),
        }

    # ─── Lifecycle Helpers ────────────────────────────────────

    async def _start_job(self, payload: JobPayload) -> JobRecord:
        """
        Claim the job record for this attempt: pending → processing.
        A record left terminal by an earlier attempt is kept as history and a
        new record is opened for this one.
        """
        doc_id = payload.document_id
        try:
            job = await self.store.get_job(payload.job_id)
        except RecordNotFoundError:
            logger.warning("job_record_missing", doc_id=doc_id, job_id=payload.job_id)
            job = await self.store.create_job(doc_id, JobType.EXTRACTION.value)

        if job.status == JobStatus.PROCESSING.value:
            # Previous attempt died mid-run (timeout or worker crash)
            job = await self.store.transition_job(
                job.job_id,
                JobStatus.FAILED,
                completed_at=_now(),
                error_message="Attempt abandoned before reaching a terminal state",
            )

        if JobStatus(job.status) in TERMINAL_JOB_STATUSES:
            history = await self.store.list_jobs(doc_id)
            attempt = max((j.attempt for j in history if j.job_type == job.job_type), default=0) + 1
            job = await self.store.create_job(doc_id, job.job_type, attempt=attempt)
            logger.info("job_attempt_created", doc_id=doc_id, job_id=job.job_id, attempt=attempt)

        job = await self.store.transition_job(job.job_id, JobStatus.PROCESSING, started_at=_now())
        await self.store.transition_document(doc_id, DocumentStatus.PROCESSING)
        return job

    async def _fail(self, doc_id: str, job_id: str, error_message: str) -> None:
        """Mark document and job as failed."""
        try:
            doc = await self.store.get_document(doc_id)
            if doc.status == DocumentStatus.PROCESSING.value:
                await self.store.transition_document(
                    doc_id, DocumentStatus.FAILED, processed_at=_now()
                )
            await self.store.transition_job(
                job_id,
                JobStatus.FAILED,
                completed_at=_now(),
                error_message=error_message[:MAX_ERROR_CHARS],
            )
        except Exception:
            logger.exception("failed_to_mark_failure", doc_id=doc_id, job_id=job_id)
        documents_processed_total.labels(status=DocumentStatus.FAILED.value).inc()
        logger.error("document_failed", doc_id=doc_id, job_id=job_id, error=error_message)

    # ─── Clause Analysis ──────────────────────────────────────

    async def _analyse_clauses(self, candidates: list[ClauseCandidate]) -> ClauseBatchResult:
        """
        Fan clauses out to a pool of worker tasks over a bounded queue.
        Outcomes are returned in position order whatever order they finish in.
        """
        if not candidates:
            return ClauseBatchResult()

        queue: asyncio.Queue[Optional[ClauseCandidate]] = asyncio.Queue(
            maxsize=self.clause_queue_size
        )
        results: dict[int, ClauseOutcome] = {}
        embed_slots = asyncio.Semaphore(self.embedding_concurrency)

        async def worker() -> None:
            while True:
                candidate = await queue.get()
                try:
                    if candidate is None:
                        return
                    results[candidate.position] = await self._analyse_clause(
                        candidate, embed_slots
                    )
                finally:
                    queue.task_done()

        worker_count = min(self.clause_workers, len(candidates))
        workers = [asyncio.create_task(worker()) for _ in range(worker_count)]

        for candidate in candidates:
            await queue.put(candidate)
        for _ in workers:
            await queue.put(None)
        await asyncio.gather(*workers)

        return ClauseBatchResult(outcomes=[results[c.position] for c in candidates])

    async def _analyse_clause(
        self,
        candidate: ClauseCandidate,
        embed_slots: asyncio.Semaphore,
    ) -> ClauseOutcome:
        """Classify, title, risk-score and embed one clause."""
        stage = ClauseStage.CLASSIFY
        try:
            classification = self.classifier.classify(candidate.text)
            title = extract_clause_title(candidate.text)

            stage = ClauseStage.RISK
            risk = score_clause_risk(self.registry, candidate.text, classification.clause_type)

            stage = ClauseStage.EMBED
            async with embed_slots:
                embedding = await asyncio.to_thread(self.embedder.embed, candidate.text)

            record = ClauseRecord(
                position=candidate.position,
                section_number=candidate.section_number,
                title=title,
                text=candidate.text,
                word_count=classification.word_count,
                clause_type=classification.clause_type,
                confidence=classification.confidence,
                entities=classification.entities,
                risk_level=risk.risk_level,
                risk_flags=risk.flags,
                embedding=embedding,
            )
        except Exception as e:
            return self._clause_failure(candidate.position, stage, e)

        return ClauseOutcome(position=candidate.position, record=record)

    async def _persist_clauses(self, doc_id: str, batch: ClauseBatchResult) -> ClauseBatchResult:
        """Insert analysed clauses in position order; an insert failure skips that clause."""
        outcomes = []
        for outcome in batch.outcomes:
            if not outcome.ok:
                outcomes.append(outcome)
                continue
            try:
                await self.store.add_clause(doc_id, outcome.record)
            except Exception as e:
                outcomes.append(self._clause_failure(outcome.position, ClauseStage.PERSIST, e))
                continue
            clauses_persisted_total.labels(risk_level=outcome.record.risk_level.value).inc()
            logger.debug(
                "clause_persisted",
                doc_id=doc_id,
                position=outcome.position,
                clause_type=outcome.record.clause_type.value,
                risk_level=outcome.record.risk_level.value,
            )
            outcomes.append(outcome)

        result = ClauseBatchResult(outcomes=outcomes)
        logger.info(
            "clauses_persisted",
            doc_id=doc_id,
            persisted=len(result.succeeded),
            failed=len(result.failed),
            failed_positions=[o.position for o in result.failed],
        )
        return result

    def _clause_failure(self, position: int, stage: ClauseStage, exc: Exception) -> ClauseOutcome:
        error = ClauseProcessingError(position, stage.value, f"{type(exc).__name__}: {exc}")
        clauses_failed_total.labels(stage=stage.value).inc()
        logger.warning("clause_failed", position=position, stage=stage.value, error=str(error))
        return ClauseOutcome(position=position, failed_stage=stage, error=str(error))
