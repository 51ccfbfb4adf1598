"""
ClauseStore backed by PostgreSQL through async SQLAlchemy.
Every call runs in its own short session and commits immediately, so writes
are per-row and scoped by document or clause id.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lexlens.errors import RecordNotFoundError
from lexlens.models.enums import DocumentStatus, JobStatus, JobType, RiskLevel, TERMINAL_JOB_STATUSES
from lexlens.models.tables import Clause, Document, ProcessingJob
from lexlens.pipeline.embeddings import format_embedding, parse_embedding
from lexlens.schemas.contracts import (
    ClauseEntities,
    ClauseRecord,
    DocumentRecord,
    JobRecord,
    RiskFlag,
)
from lexlens.storage.base import ClauseStore

logger = structlog.get_logger(__name__)


class SqlClauseStore(ClauseStore):

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    # ── Documents ────────────────────────────────────────────

    async def create_document(
        self,
        user_id: str,
        file_path: str,
        file_type: str,
        title: Optional[str] = None,
        file_size: int = 0,
    ) -> DocumentRecord:
        filename = file_path.rsplit("/", 1)[-1]
        doc = Document(
            user_id=uuid.UUID(user_id),
            title=title or filename,
            original_filename=filename,
            file_path=file_path,
            file_type=file_type,
            file_size=file_size,
            status=DocumentStatus.UPLOADED.value,
            metadata_json={},
        )
        async with self.session_factory() as session:
            session.add(doc)
            await session.commit()
            return _document_record(doc)

    async def get_document(self, doc_id: str) -> DocumentRecord:
        async with self.session_factory() as session:
            return _document_record(await self._load_document(session, doc_id))

    async def update_document(self, doc_id: str, **fields: Any) -> DocumentRecord:
        async with self.session_factory() as session:
            doc = await self._load_document(session, doc_id)
            for key, value in fields.items():
                setattr(doc, key, value)
            doc.updated_at = datetime.now(timezone.utc)
            await session.commit()
            return _document_record(doc)

    async def delete_document(self, doc_id: str) -> None:
        async with self.session_factory() as session:
            doc = await self._load_document(session, doc_id)
            await session.delete(doc)
            await session.commit()

    # ── Clauses ──────────────────────────────────────────────

    async def add_clause(self, doc_id: str, clause: ClauseRecord) -> str:
        row = Clause(
            doc_id=uuid.UUID(doc_id),
            position=clause.position,
            section_number=clause.section_number,
            title=clause.title,
            text=clause.text,
            word_count=clause.word_count,
            clause_type=clause.clause_type.value,
            confidence=Decimal(str(round(clause.confidence, 4))),
            entities=clause.entities.model_dump(),
            risk_level=clause.risk_level.value,
            risk_flags=[f.model_dump(mode="json") for f in clause.risk_flags],
            requires_review=clause.requires_review,
            embedding=format_embedding(clause.embedding),
        )
        async with self.session_factory() as session:
            session.add(row)
            await session.commit()
            return str(row.clause_id)

    async def delete_clauses(self, doc_id: str) -> int:
        async with self.session_factory() as session:
            result = await session.execute(
                delete(Clause).where(Clause.doc_id == uuid.UUID(doc_id))
            )
            await session.commit()
            return result.rowcount or 0

    async def list_clauses(self, doc_id: str) -> list[ClauseRecord]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(Clause)
                .where(Clause.doc_id == uuid.UUID(doc_id))
                .order_by(Clause.position)
            )
            return [_clause_record(row) for row in result.scalars().all()]

    # ── Jobs ─────────────────────────────────────────────────

    async def create_job(
        self,
        doc_id: str,
        job_type: str = JobType.EXTRACTION.value,
        attempt: int = 1,
    ) -> JobRecord:
        job = ProcessingJob(
            doc_id=uuid.UUID(doc_id),
            job_type=job_type,
            status=JobStatus.PENDING.value,
            attempt=attempt,
            created_at=datetime.now(timezone.utc),
        )
        async with self.session_factory() as session:
            session.add(job)
            await session.commit()
            return _job_record(job)

    async def get_job(self, job_id: str) -> JobRecord:
        async with self.session_factory() as session:
            return _job_record(await self._load_job(session, job_id))

    async def list_jobs(self, doc_id: str) -> list[JobRecord]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(ProcessingJob)
                .where(ProcessingJob.doc_id == uuid.UUID(doc_id))
                .order_by(ProcessingJob.created_at)
            )
            return [_job_record(job) for job in result.scalars().all()]

    async def update_job(self, job_id: str, **fields: Any) -> JobRecord:
        async with self.session_factory() as session:
            job = await self._load_job(session, job_id)
            for key, value in fields.items():
                setattr(job, key, value)
            await session.commit()
            return _job_record(job)

    async def purge_finished_jobs(self, older_than: datetime) -> int:
        async with self.session_factory() as session:
            result = await session.execute(
                delete(ProcessingJob).where(
                    ProcessingJob.status.in_([s.value for s in TERMINAL_JOB_STATUSES]),
                    ProcessingJob.completed_at < older_than,
                )
            )
            await session.commit()
            purged = result.rowcount or 0
        logger.info("jobs_purged", count=purged, older_than=older_than.isoformat())
        return purged

    # ── Loaders ──────────────────────────────────────────────

    async def _load_document(self, session: AsyncSession, doc_id: str) -> Document:
        result = await session.execute(
            select(Document).where(Document.doc_id == uuid.UUID(doc_id))
        )
        doc = result.scalar_one_or_none()
        if not doc:
            raise RecordNotFoundError(f"Document {doc_id} not found")
        return doc

    async def _load_job(self, session: AsyncSession, job_id: str) -> ProcessingJob:
        result = await session.execute(
            select(ProcessingJob).where(ProcessingJob.job_id == uuid.UUID(job_id))
        )
        job = result.scalar_one_or_none()
        if not job:
            raise RecordNotFoundError(f"Processing job {job_id} not found")
        return job


def _document_record(doc: Document) -> DocumentRecord:
    return DocumentRecord(
        doc_id=str(doc.doc_id),
        user_id=str(doc.user_id),
        status=doc.status,
        file_path=doc.file_path,
        file_type=doc.file_type,
        extracted_text=doc.extracted_text,
        page_count=doc.page_count,
        metadata_json=doc.metadata_json or {},
        processed_at=doc.processed_at,
    )


def _job_record(job: ProcessingJob) -> JobRecord:
    return JobRecord(
        job_id=str(job.job_id),
        doc_id=str(job.doc_id),
        job_type=job.job_type,
        status=job.status,
        attempt=job.attempt,
        error_message=job.error_message,
        result_json=job.result_json,
        created_at=job.created_at,
        started_at=job.started_at,
        completed_at=job.completed_at,
    )


def _clause_record(row: Clause) -> ClauseRecord:
    return ClauseRecord(
        position=row.position,
        section_number=row.section_number,
        title=row.title,
        text=row.text,
        word_count=row.word_count,
        clause_type=row.clause_type,
        confidence=float(row.confidence),
        entities=ClauseEntities(**(row.entities or {})),
        risk_level=RiskLevel(row.risk_level),
        risk_flags=[RiskFlag(**f) for f in (row.risk_flags or [])],
        embedding=parse_embedding(row.embedding),
    )
