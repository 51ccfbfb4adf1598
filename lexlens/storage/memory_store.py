"""
In-process ClauseStore for tests and local runs.
Mirrors the database constraints that matter to the pipeline:
unique clause position per document and cascade delete.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from lexlens.errors import RecordNotFoundError
from lexlens.models.enums import DocumentStatus, JobStatus, JobType, TERMINAL_JOB_STATUSES
from lexlens.schemas.contracts import ClauseRecord, DocumentRecord, JobRecord
from lexlens.storage.base import ClauseStore


class MemoryClauseStore(ClauseStore):

    def __init__(self, fail_on_positions: Optional[set[int]] = None):
        self.documents: dict[str, DocumentRecord] = {}
        self.jobs: dict[str, JobRecord] = {}
        self.clauses: dict[str, dict[int, tuple[str, ClauseRecord]]] = {}
        # Positions whose insert raises, to exercise per-clause failure handling
        self.fail_on_positions = fail_on_positions or set()

    async def create_document(
        self,
        user_id: str,
        file_path: str,
        file_type: str,
        title: Optional[str] = None,
        file_size: int = 0,
    ) -> DocumentRecord:
        doc = DocumentRecord(
            doc_id=str(uuid.uuid4()),
            user_id=user_id,
            status=DocumentStatus.UPLOADED.value,
            file_path=file_path,
            file_type=file_type,
        )
        self.documents[doc.doc_id] = doc
        self.clauses[doc.doc_id] = {}
        return doc

    async def get_document(self, doc_id: str) -> DocumentRecord:
        try:
            return self.documents[doc_id]
        except KeyError:
            raise RecordNotFoundError(f"Document {doc_id} not found") from None

    async def update_document(self, doc_id: str, **fields: Any) -> DocumentRecord:
        doc = (await self.get_document(doc_id)).model_copy(update=fields)
        self.documents[doc_id] = doc
        return doc

    async def delete_document(self, doc_id: str) -> None:
        await self.get_document(doc_id)
        del self.documents[doc_id]
        self.clauses.pop(doc_id, None)
        for job_id in [j.job_id for j in self.jobs.values() if j.doc_id == doc_id]:
            del self.jobs[job_id]

    async def add_clause(self, doc_id: str, clause: ClauseRecord) -> str:
        await self.get_document(doc_id)
        if clause.position in self.fail_on_positions:
            raise RuntimeError(f"simulated insert failure at position {clause.position}")
        rows = self.clauses.setdefault(doc_id, {})
        if clause.position in rows:
            raise ValueError(f"duplicate clause position {clause.position} for {doc_id}")
        clause_id = str(uuid.uuid4())
        rows[clause.position] = (clause_id, clause)
        return clause_id

    async def delete_clauses(self, doc_id: str) -> int:
        removed = len(self.clauses.get(doc_id, {}))
        self.clauses[doc_id] = {}
        return removed

    async def list_clauses(self, doc_id: str) -> list[ClauseRecord]:
        rows = self.clauses.get(doc_id, {})
        return [rows[p][1] for p in sorted(rows)]

    async def create_job(
        self,
        doc_id: str,
        job_type: str = JobType.EXTRACTION.value,
        attempt: int = 1,
    ) -> JobRecord:
        await self.get_document(doc_id)
        job = JobRecord(
            job_id=str(uuid.uuid4()),
            doc_id=doc_id,
            job_type=job_type,
            status=JobStatus.PENDING.value,
            attempt=attempt,
            created_at=datetime.now(timezone.utc),
        )
        self.jobs[job.job_id] = job
        return job

    async def get_job(self, job_id: str) -> JobRecord:
        try:
            return self.jobs[job_id]
        except KeyError:
            raise RecordNotFoundError(f"Processing job {job_id} not found") from None

    async def list_jobs(self, doc_id: str) -> list[JobRecord]:
        return [j for j in self.jobs.values() if j.doc_id == doc_id]

    async def update_job(self, job_id: str, **fields: Any) -> JobRecord:
        job = (await self.get_job(job_id)).model_copy(update=fields)
        self.jobs[job_id] = job
        return job

    async def purge_finished_jobs(self, older_than: datetime) -> int:
        terminal = {s.value for s in TERMINAL_JOB_STATUSES}
        stale = [
            j.job_id for j in self.jobs.values()
            if j.status in terminal and j.completed_at is not None and j.completed_at < older_than
        ]
        for job_id in stale:
            del self.jobs[job_id]
        return len(stale)
