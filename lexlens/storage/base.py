"""
Persistence boundary for documents, clauses and processing jobs.
Status changes go through transition_* so lifecycles are enforced in one place.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Optional

from lexlens.models.enums import (
    DocumentStatus,
    JobStatus,
    JobType,
    ensure_document_transition,
    ensure_job_transition,
)
from lexlens.schemas.contracts import ClauseRecord, DocumentRecord, JobRecord


class ClauseStore(ABC):
    """Create/read/update access to the contract tables."""

    # ── Documents ────────────────────────────────────────────

    @abstractmethod
    async def create_document(
        self,
        user_id: str,
        file_path: str,
        file_type: str,
        title: Optional[str] = None,
        file_size: int = 0,
    ) -> DocumentRecord:
        ...

    @abstractmethod
    async def get_document(self, doc_id: str) -> DocumentRecord:
        """Raise RecordNotFoundError if missing."""
        ...

    @abstractmethod
    async def update_document(self, doc_id: str, **fields: Any) -> DocumentRecord:
        ...

    @abstractmethod
    async def delete_document(self, doc_id: str) -> None:
        """Delete the document with its clauses and jobs."""
        ...

    # ── Clauses ──────────────────────────────────────────────

    @abstractmethod
    async def add_clause(self, doc_id: str, clause: ClauseRecord) -> str:
        """Insert one clause row and return its id."""
        ...

    @abstractmethod
    async def delete_clauses(self, doc_id: str) -> int:
        ...

    @abstractmethod
    async def list_clauses(self, doc_id: str) -> list[ClauseRecord]:
        """Clauses of a document in position order."""
        ...

    # ── Jobs ─────────────────────────────────────────────────

    @abstractmethod
    async def create_job(
        self,
        doc_id: str,
        job_type: str = JobType.EXTRACTION.value,
        attempt: int = 1,
    ) -> JobRecord:
        ...

    @abstractmethod
    async def get_job(self, job_id: str) -> JobRecord:
        """Raise RecordNotFoundError if missing."""
        ...

    @abstractmethod
    async def list_jobs(self, doc_id: str) -> list[JobRecord]:
        """Jobs of a document, oldest first."""
        ...

    @abstractmethod
    async def update_job(self, job_id: str, **fields: Any) -> JobRecord:
        ...

    @abstractmethod
    async def purge_finished_jobs(self, older_than: datetime) -> int:
        """Delete completed/failed jobs that finished before older_than."""
        ...

    # ── Lifecycle helpers ────────────────────────────────────

    async def transition_document(
        self, doc_id: str, status: DocumentStatus, **fields: Any
    ) -> DocumentRecord:
        current = await self.get_document(doc_id)
        ensure_document_transition(current.status, status.value)
        return await self.update_document(doc_id, status=status.value, **fields)

    async def transition_job(
        self, job_id: str, status: JobStatus, **fields: Any
    ) -> JobRecord:
        current = await self.get_job(job_id)
        ensure_job_transition(current.status, status.value)
        return await self.update_job(job_id, status=status.value, **fields)
