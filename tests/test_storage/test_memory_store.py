"""
Tests for lifecycle enforcement and constraints in the in-memory store.
"""

from datetime import datetime, timedelta, timezone

import pytest

from lexlens.errors import InvalidTransitionError, RecordNotFoundError
from lexlens.models.enums import ClauseType, DocumentStatus, JobStatus, RiskLevel
from lexlens.schemas.contracts import ClauseEntities, ClauseRecord


def _clause(position: int) -> ClauseRecord:
    return ClauseRecord(
        position=position,
        text=f"Clause text {position}",
        word_count=3,
        clause_type=ClauseType.GENERAL,
        confidence=0.5,
        entities=ClauseEntities(),
        risk_level=RiskLevel.LOW,
        embedding=[0.0] * 384,
    )


class TestDocumentLifecycle:

    @pytest.mark.asyncio
    async def test_new_document_is_uploaded(self, store):
        doc = await store.create_document("user-1", "a.pdf", "application/pdf")
        assert doc.status == "uploaded"

    @pytest.mark.asyncio
    async def test_uploaded_cannot_jump_to_analyzed(self, store):
        doc = await store.create_document("user-1", "a.pdf", "application/pdf")
        with pytest.raises(InvalidTransitionError):
            await store.transition_document(doc.doc_id, DocumentStatus.ANALYZED)

    @pytest.mark.asyncio
    async def test_full_cycle_and_reprocess(self, store):
        doc = await store.create_document("user-1", "a.pdf", "application/pdf")
        for status in (
            DocumentStatus.PROCESSING,
            DocumentStatus.ANALYZED,
            DocumentStatus.PROCESSING,
            DocumentStatus.FAILED,
            DocumentStatus.PROCESSING,
        ):
            doc = await store.transition_document(doc.doc_id, status)
        assert doc.status == "processing"

    @pytest.mark.asyncio
    async def test_missing_document(self, store):
        with pytest.raises(RecordNotFoundError):
            await store.get_document("nope")


class TestJobLifecycle:

    @pytest.mark.asyncio
    async def test_terminal_job_cannot_restart(self, store):
        doc = await store.create_document("user-1", "a.pdf", "application/pdf")
        job = await store.create_job(doc.doc_id)
        await store.transition_job(job.job_id, JobStatus.PROCESSING)
        await store.transition_job(job.job_id, JobStatus.COMPLETED)

        with pytest.raises(InvalidTransitionError):
            await store.transition_job(job.job_id, JobStatus.PROCESSING)

    @pytest.mark.asyncio
    async def test_pending_cannot_complete(self, store):
        doc = await store.create_document("user-1", "a.pdf", "application/pdf")
        job = await store.create_job(doc.doc_id)
        with pytest.raises(InvalidTransitionError):
            await store.transition_job(job.job_id, JobStatus.COMPLETED)

    @pytest.mark.asyncio
    async def test_pending_can_fail(self, store):
        doc = await store.create_document("user-1", "a.pdf", "application/pdf")
        job = await store.create_job(doc.doc_id)
        job = await store.transition_job(job.job_id, JobStatus.FAILED, error_message="queue down")
        assert job.status == "failed"
        assert job.error_message == "queue down"

    @pytest.mark.asyncio
    async def test_job_needs_existing_document(self, store):
        with pytest.raises(RecordNotFoundError):
            await store.create_job("nope")


class TestClauses:

    @pytest.mark.asyncio
    async def test_duplicate_position_rejected(self, store):
        doc = await store.create_document("user-1", "a.pdf", "application/pdf")
        await store.add_clause(doc.doc_id, _clause(0))
        with pytest.raises(ValueError):
            await store.add_clause(doc.doc_id, _clause(0))

    @pytest.mark.asyncio
    async def test_listed_in_position_order(self, store):
        doc = await store.create_document("user-1", "a.pdf", "application/pdf")
        for position in (2, 0, 1):
            await store.add_clause(doc.doc_id, _clause(position))
        assert [c.position for c in await store.list_clauses(doc.doc_id)] == [0, 1, 2]

    @pytest.mark.asyncio
    async def test_delete_clauses_counts_rows(self, store):
        doc = await store.create_document("user-1", "a.pdf", "application/pdf")
        await store.add_clause(doc.doc_id, _clause(0))
        await store.add_clause(doc.doc_id, _clause(1))
        assert await store.delete_clauses(doc.doc_id) == 2
        assert await store.list_clauses(doc.doc_id) == []

    @pytest.mark.asyncio
    async def test_document_delete_cascades(self, store):
        doc = await store.create_document("user-1", "a.pdf", "application/pdf")
        job = await store.create_job(doc.doc_id)
        await store.add_clause(doc.doc_id, _clause(0))

        await store.delete_document(doc.doc_id)

        assert await store.list_clauses(doc.doc_id) == []
        with pytest.raises(RecordNotFoundError):
            await store.get_job(job.job_id)


class TestPurge:

    @pytest.mark.asyncio
    async def test_only_old_terminal_jobs_removed(self, store):
        doc = await store.create_document("user-1", "a.pdf", "application/pdf")
        now = datetime.now(timezone.utc)

        old = await store.create_job(doc.doc_id)
        await store.update_job(old.job_id, status="completed", completed_at=now - timedelta(days=8))
        recent = await store.create_job(doc.doc_id)
        await store.update_job(recent.job_id, status="failed", completed_at=now - timedelta(days=1))
        pending = await store.create_job(doc.doc_id)

        purged = await store.purge_finished_jobs(now - timedelta(days=7))

        assert purged == 1
        remaining = {j.job_id for j in await store.list_jobs(doc.doc_id)}
        assert remaining == {recent.job_id, pending.job_id}
