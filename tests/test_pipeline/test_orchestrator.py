"""
End-to-end tests for the clause pipeline against the in-memory store.
"""

import pytest

from lexlens.engines.stub_extractor import StubTextExtractor
from lexlens.engines.text_extractor import DocumentTextExtractor
from lexlens.errors import ExtractionError, PipelineError
from lexlens.models.enums import ClauseType, JobStatus, RiskLevel
from lexlens.pipeline.orchestrator import ClausePipeline
from lexlens.schemas.contracts import JobPayload
from lexlens.storage.memory_store import MemoryClauseStore


async def _queued_document(store, file_path="contract.txt", file_type="text/plain"):
    doc = await store.create_document("user-1", file_path, file_type)
    job = await store.create_job(doc.doc_id)
    payload = JobPayload(
        document_id=doc.doc_id,
        file_path=file_path,
        file_type=file_type,
        user_id="user-1",
        job_id=job.job_id,
    )
    return doc, job, payload


class TestHappyPath:

    @pytest.mark.asyncio
    async def test_two_section_contract(self, store, registry, two_section_contract):
        doc, job, payload = await _queued_document(store)
        pipeline = ClausePipeline(store, registry, StubTextExtractor(two_section_contract))

        result = await pipeline.process(payload)

        assert result["status"] == "analyzed"
        assert result["clauses"] == 2
        assert result["failed_clauses"] == 0

        clauses = await store.list_clauses(doc.doc_id)
        assert [c.position for c in clauses] == [0, 1]

        first, second = clauses
        assert first.clause_type == ClauseType.CONFIDENTIALITY
        assert first.title == "CONFIDENTIALITY"
        assert first.section_number == "1."
        assert len(first.embedding) == 384

        assert second.clause_type == ClauseType.TERMINATION
        assert second.risk_level == RiskLevel.MEDIUM
        assert len(second.risk_flags) == 3
        assert second.requires_review is True

        doc = await store.get_document(doc.doc_id)
        assert doc.status == "analyzed"
        assert doc.extracted_text == two_section_contract
        assert doc.processed_at is not None

        job = await store.get_job(job.job_id)
        assert job.status == JobStatus.COMPLETED.value
        assert job.started_at is not None and job.completed_at is not None
        assert job.result_json["clause_count"] == 2
        assert job.result_json["text_length"] == len(two_section_contract)
        assert job.result_json["pipeline_version"] == "0.1.0"

    @pytest.mark.asyncio
    async def test_accepts_camel_case_payload(self, store, registry, two_section_contract):
        doc, job, _ = await _queued_document(store)
        pipeline = ClausePipeline(store, registry, StubTextExtractor(two_section_contract))

        result = await pipeline.process({
            "documentId": doc.doc_id,
            "filePath": "contract.txt",
            "fileType": "text/plain",
            "userId": "user-1",
            "jobId": job.job_id,
        })
        assert result["clauses"] == 2

    @pytest.mark.asyncio
    async def test_positions_follow_document_order(self, store, registry, ten_clause_contract):
        doc, _, payload = await _queued_document(store)
        pipeline = ClausePipeline(store, registry, StubTextExtractor(ten_clause_contract))

        await pipeline.process(payload)

        clauses = await store.list_clauses(doc.doc_id)
        assert [c.position for c in clauses] == list(range(10))
        assert [c.section_number for c in clauses] == [f"{i}." for i in range(1, 11)]

    @pytest.mark.asyncio
    async def test_empty_text_is_analyzed_with_no_clauses(self, store, registry):
        doc, job, payload = await _queued_document(store)
        pipeline = ClausePipeline(store, registry, StubTextExtractor(""))

        result = await pipeline.process(payload)

        assert result["status"] == "analyzed"
        assert result["clauses"] == 0
        assert await store.list_clauses(doc.doc_id) == []
        assert (await store.get_job(job.job_id)).status == "completed"

    @pytest.mark.asyncio
    async def test_reprocessing_replaces_clause_set(self, store, registry, two_section_contract):
        doc, _, payload = await _queued_document(store)
        pipeline = ClausePipeline(store, registry, StubTextExtractor(two_section_contract))

        await pipeline.process(payload)
        await pipeline.process(payload)

        assert len(await store.list_clauses(doc.doc_id)) == 2
        jobs = await store.list_jobs(doc.doc_id)
        assert sorted(j.attempt for j in jobs) == [1, 2]


class TestDocumentLevelFailure:

    @pytest.mark.asyncio
    async def test_unsupported_file_type_fails_document_and_job(self, store, registry):
        doc, job, payload = await _queued_document(store, "scan.png", "image/png")
        pipeline = ClausePipeline(store, registry, DocumentTextExtractor())

        with pytest.raises(ExtractionError):
            await pipeline.process(payload)

        assert (await store.get_document(doc.doc_id)).status == "failed"
        job = await store.get_job(job.job_id)
        assert job.status == "failed"
        assert "Unsupported file type" in job.error_message
        assert await store.list_clauses(doc.doc_id) == []

    @pytest.mark.asyncio
    async def test_unexpected_error_is_wrapped(self, store, registry):
        class Exploding(StubTextExtractor):
            def extract(self, path, declared_type):
                raise OSError("disk gone")

        doc, job, payload = await _queued_document(store)
        pipeline = ClausePipeline(store, registry, Exploding())

        with pytest.raises(PipelineError, match="OSError: disk gone"):
            await pipeline.process(payload)

        assert (await store.get_job(job.job_id)).status == "failed"

    @pytest.mark.asyncio
    async def test_retry_opens_new_attempt(self, store, registry, two_section_contract):
        doc, job, payload = await _queued_document(store)

        with pytest.raises(ExtractionError):
            await ClausePipeline(store, registry, StubTextExtractor(error="corrupt")).process(payload)

        result = await ClausePipeline(
            store, registry, StubTextExtractor(two_section_contract)
        ).process(payload)

        assert result["job_id"] != job.job_id
        assert (await store.get_job(job.job_id)).status == "failed"
        retry = await store.get_job(result["job_id"])
        assert retry.attempt == 2
        assert retry.status == "completed"
        assert (await store.get_document(doc.doc_id)).status == "analyzed"

    @pytest.mark.asyncio
    async def test_abandoned_attempt_is_closed(self, store, registry, two_section_contract):
        doc, job, payload = await _queued_document(store)
        await store.transition_job(job.job_id, JobStatus.PROCESSING)

        result = await ClausePipeline(
            store, registry, StubTextExtractor(two_section_contract)
        ).process(payload)

        stale = await store.get_job(job.job_id)
        assert stale.status == "failed"
        assert "abandoned" in stale.error_message
        assert (await store.get_job(result["job_id"])).attempt == 2


class TestClauseLevelFailure:

    @pytest.mark.asyncio
    async def test_embedding_failure_skips_one_clause(self, store, registry, ten_clause_contract):
        text = ten_clause_contract.replace("obligation number 5 ", "obligation EMBEDDING-FAILS ")
        doc, job, payload = await _queued_document(store)

        result = await ClausePipeline(store, registry, StubTextExtractor(text)).process(payload)

        assert result["status"] == "analyzed"
        assert result["clauses"] == 9
        assert result["failed_clauses"] == 1

        positions = [c.position for c in await store.list_clauses(doc.doc_id)]
        assert 4 not in positions
        assert len(positions) == 9

        job = await store.get_job(job.job_id)
        assert job.status == "completed"
        assert job.result_json["clause_count"] == 9
        assert job.result_json["failed_clause_count"] == 1

    @pytest.mark.asyncio
    async def test_persist_failure_skips_one_clause(self, registry, ten_clause_contract):
        store = MemoryClauseStore(fail_on_positions={3})
        doc, _, payload = await _queued_document(store)

        result = await ClausePipeline(
            store, registry, StubTextExtractor(ten_clause_contract)
        ).process(payload)

        assert result["clauses"] == 9
        positions = [c.position for c in await store.list_clauses(doc.doc_id)]
        assert positions == [0, 1, 2, 4, 5, 6, 7, 8, 9]
        assert (await store.get_document(doc.doc_id)).status == "analyzed"

    @pytest.mark.asyncio
    async def test_every_clause_failing_still_completes(self, registry, two_section_contract):
        store = MemoryClauseStore(fail_on_positions={0, 1})
        doc, job, payload = await _queued_document(store)

        result = await ClausePipeline(
            store, registry, StubTextExtractor(two_section_contract)
        ).process(payload)

        assert result["clauses"] == 0
        assert result["failed_clauses"] == 2
        assert (await store.get_job(job.job_id)).status == "completed"
