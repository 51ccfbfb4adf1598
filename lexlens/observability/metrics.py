"""
Prometheus metrics for the clause pipeline.
"""

from prometheus_client import Counter, Histogram


# ── Document Processing ─────────────────────────────────────
documents_processed_total = Counter(
    "lexlens_documents_processed_total",
    "Documents that reached a terminal status",
    ["status"],
)

document_processing_duration_seconds = Histogram(
    "lexlens_document_processing_duration_seconds",
    "Time to process a document end-to-end",
    buckets=[1, 5, 10, 30, 60, 120, 300, 600],
)

# ── Pipeline Stages ──────────────────────────────────────────
pipeline_stage_duration_seconds = Histogram(
    "lexlens_pipeline_stage_duration_seconds",
    "Time per pipeline stage",
    ["stage"],
    buckets=[0.1, 0.5, 1, 5, 10, 30, 60],
)

# ── Clauses ──────────────────────────────────────────────────
clauses_persisted_total = Counter(
    "lexlens_clauses_persisted_total",
    "Clauses persisted",
    ["risk_level"],
)

clauses_failed_total = Counter(
    "lexlens_clauses_failed_total",
    "Clauses skipped after a per-clause failure",
    ["stage"],
)

# ── Jobs ─────────────────────────────────────────────────────
jobs_enqueued_total = Counter(
    "lexlens_jobs_enqueued_total",
    "Processing jobs pushed onto the queue",
)

jobs_purged_total = Counter(
    "lexlens_jobs_purged_total",
    "Finished processing job records removed by the retention sweep",
)
