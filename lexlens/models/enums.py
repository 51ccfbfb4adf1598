"""
Python enums matching the database check constraints.
Values MUST match the stored strings exactly.
"""

from enum import Enum

from lexlens.errors import InvalidTransitionError


class DocumentStatus(str, Enum):
    UPLOADED = "uploaded"
    PROCESSING = "processing"
    ANALYZED = "analyzed"
    FAILED = "failed"


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class JobType(str, Enum):
    EXTRACTION = "extraction"
    ANALYSIS = "analysis"
    COMPARISON = "comparison"


class ClauseType(str, Enum):
    """Declaration order is the classifier's tie-break order."""
    CONFIDENTIALITY = "confidentiality"
    TERMINATION = "termination"
    LIABILITY = "liability"
    PAYMENT = "payment"
    INTELLECTUAL_PROPERTY = "intellectual_property"
    GOVERNING_LAW = "governing_law"
    WARRANTY = "warranty"
    FORCE_MAJEURE = "force_majeure"
    ASSIGNMENT = "assignment"
    AMENDMENT = "amendment"
    ENTIRE_AGREEMENT = "entire_agreement"
    SEVERABILITY = "severability"
    GENERAL = "general"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ClauseStage(str, Enum):
    """Per-clause step that can fail without failing the job."""
    CLASSIFY = "classify"
    RISK = "risk"
    EMBED = "embed"
    PERSIST = "persist"


# ── Lifecycles ───────────────────────────────────────────────
# analyzed/failed -> processing is a new processing cycle (re-upload or retry).
DOCUMENT_TRANSITIONS: dict[DocumentStatus, frozenset[DocumentStatus]] = {
    DocumentStatus.UPLOADED: frozenset({DocumentStatus.PROCESSING}),
    DocumentStatus.PROCESSING: frozenset({
        DocumentStatus.PROCESSING,
        DocumentStatus.ANALYZED,
        DocumentStatus.FAILED,
    }),
    DocumentStatus.ANALYZED: frozenset({DocumentStatus.PROCESSING}),
    DocumentStatus.FAILED: frozenset({DocumentStatus.PROCESSING}),
}

JOB_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.PROCESSING, JobStatus.FAILED}),
    JobStatus.PROCESSING: frozenset({JobStatus.COMPLETED, JobStatus.FAILED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
}

TERMINAL_JOB_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED})


def ensure_document_transition(current: str, new: str) -> None:
    """Raise InvalidTransitionError unless current -> new is allowed."""
    if DocumentStatus(new) not in DOCUMENT_TRANSITIONS[DocumentStatus(current)]:
        raise InvalidTransitionError(f"Document cannot move from {current} to {new}")


def ensure_job_transition(current: str, new: str) -> None:
    """Raise InvalidTransitionError unless current -> new is allowed."""
    if JobStatus(new) not in JOB_TRANSITIONS[JobStatus(current)]:
        raise InvalidTransitionError(f"Job cannot move from {current} to {new}")
