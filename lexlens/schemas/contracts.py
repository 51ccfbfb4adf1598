"""
Core pipeline contracts.
Every stage consumes and produces these models - never ORM rows or raw dicts.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

from lexlens.models.enums import ClauseStage, ClauseType, RiskLevel


# ── Extraction ───────────────────────────────────────────────

class ExtractionMetadata(BaseModel):
    """Metadata derived while extracting text from the source file."""
    pages: int = 0
    word_count: int = 0
    character_count: int = 0
    document_type: str = "Unknown"
    parties: list[str] = []
    dates: list[str] = []
    source_info: dict = {}


class ExtractionResult(BaseModel):
    text: str
    metadata: ExtractionMetadata


# ── Segmentation ─────────────────────────────────────────────

class ClauseCandidate(BaseModel):
    """One segment of document text, before analysis."""
    position: int = Field(ge=0)
    section_number: Optional[str] = None
    text: str


# ── Classification ───────────────────────────────────────────

class ClauseEntities(BaseModel):
    dates: list[str] = []
    money: list[str] = []
    organizations: list[str] = []
    people: list[str] = []


class ClassificationResult(BaseModel):
    clause_type: ClauseType = ClauseType.GENERAL
    confidence: float = Field(ge=0.0, le=1.0, default=0.5)
    entities: ClauseEntities = ClauseEntities()
    word_count: int = 0
    scores: dict[str, int] = {}


# ── Risk ─────────────────────────────────────────────────────

class RiskFlag(BaseModel):
    severity: RiskLevel
    message: str
    pattern: str


class RiskAssessment(BaseModel):
    risk_level: RiskLevel = RiskLevel.LOW
    flags: list[RiskFlag] = []
    reassurances: list[str] = []

    @computed_field
    @property
    def requires_review(self) -> bool:
        return self.risk_level != RiskLevel.LOW


# ── Clause records ───────────────────────────────────────────

class ClauseRecord(BaseModel):
    """Fully analysed clause, ready to persist."""
    position: int = Field(ge=0)
    section_number: Optional[str] = None
    title: Optional[str] = None
    text: str
    word_count: int
    clause_type: ClauseType
    confidence: float = Field(ge=0.0, le=1.0)
    entities: ClauseEntities
    risk_level: RiskLevel
    risk_flags: list[RiskFlag] = []
    embedding: list[float]

    @computed_field
    @property
    def requires_review(self) -> bool:
        return self.risk_level != RiskLevel.LOW


class ClauseOutcome(BaseModel):
    """Success/failure tagged result for one clause."""
    position: int
    record: Optional[ClauseRecord] = None
    failed_stage: Optional[ClauseStage] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.record is not None and self.error is None


class ClauseBatchResult(BaseModel):
    """Aggregate of per-clause outcomes for one document, in position order."""
    outcomes: list[ClauseOutcome] = []

    @property
    def succeeded(self) -> list[ClauseOutcome]:
        return [o for o in self.outcomes if o.ok]

    @property
    def failed(self) -> list[ClauseOutcome]:
        return [o for o in self.outcomes if not o.ok]


class SimilarityMatch(BaseModel):
    index: int
    similarity: float
    text: Optional[str] = None


# ── Jobs ─────────────────────────────────────────────────────

class JobPayload(BaseModel):
    """Queue payload. Accepts both snake_case and the camelCase wire keys."""
    model_config = ConfigDict(populate_by_name=True)

    document_id: str = Field(alias="documentId")
    file_path: str = Field(alias="filePath")
    file_type: str = Field(alias="fileType")
    user_id: str = Field(alias="userId")
    job_id: str = Field(alias="jobId")


class JobSummary(BaseModel):
    text_length: int
    page_count: int
    word_count: int
    clause_count: int
    failed_clause_count: int = 0
    pipeline_version: Optional[str] = None


class DocumentRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    doc_id: str
    user_id: str
    status: str
    file_path: Optional[str] = None
    file_type: Optional[str] = None
    extracted_text: Optional[str] = None
    page_count: Optional[int] = None
    metadata_json: dict = {}
    processed_at: Optional[datetime] = None


class JobRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    job_id: str
    doc_id: str
    job_type: str = "extraction"
    status: str = "pending"
    attempt: int = 1
    error_message: Optional[str] = None
    result_json: Optional[dict] = None
    created_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
