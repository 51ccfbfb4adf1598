"""
Plain-text extraction from uploaded contracts.
PDF via pdfplumber, DOCX via python-docx, plain text as-is.
Also derives light contract metadata (parties, dates, document type).
"""

import math
import os
import re

import pdfplumber
import structlog
from docx import Document as DocxDocument

from lexlens.engines.base import TextExtractor
from lexlens.errors import ExtractionError
from lexlens.schemas.contracts import ExtractionMetadata, ExtractionResult

logger = structlog.get_logger(__name__)

WORDS_PER_PAGE_ESTIMATE = 500
MAX_PARTIES = 5
MAX_DATES = 3
MAX_PARTY_CHARS = 100

PDF_TYPES = {"application/pdf"}
DOCX_TYPES = {
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}
TEXT_TYPES = {"text/plain"}

# ── Metadata Patterns ────────────────────────────────────────

PARTY_PATTERNS = [
    re.compile(r'between\s+([A-Z][A-Za-z\s&,\.]+?)\s+(?:and|&)', re.IGNORECASE),
    re.compile(r'party[:\s]+([A-Z][A-Za-z\s&,\.]+?)(?:\n|,)', re.IGNORECASE),
    re.compile(r'(?:entered into by|made by)\s+([A-Z][A-Za-z\s&,\.]+?)(?:\n|and)', re.IGNORECASE),
]

DATE_PATTERN = re.compile(
    r'\b(?:dated?|effective|executed)?\s*:?\s*'
    r'(\d{1,2}[-/]\d{1,2}[-/]\d{2,4}|[A-Za-z]+\s+\d{1,2},?\s+\d{4})',
    re.IGNORECASE,
)

# First match wins
DOCUMENT_TYPE_PATTERNS = [
    ("NDA", re.compile(r'non-disclosure|confidentiality agreement', re.IGNORECASE)),
    ("Service Agreement", re.compile(r'service agreement|services agreement', re.IGNORECASE)),
    ("Employment Contract", re.compile(r'employment agreement|employment contract', re.IGNORECASE)),
    ("Lease Agreement", re.compile(r'lease agreement|rental agreement', re.IGNORECASE)),
    ("Purchase Agreement", re.compile(r'purchase agreement|sale agreement', re.IGNORECASE)),
    ("License Agreement", re.compile(r'license agreement|licensing agreement', re.IGNORECASE)),
    ("Partnership Agreement", re.compile(r'partnership agreement', re.IGNORECASE)),
    ("Consulting Agreement", re.compile(r'consulting agreement', re.IGNORECASE)),
]


class DocumentTextExtractor(TextExtractor):
    """Routes a file to the right reader by extension or declared MIME type."""

    @property
    def engine_name(self) -> str:
        return "document"

    def extract(self, path: str, declared_type: str) -> ExtractionResult:
        ext = os.path.splitext(path)[1].lower()
        declared = (declared_type or "").lower()

        logger.info(
            "text_extraction_started",
            engine=self.engine_name,
            path=path,
            file_type=declared_type,
        )

        if ext == ".pdf" or declared in PDF_TYPES:
            text, pages, source_info = self._read_pdf(path)
        elif ext == ".docx" or declared in DOCX_TYPES:
            text, pages, source_info = self._read_docx(path)
        elif ext == ".txt" or declared in TEXT_TYPES:
            text, pages, source_info = self._read_text(path)
        else:
            raise ExtractionError(f"Unsupported file type: {ext or declared_type}")

        metadata = extract_contract_metadata(text)
        metadata.pages = pages
        metadata.source_info = source_info

        logger.info(
            "text_extraction_complete",
            path=path,
            pages=pages,
            characters=metadata.character_count,
        )
        return ExtractionResult(text=text, metadata=metadata)

    def _read_pdf(self, path: str) -> tuple[str, int, dict]:
        try:
            with pdfplumber.open(path) as pdf:
                page_texts = [page.extract_text() or "" for page in pdf.pages]
                info = {k: str(v) for k, v in (pdf.metadata or {}).items()}
        except Exception as e:
            raise ExtractionError(f"Failed to extract text from PDF: {e}") from e
        return "\n".join(page_texts), len(page_texts), info

    def _read_docx(self, path: str) -> tuple[str, int, dict]:
        try:
            doc = DocxDocument(path)
        except Exception as e:
            raise ExtractionError(f"Failed to extract text from DOCX: {e}") from e
        text = "\n".join(p.text for p in doc.paragraphs)
        return text, _estimate_pages(text), {}

    def _read_text(self, path: str) -> tuple[str, int, dict]:
        try:
            with open(path, encoding="utf-8", errors="replace") as fh:
                text = fh.read()
        except OSError as e:
            raise ExtractionError(f"Failed to read text file: {e}") from e
        return text, _estimate_pages(text), {}


def extract_contract_metadata(text: str) -> ExtractionMetadata:
    """Parties, dates, document type and size counts from contract text."""
    parties: list[str] = []
    for pattern in PARTY_PATTERNS:
        for match in pattern.finditer(text):
            party = match.group(1).strip()
            if party and len(party) < MAX_PARTY_CHARS:
                parties.append(party)

    dates = [m.group(1).strip() for m in DATE_PATTERN.finditer(text)]

    document_type = "Unknown"
    for name, pattern in DOCUMENT_TYPE_PATTERNS:
        if pattern.search(text):
            document_type = name
            break

    return ExtractionMetadata(
        word_count=len(text.split()),
        character_count=len(text),
        document_type=document_type,
        parties=_unique(parties)[:MAX_PARTIES],
        dates=_unique(dates)[:MAX_DATES],
    )


def _estimate_pages(text: str) -> int:
    return math.ceil(len(text.split()) / WORDS_PER_PAGE_ESTIMATE)


def _unique(values: list[str]) -> list[str]:
    return list(dict.fromkeys(values))
