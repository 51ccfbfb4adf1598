"""
Clause classification and title extraction.

Each clause type has an ordered list of indicator patterns. A type scores one
point per pattern that matches anywhere in the clause, however many times.
"""

import re
from typing import Optional

import structlog

from lexlens.models.enums import ClauseType
from lexlens.pipeline.registry import PipelineRegistry
from lexlens.pipeline.sentences import split_sentences
from lexlens.schemas.contracts import ClassificationResult, ClauseEntities

logger = structlog.get_logger(__name__)


# ── Indicator Table ──────────────────────────────────────────
# Insertion order is the tie-break order: first declared wins a tie.

CLAUSE_INDICATORS: dict[ClauseType, list[str]] = {
    ClauseType.CONFIDENTIALITY: [
        r"confidential(ity)?",
        r"non-disclosure",
        r"proprietary information",
        r"trade secret",
        r"sensitive information",
    ],
    ClauseType.TERMINATION: [
        r"terminat(e|ion)",
        r"cancel(lation)?",
        r"end of (the )?agreement",
        r"notice period",
        r"expir(e|ation)",
    ],
    ClauseType.LIABILITY: [
        r"liabilit(y|ies)",
        r"indemnif(y|ication)",
        r"damages",
        r"limitation of liability",
        r"hold harmless",
    ],
    ClauseType.PAYMENT: [
        r"payment",
        r"fee(s)?",
        r"compensation",
        r"invoice",
        r"price",
        r"cost",
    ],
    ClauseType.INTELLECTUAL_PROPERTY: [
        r"intellectual property",
        r"copyright",
        r"patent",
        r"trademark",
        r"ownership",
        r"license",
    ],
    ClauseType.GOVERNING_LAW: [
        r"governing law",
        r"jurisdiction",
        r"applicable law",
        r"venue",
        r"dispute resolution",
    ],
    ClauseType.WARRANTY: [
        r"warrant(y|ies)",
        r"representation",
        r"guarantee",
        r"assurance",
    ],
    ClauseType.FORCE_MAJEURE: [
        r"force majeure",
        r"act of god",
        r"unforeseeable",
        r"beyond.*control",
    ],
    ClauseType.ASSIGNMENT: [
        r"assignment",
        r"transfer",
        r"successor",
        r"assign.*rights",
    ],
    ClauseType.AMENDMENT: [
        r"amendment",
        r"modification",
        r"change.*agreement",
        r"written consent",
    ],
    ClauseType.ENTIRE_AGREEMENT: [
        r"entire agreement",
        r"complete agreement",
        r"supersede",
        r"prior agreement",
    ],
    ClauseType.SEVERABILITY: [
        r"severabilit(y)?",
        r"invalid.*provision",
        r"unenforceable",
    ],
}

DEFAULT_CONFIDENCE = 0.5

# ── Title Patterns ───────────────────────────────────────────
CAPS_HEADING_PATTERN = re.compile(r'^([A-Z][A-Z \t]{3,50})\n')
NUMBERED_HEADING_PATTERN = re.compile(r'^\d+\.?\s+([A-Z][A-Z \t]{3,50})(?=\n|$)')
LABEL_HEADING_PATTERN = re.compile(r'^([A-Z][a-zA-Z \t]{3,50}):')
MAX_TITLE_SENTENCE_CHARS = 100
TITLE_TRUNCATE_CHARS = 50
# Only the opening of a clause can hold its first short sentence
TITLE_SCAN_CHARS = 1000


class ClauseClassifier:
    """Assign a clause type, confidence and entities to clause text."""

    def __init__(self, registry: PipelineRegistry):
        self.registry = registry

    def score(self, text: str) -> dict[ClauseType, int]:
        """Count matching indicator patterns per clause type."""
        return {
            clause_type: sum(1 for p in patterns if p.search(text))
            for clause_type, patterns in self.registry.clause_patterns.items()
        }

    def classify(self, text: str) -> ClassificationResult:
        scores = self.score(text)

        best_type = ClauseType.GENERAL
        best_score = 0
        for clause_type, score in scores.items():
            if score > best_score:
                best_type = clause_type
                best_score = score

        total = sum(scores.values())
        # Share of all indicator hits that went to the winner
        confidence = min(best_score / total, 1.0) if total > 0 else DEFAULT_CONFIDENCE

        return ClassificationResult(
            clause_type=best_type,
            confidence=confidence,
            entities=self.extract_entities(text),
            word_count=count_words(text),
            scores={t.value: s for t, s in scores.items()},
        )

    def extract_entities(self, text: str) -> ClauseEntities:
        return self.registry.entity_extractor.extract(text)


def count_words(text: str) -> int:
    return len(text.split())


def extract_clause_title(text: str) -> Optional[str]:
    """
    Best-effort clause heading.
    CAPS line → numbered CAPS heading → "Label:" → short first sentence → None
    """
    match = CAPS_HEADING_PATTERN.match(text)
    if match:
        return match.group(1).strip()

    match = NUMBERED_HEADING_PATTERN.match(text)
    if match:
        return match.group(1).strip()

    match = LABEL_HEADING_PATTERN.match(text)
    if match:
        return match.group(1).strip()

    sentences = split_sentences(text[:TITLE_SCAN_CHARS])
    if sentences and len(sentences[0]) < MAX_TITLE_SENTENCE_CHARS:
        return sentences[0][:TITLE_TRUNCATE_CHARS] + "..."

    return None
