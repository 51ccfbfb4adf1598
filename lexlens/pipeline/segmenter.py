"""
Clause segmentation.
Splits raw contract text into ordered clause candidates.

Strategies, first one producing clauses wins:
NUMBERED_SECTIONS → PARAGRAPHS → SENTENCE_GROUPS → WHOLE_TEXT
"""

import re
from typing import Callable, Optional

import structlog

from lexlens.errors import SegmentationFailure
from lexlens.pipeline.sentences import split_sentences
from lexlens.schemas.contracts import ClauseCandidate

logger = structlog.get_logger(__name__)


# ── Pattern Constants ────────────────────────────────────────

# "1. ", "2.3 ", "4.1. " at the start of a line
NUMBERED_SECTION_PATTERN = re.compile(r'(?:^|\n)\s*(\d+\.(?:\d+\.?)?)\s+')
PARAGRAPH_BREAK_PATTERN = re.compile(r'\n\s*\n')

# Numbered split only counts when it gives more than this many raw fragments
MIN_NUMBERED_FRAGMENTS = 3
MIN_SECTION_CHARS = 20
MIN_PARAGRAPH_CHARS = 50
MIN_SENTENCE_GROUP_CHARS = 50
SENTENCES_PER_CLAUSE = 3

SentenceSplitter = Callable[[str], list[str]]


def segment_clauses(
    text: str,
    sentence_splitter: Optional[SentenceSplitter] = None,
) -> list[ClauseCandidate]:
    """
    Split contract text into clause candidates with dense positions from 0.
    Blank input gives no clauses; any other input gives at least one.
    """
    if not text or not text.strip():
        return []

    splitter = sentence_splitter or split_sentences

    try:
        strategy = "numbered_sections"
        pieces = _split_numbered_sections(text)
        if not pieces:
            strategy = "paragraphs"
            pieces = _split_paragraphs(text)
        if not pieces:
            strategy = "sentence_groups"
            pieces = _group_sentences(text, splitter)
        if not pieces:
            strategy = "whole_text"
            pieces = [(None, text.strip())]
    except Exception as e:
        raise SegmentationFailure(f"{type(e).__name__}: {e}") from e

    clauses = [
        ClauseCandidate(position=i, section_number=label, text=body)
        for i, (label, body) in enumerate(pieces)
    ]

    logger.info("clauses_segmented", strategy=strategy, clause_count=len(clauses))
    return clauses


def _split_numbered_sections(text: str) -> list[tuple[Optional[str], str]]:
    """One clause per numbered section. Text before the first number is dropped."""
    fragments = NUMBERED_SECTION_PATTERN.split(text)
    if len(fragments) <= MIN_NUMBERED_FRAGMENTS:
        return []

    sections = []
    # fragments = [preamble, label, body, label, body, ...]
    for i in range(1, len(fragments) - 1, 2):
        label = fragments[i]
        body = fragments[i + 1].strip()
        if len(body) >= MIN_SECTION_CHARS:
            sections.append((label, body))
    return sections


def _split_paragraphs(text: str) -> list[tuple[Optional[str], str]]:
    paragraphs = (p.strip() for p in PARAGRAPH_BREAK_PATTERN.split(text))
    return [(None, p) for p in paragraphs if len(p) >= MIN_PARAGRAPH_CHARS]


def _group_sentences(
    text: str,
    splitter: SentenceSplitter,
) -> list[tuple[Optional[str], str]]:
    sentences = splitter(text)
    groups = []
    for i in range(0, len(sentences), SENTENCES_PER_CLAUSE):
        chunk = " ".join(sentences[i:i + SENTENCES_PER_CLAUSE]).strip()
        if len(chunk) >= MIN_SENTENCE_GROUP_CHARS:
            groups.append((None, chunk))
    return groups
