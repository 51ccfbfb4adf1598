"""
Sentence tokenization with spaCy's rule-based sentencizer.
No statistical model is needed, so output is deterministic.
"""

from functools import lru_cache

import spacy
from spacy.language import Language


@lru_cache(maxsize=1)
def _sentencizer() -> Language:
    nlp = spacy.blank("en")
    nlp.add_pipe("sentencizer")
    nlp.max_length = 10_000_000
    return nlp


def split_sentences(text: str) -> list[str]:
    """Split text into stripped, non-empty sentences."""
    if not text or not text.strip():
        return []
    doc = _sentencizer()(text)
    return [s.text.strip() for s in doc.sents if s.text.strip()]
