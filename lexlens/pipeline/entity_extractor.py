"""
Named-entity extraction for clause text using spaCy NER.
Output is accepted as-is: no validation of the recognised spans.
"""

from typing import Iterator

import structlog

from lexlens.schemas.contracts import ClauseEntities

logger = structlog.get_logger(__name__)

# spaCy label -> ClauseEntities field
ENTITY_LABELS = {
    "DATE": "dates",
    "MONEY": "money",
    "ORG": "organizations",
    "PERSON": "people",
}


class SpacyEntityExtractor:
    """Extract dates, money amounts, organisations and people from text."""

    def __init__(self, model_name: str = "en_core_web_sm", max_per_kind: int = 25):
        import spacy

        self.max_per_kind = max_per_kind
        try:
            self.nlp = spacy.load(model_name, disable=["lemmatizer"])
            self.model_name = model_name
        except OSError:
            # Model package not installed: blank pipeline has no NER, entities stay empty
            logger.warning("spacy_model_unavailable", model=model_name)
            self.nlp = spacy.blank("en")
            self.model_name = "blank:en"

    def extract(self, text: str) -> ClauseEntities:
        found: dict[str, list[str]] = {field: [] for field in ENTITY_LABELS.values()}
        if not text.strip():
            return ClauseEntities(**found)

        for chunk in self._chunks(text):
            for ent in self.nlp(chunk).ents:
                field = ENTITY_LABELS.get(ent.label_)
                if field is None or len(found[field]) >= self.max_per_kind:
                    continue
                found[field].append(ent.text.strip())
            if all(len(v) >= self.max_per_kind for v in found.values()):
                break

        return ClauseEntities(**found)

    def _chunks(self, text: str) -> Iterator[str]:
        """Pieces no longer than nlp.max_length, cut on whitespace where possible."""
        limit = self.nlp.max_length
        start = 0
        while start < len(text):
            end = min(start + limit, len(text))
            if end < len(text):
                cut = max(text.rfind(" ", start, end), text.rfind("\n", start, end))
                if cut > start:
                    end = cut
            yield text[start:end]
            start = end
