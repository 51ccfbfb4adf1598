"""
Process-wide pipeline registry.

Holds the compiled indicator tables and the lazily loaded NLP/embedding
models. Built once when a worker process starts and passed by reference to
the orchestrator and engines.
"""

import re
import threading
from typing import Any, Callable, Optional

import structlog

from lexlens.config import Settings, settings as default_settings
from lexlens.models.enums import ClauseType, RiskLevel

logger = structlog.get_logger(__name__)

ModelFactory = Callable[[str], Any]


def _load_sentence_transformer(model_name: str) -> Any:
    from sentence_transformers import SentenceTransformer
    return SentenceTransformer(model_name)


def _compile(patterns: list[str]) -> list[re.Pattern]:
    return [re.compile(p, re.IGNORECASE) for p in patterns]


class PipelineRegistry:
    """Shared configuration and lazily initialised models for one worker process."""

    def __init__(
        self,
        config: Optional[Settings] = None,
        clause_indicators: Optional[dict[ClauseType, list[str]]] = None,
        risk_indicators: Optional[dict[str, list[str]]] = None,
        embedding_model_factory: Optional[ModelFactory] = None,
        entity_extractor: Any = None,
    ):
        from lexlens.pipeline.clause_classifier import CLAUSE_INDICATORS
        from lexlens.pipeline.risk_scorer import RISK_INDICATORS

        self.config = config or default_settings
        indicators = clause_indicators if clause_indicators is not None else CLAUSE_INDICATORS
        risk = risk_indicators if risk_indicators is not None else RISK_INDICATORS

        # Dict order is the tie-break order
        self.clause_patterns: dict[ClauseType, list[re.Pattern]] = {
            ClauseType(t): _compile(p) for t, p in indicators.items()
        }
        self.risk_patterns: dict[str, list[re.Pattern]] = {
            tier: _compile(risk.get(tier, []))
            for tier in (RiskLevel.HIGH.value, RiskLevel.MEDIUM.value, RiskLevel.LOW.value)
        }

        self._embedding_model_factory = embedding_model_factory or _load_sentence_transformer
        self._embedding_model: Any = None
        self._entity_extractor = entity_extractor
        self._lock = threading.Lock()

    @property
    def embedding_model(self) -> Any:
        """Load the sentence-embedding model on first use."""
        if self._embedding_model is None:
            with self._lock:
                if self._embedding_model is None:
                    name = self.config.EMBEDDING_MODEL_NAME
                    logger.info("embedding_model_loading", model=name)
                    self._embedding_model = self._embedding_model_factory(name)
                    logger.info("embedding_model_loaded", model=name)
        return self._embedding_model

    @property
    def entity_extractor(self) -> Any:
        if self._entity_extractor is None:
            with self._lock:
                if self._entity_extractor is None:
                    from lexlens.pipeline.entity_extractor import SpacyEntityExtractor
                    self._entity_extractor = SpacyEntityExtractor(
                        model_name=self.config.SPACY_MODEL,
                        max_per_kind=self.config.MAX_ENTITIES_PER_KIND,
                    )
        return self._entity_extractor

    def warm_up(self) -> None:
        """Load models eagerly so forked job processes inherit them."""
        _ = self.embedding_model
        _ = self.entity_extractor
