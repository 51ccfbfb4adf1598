"""
Shared test fixtures.
"""

import hashlib

import numpy as np
import pytest

from lexlens.config import Settings
from lexlens.pipeline.registry import PipelineRegistry
from lexlens.schemas.contracts import ClauseEntities
from lexlens.storage.memory_store import MemoryClauseStore


TWO_SECTION_CONTRACT = (
    "1. CONFIDENTIALITY\n"
    "The parties shall keep all proprietary information confidential and shall "
    "not disclose trade secrets.\n\n"
    "2. TERMINATION\n"
    "Either party may terminate this agreement at any time without cause."
)


class FakeEmbeddingModel:
    """Deterministic stand-in for SentenceTransformer.encode()."""

    def __init__(self, dimensions: int = 384, fail_marker: str = "EMBEDDING-FAILS"):
        self.dimensions = dimensions
        self.fail_marker = fail_marker
        self.calls = 0

    def encode(self, texts, **kwargs):
        self.calls += 1
        rows = []
        for text in texts:
            if self.fail_marker in text:
                raise RuntimeError("model exploded")
            seed = int.from_bytes(hashlib.sha256(text.encode()).digest()[:8], "big")
            vec = np.random.default_rng(seed).normal(size=self.dimensions)
            rows.append(vec / np.linalg.norm(vec))
        return np.vstack(rows)


class FakeEntityExtractor:
    """Returns capitalised words as organisations; nothing else."""

    def extract(self, text: str) -> ClauseEntities:
        orgs = [w for w in text.split() if w.isupper() and len(w) > 3]
        return ClauseEntities(organizations=orgs)


@pytest.fixture
def test_settings():
    return Settings(_env_file=None)


@pytest.fixture
def fake_model():
    return FakeEmbeddingModel()


@pytest.fixture
def registry(test_settings, fake_model):
    return PipelineRegistry(
        config=test_settings,
        embedding_model_factory=lambda name: fake_model,
        entity_extractor=FakeEntityExtractor(),
    )


@pytest.fixture
def store():
    return MemoryClauseStore()


@pytest.fixture
def two_section_contract():
    return TWO_SECTION_CONTRACT


@pytest.fixture
def ten_clause_contract():
    """Ten numbered sections, each comfortably above the noise threshold."""
    sections = [
        f"{i}. SECTION {i}\nThis section sets out obligation number {i} of the parties in detail."
        for i in range(1, 11)
    ]
    return "\n\n".join(sections)
