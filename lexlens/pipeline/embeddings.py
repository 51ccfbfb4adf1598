"""
Sentence embeddings for clause similarity search.

Model: all-MiniLM-L6-v2 via sentence-transformers (384 dimensions, normalised).
Vectors are stored as bracketed comma-separated floats: "[0.1,-0.2,...]".
"""

import re
from typing import Optional, Sequence

import numpy as np
import structlog

from lexlens.errors import DimensionMismatchError, EmbeddingError
from lexlens.pipeline.registry import PipelineRegistry
from lexlens.schemas.contracts import SimilarityMatch

logger = structlog.get_logger(__name__)

VECTOR_BRACKETS = re.compile(r'^\s*\[|\]\s*$')


class EmbeddingGenerator:
    """Generate fixed-dimension embeddings with the registry's shared model."""

    def __init__(self, registry: PipelineRegistry):
        self.registry = registry
        self.dimensions = registry.config.EMBEDDING_DIMENSIONS
        self.max_chars = registry.config.EMBEDDING_MAX_CHARS
        self.batch_size = registry.config.EMBEDDING_BATCH_SIZE

    def embed(self, text: str) -> list[float]:
        """Embed one text, truncated to max_chars."""
        vectors = self._encode([text[:self.max_chars]])
        return vectors[0]

    def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        """Embed many texts, in sequential fixed-size batches."""
        embeddings: list[list[float]] = []
        total_batches = (len(texts) + self.batch_size - 1) // self.batch_size

        for start in range(0, len(texts), self.batch_size):
            batch = [t[:self.max_chars] for t in texts[start:start + self.batch_size]]
            embeddings.extend(self._encode(batch))
            logger.debug(
                "embedding_batch_done",
                batch=start // self.batch_size + 1,
                total_batches=total_batches,
            )

        return embeddings

    def find_similar(
        self,
        query_text: str,
        candidate_texts: Sequence[str],
        top_k: int = 5,
    ) -> list[SimilarityMatch]:
        """Rank candidate texts by similarity to the query text."""
        query = self.embed(query_text)
        candidates = self.embed_batch(candidate_texts)
        matches = top_k_similar(query, candidates, top_k)
        for match in matches:
            match.text = candidate_texts[match.index]
        return matches

    def _encode(self, texts: list[str]) -> list[list[float]]:
        try:
            raw = self.registry.embedding_model.encode(
                texts,
                normalize_embeddings=True,
                convert_to_numpy=True,
                show_progress_bar=False,
            )
        except Exception as e:
            raise EmbeddingError(f"{type(e).__name__}: {e}") from e

        matrix = np.asarray(raw, dtype=np.float64)
        if matrix.ndim != 2 or matrix.shape != (len(texts), self.dimensions):
            raise EmbeddingError(
                f"Expected {len(texts)}x{self.dimensions} embeddings, got shape {matrix.shape}"
            )
        return [[float(v) for v in row] for row in matrix]


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity; 0.0 when either vector has zero magnitude."""
    if len(a) != len(b):
        raise DimensionMismatchError(len(a), len(b))

    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    norm_a = float(np.linalg.norm(va))
    norm_b = float(np.linalg.norm(vb))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0

    return float(np.dot(va, vb) / (norm_a * norm_b))


def top_k_similar(
    query: Sequence[float],
    candidates: Sequence[Sequence[float]],
    top_k: int = 5,
) -> list[SimilarityMatch]:
    """Top-k candidates by descending similarity; ties keep candidate order."""
    if top_k <= 0:
        return []
    scored = [
        SimilarityMatch(index=i, similarity=cosine_similarity(query, vec))
        for i, vec in enumerate(candidates)
    ]
    # sorted() is stable, so equal scores stay in candidate order
    scored = sorted(scored, key=lambda m: -m.similarity)
    return scored[:top_k]


def format_embedding(vector: Sequence[float]) -> str:
    """Serialise a vector for storage. repr() keeps every float exact."""
    return "[" + ",".join(repr(float(v)) for v in vector) + "]"


def parse_embedding(value: Optional[str]) -> list[float]:
    """Parse a stored vector string back into floats."""
    if value is None:
        return []
    body = VECTOR_BRACKETS.sub("", value).strip()
    if not body:
        return []
    return [float(part) for part in body.split(",")]
