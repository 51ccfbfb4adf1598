"""
Abstract base class for text extraction engines.
Every engine must produce ExtractionResult.
"""

from abc import ABC, abstractmethod

from lexlens.schemas.contracts import ExtractionResult


class TextExtractor(ABC):
    """
    Abstract base class for text extractors.

    Every extractor must:
    1. Accept a file path and the declared file type
    2. Return ExtractionResult (plain text + metadata)
    3. Raise ExtractionError for unsupported or unreadable files
    """

    @property
    @abstractmethod
    def engine_name(self) -> str:
        """Unique identifier: 'document', 'stub'"""
        ...

    @abstractmethod
    def extract(self, path: str, declared_type: str) -> ExtractionResult:
        """Extract plain text and metadata from the file at path."""
        ...
