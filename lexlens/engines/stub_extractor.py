"""
Stub text extractor for testing pipeline plumbing.
Returns preset text without touching the filesystem.
"""

from typing import Optional

from lexlens.engines.base import TextExtractor
from lexlens.engines.text_extractor import extract_contract_metadata
from lexlens.errors import ExtractionError
from lexlens.schemas.contracts import ExtractionResult


class StubTextExtractor(TextExtractor):
    """Fake adapter that returns the text it was built with."""

    def __init__(self, text: str = "", pages: int = 1, error: Optional[str] = None):
        self.text = text
        self.pages = pages
        self.error = error
        self.calls: list[tuple[str, str]] = []

    @property
    def engine_name(self) -> str:
        return "stub"

    def extract(self, path: str, declared_type: str) -> ExtractionResult:
        self.calls.append((path, declared_type))
        if self.error is not None:
            raise ExtractionError(self.error)

        metadata = extract_contract_metadata(self.text)
        metadata.pages = self.pages
        return ExtractionResult(text=self.text, metadata=metadata)
