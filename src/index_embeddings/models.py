"""Data models for index_embeddings pipeline stage."""

from dataclasses import dataclass, field
from typing import Any

DEFAULT_CONTENT_TYPE = "post"


@dataclass
class IndexedRecord:
    """Row in the vector index, unique on (content_id, content_type)."""
    content_id: str
    content_type: str
    content_text: str
    embedding: list[float]
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> tuple[str, str]:
        return (self.content_id, self.content_type)


@dataclass
class IndexResult:
    indexed: int = 0
    failed: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)

    def merge(self, other: "IndexResult") -> None:
        self.indexed += other.indexed
        self.failed += other.failed
        self.skipped += other.skipped
        self.errors.extend(other.errors)


@dataclass
class SearchMatch:
    content_id: str
    content_type: str
    content_text: str
    metadata: dict[str, Any]
    similarity: float
