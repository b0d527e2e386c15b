"""Data models for compute_embeddings pipeline stage."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from clean_posts.models import ProcessedItem


@dataclass
class EmbeddedItem:
    """Processed post with its embedding vector.

    ``embedding`` is None when the item could not be embedded; ``error``
    then says why.
    """
    item: ProcessedItem
    embedding: Optional[list[float]]
    embedding_model: str
    total_tokens: int
    prompt_tokens: int
    cost: float
    embedded_at: datetime
    text_length: int
    truncated: bool
    attempts: int = 0
    error: Optional[str] = None

    @property
    def id(self) -> str:
        return self.item.id

    @property
    def has_embedding(self) -> bool:
        return bool(self.embedding)


@dataclass
class EmbeddingStats:
    total_items: int = 0
    successful: int = 0
    failed: int = 0
    total_tokens: int = 0
    total_cost: float = 0.0
    average_tokens: float = 0.0
    average_cost: float = 0.0
