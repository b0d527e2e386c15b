"""Write embedded posts to a vector store and query it."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Sequence

from common.serialization import serialize_dataclass
from common.utils import chunked
from compute_embeddings.models import EmbeddedItem
from index_embeddings.models import DEFAULT_CONTENT_TYPE, IndexedRecord, IndexResult, SearchMatch
from index_embeddings.vector_store import VectorStore

logger = logging.getLogger(__name__)

BATCH_SIZE = 100
BATCH_DELAY_SECONDS = 0.5
DEFAULT_THRESHOLD = 0.7
DEFAULT_LIMIT = 10


class IndexingError(RuntimeError):
    """Raised when no batch could be written to the vector store."""


def build_metadata(embedded: EmbeddedItem) -> dict[str, Any]:
    item = embedded.item
    post = item.post
    return {
        "title": post.title or "",
        "author": post.author or "",
        "platform": post.platform or "unknown",
        "subreddit": post.subreddit,
        "url": post.url,
        "keywords": item.keyword_words,
        "search_term": post.search_term or "",
        "embedding_model": embedded.embedding_model,
        "embedding_tokens": embedded.total_tokens,
        "embedding_cost": embedded.cost,
        "features": serialize_dataclass(item.features),
        "entities": serialize_dataclass(item.entities),
        "processed_at": item.processed_at.isoformat(),
        "embedded_at": embedded.embedded_at.isoformat(),
    }


def to_record(embedded: EmbeddedItem, content_type: str = DEFAULT_CONTENT_TYPE) -> IndexedRecord:
    return IndexedRecord(
        content_id=embedded.id,
        content_type=content_type,
        content_text=embedded.item.cleaned_text or "",
        embedding=list(embedded.embedding or []),
        metadata=build_metadata(embedded),
    )


class VectorIndexWriter:
    """Batches embedded items into a vector store."""

    def __init__(
        self,
        store: VectorStore,
        embedder: Any = None,
        batch_size: int = BATCH_SIZE,
        batch_delay: float = BATCH_DELAY_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.store = store
        self.embedder = embedder
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self.sleep = sleep

    def index_batch(self, batch: Sequence[EmbeddedItem], content_type: str = DEFAULT_CONTENT_TYPE) -> IndexResult:
        result = IndexResult()
        records = [to_record(item, content_type) for item in batch if item.has_embedding]
        result.skipped = len(batch) - len(records)
        if not records:
            logger.warning("No embeddings in batch to index")
            return result

        try:
            self.store.upsert(records)
        except Exception as e:
            logger.error("Failed to index batch of %d records: %s", len(records), e)
            result.failed = len(records)
            result.errors.append(str(e))
            return result

        result.indexed = len(records)
        return result

    def index(self, items: list[EmbeddedItem], content_type: str = DEFAULT_CONTENT_TYPE) -> IndexResult:
        """Upsert every item that has a vector.

        Raises:
            IndexingError: If every batch that had records to write failed.
        """
        total = IndexResult()
        if not items:
            logger.warning("No items to index")
            return total

        total_batches = (len(items) + self.batch_size - 1) // self.batch_size
        logger.info("Indexing %d items in %d batches", len(items), total_batches)

        attempted = 0
        failed_batches = 0
        for number, batch in enumerate(chunked(items, self.batch_size), start=1):
            if number > 1:
                self.sleep(self.batch_delay)
            result = self.index_batch(batch, content_type)
            if result.indexed or result.failed:
                attempted += 1
            if result.failed:
                failed_batches += 1
            total.merge(result)

        if attempted and failed_batches == attempted:
            raise IndexingError(f"All {attempted} batches failed: {total.errors[-1]}")

        logger.info(
            "Indexed %d items (%d failed, %d skipped)", total.indexed, total.failed, total.skipped
        )
        return total

    def similarity_search(
        self,
        embedding: Sequence[float],
        limit: int = DEFAULT_LIMIT,
        threshold: float = DEFAULT_THRESHOLD,
        content_type: str | None = DEFAULT_CONTENT_TYPE,
    ) -> list[SearchMatch]:
        """Matches at or above ``threshold``, most similar first."""
        matches = self.store.query(embedding, threshold, limit, content_type)
        matches = [match for match in matches if match.similarity >= threshold]
        matches.sort(key=lambda match: match.similarity, reverse=True)
        logger.info("Found %d similar items", len(matches))
        return matches[:limit]

    def search_by_text(
        self,
        text: str,
        limit: int = DEFAULT_LIMIT,
        threshold: float = DEFAULT_THRESHOLD,
        content_type: str | None = DEFAULT_CONTENT_TYPE,
    ) -> list[SearchMatch]:
        if self.embedder is None:
            raise RuntimeError("search_by_text requires an embedder")
        embedding = self.embedder.embed_query(text)
        return self.similarity_search(embedding, limit, threshold, content_type)

    def count(self) -> int:
        return self.store.count()

    def delete(self, content_ids: Sequence[str], content_type: str | None = None) -> int:
        deleted = self.store.delete(content_ids, content_type)
        logger.info("Deleted %d embeddings", deleted)
        return deleted
