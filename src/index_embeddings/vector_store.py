"""Vector store backends: PostgreSQL with pgvector, and in-memory."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, ContextManager, Protocol, Sequence

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.orm import Session

from compute_embeddings.compute_embeddings import cosine_similarity
from feedback_db.models import Embedding
from index_embeddings.models import IndexedRecord, SearchMatch

logger = logging.getLogger(__name__)

BACKENDS = ("postgres", "memory")


class VectorStore(Protocol):
    def upsert(self, records: Sequence[IndexedRecord]) -> int: ...

    def query(
        self,
        embedding: Sequence[float],
        threshold: float,
        limit: int,
        content_type: str | None = None,
    ) -> list[SearchMatch]: ...

    def count(self) -> int: ...

    def delete(self, content_ids: Sequence[str], content_type: str | None = None) -> int: ...


class PgVectorStore:
    """Stores embeddings in the ``embeddings`` table."""

    def __init__(self, session_factory: Callable[[], ContextManager[Session]]):
        self.session_factory = session_factory

    def upsert(self, records: Sequence[IndexedRecord]) -> int:
        if not records:
            return 0
        # One row per key; ON CONFLICT DO UPDATE cannot touch the same row twice.
        unique = {record.key: record for record in records}
        now = datetime.now(timezone.utc)
        rows = [
            {
                "content_id": record.content_id,
                "content_type": record.content_type,
                "content_text": record.content_text,
                "embedding": record.embedding,
                "metadata": record.metadata,
                "created_at": now,
                "updated_at": now,
            }
            for record in unique.values()
        ]
        # Table-level insert so "metadata" resolves to the column, not the declarative attribute.
        stmt = insert(Embedding.__table__).values(rows)
        stmt = stmt.on_conflict_do_update(
            index_elements=["content_id", "content_type"],
            set_={
                "content_text": stmt.excluded.content_text,
                "embedding": stmt.excluded.embedding,
                "metadata": stmt.excluded["metadata"],
                "updated_at": now,
            },
        )
        with self.session_factory() as session:
            session.execute(stmt)
            session.commit()
        return len(rows)

    def query(
        self,
        embedding: Sequence[float],
        threshold: float,
        limit: int,
        content_type: str | None = None,
    ) -> list[SearchMatch]:
        distance = Embedding.embedding.cosine_distance(list(embedding))
        similarity = (1 - distance).label("similarity")
        stmt = (
            select(Embedding, similarity)
            .where(distance <= 1 - threshold)
            .order_by(distance)
            .limit(limit)
        )
        if content_type is not None:
            stmt = stmt.where(Embedding.content_type == content_type)
        with self.session_factory() as session:
            rows = session.execute(stmt).all()
        return [
            SearchMatch(
                content_id=row.Embedding.content_id,
                content_type=row.Embedding.content_type,
                content_text=row.Embedding.content_text or "",
                metadata=row.Embedding.metadata_ or {},
                similarity=float(row.similarity),
            )
            for row in rows
        ]

    def count(self) -> int:
        with self.session_factory() as session:
            return session.execute(select(func.count()).select_from(Embedding)).scalar_one()

    def delete(self, content_ids: Sequence[str], content_type: str | None = None) -> int:
        if not content_ids:
            return 0
        stmt = delete(Embedding).where(Embedding.content_id.in_(list(content_ids)))
        if content_type is not None:
            stmt = stmt.where(Embedding.content_type == content_type)
        with self.session_factory() as session:
            result = session.execute(stmt)
            session.commit()
        return result.rowcount


class InMemoryVectorStore:
    """Dict-backed store keyed on (content_id, content_type)."""

    def __init__(self) -> None:
        self.records: dict[tuple[str, str], IndexedRecord] = {}

    def upsert(self, records: Sequence[IndexedRecord]) -> int:
        for record in records:
            self.records[record.key] = record
        return len(records)

    def query(
        self,
        embedding: Sequence[float],
        threshold: float,
        limit: int,
        content_type: str | None = None,
    ) -> list[SearchMatch]:
        matches = []
        for record in self.records.values():
            if content_type is not None and record.content_type != content_type:
                continue
            score = cosine_similarity(embedding, record.embedding)
            if score < threshold:
                continue
            matches.append(
                SearchMatch(
                    content_id=record.content_id,
                    content_type=record.content_type,
                    content_text=record.content_text,
                    metadata=dict(record.metadata),
                    similarity=score,
                )
            )
        matches.sort(key=lambda match: match.similarity, reverse=True)
        return matches[:limit]

    def count(self) -> int:
        return len(self.records)

    def delete(self, content_ids: Sequence[str], content_type: str | None = None) -> int:
        ids = set(content_ids)
        keys = [
            key for key in self.records
            if key[0] in ids and (content_type is None or key[1] == content_type)
        ]
        for key in keys:
            del self.records[key]
        return len(keys)


def build_vector_store(
    backend: str,
    session_factory: Callable[[], ContextManager[Session]] | None = None,
) -> VectorStore:
    """Create the vector store named by ``backend``.

    Raises:
        ValueError: If the backend is unknown or postgres has no session factory.
    """
    if backend == "memory":
        return InMemoryVectorStore()
    if backend == "postgres":
        if session_factory is None:
            raise ValueError("postgres vector store requires a session factory")
        return PgVectorStore(session_factory)
    raise ValueError(f"Unknown vector store backend {backend!r}. Valid backends: {', '.join(BACKENDS)}")
