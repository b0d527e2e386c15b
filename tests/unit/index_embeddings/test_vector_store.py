"""Tests for index_embeddings.vector_store module."""

from unittest.mock import MagicMock

import pytest

from sqlalchemy.dialects import postgresql

from index_embeddings.models import IndexedRecord
from index_embeddings.vector_store import InMemoryVectorStore, PgVectorStore, build_vector_store


def _record(content_id: str, vector: list[float], content_type: str = "post") -> IndexedRecord:
    return IndexedRecord(
        content_id=content_id,
        content_type=content_type,
        content_text=f"text {content_id}",
        embedding=vector,
        metadata={"title": content_id},
    )


class TestInMemoryVectorStore:
    def test_upsert_overwrites_same_key(self) -> None:
        store = InMemoryVectorStore()

        store.upsert([_record("p1", [1.0, 0.0])])
        store.upsert([_record("p1", [0.0, 1.0])])

        assert store.count() == 1
        assert store.records[("p1", "post")].embedding == [0.0, 1.0]

    def test_same_id_different_type_kept_apart(self) -> None:
        store = InMemoryVectorStore()
        store.upsert([_record("p1", [1.0, 0.0]), _record("p1", [1.0, 0.0], content_type="comment")])
        assert store.count() == 2

    def test_query_filters_and_ranks(self) -> None:
        store = InMemoryVectorStore()
        store.upsert([
            _record("close", [0.9, 0.1]),
            _record("exact", [1.0, 0.0]),
            _record("far", [0.0, 1.0]),
            _record("other-type", [1.0, 0.0], content_type="comment"),
        ])

        matches = store.query([1.0, 0.0], threshold=0.7, limit=10, content_type="post")

        assert [match.content_id for match in matches] == ["exact", "close"]
        assert matches[0].similarity == pytest.approx(1.0)

    def test_query_without_type_searches_all_types(self) -> None:
        store = InMemoryVectorStore()
        store.upsert([_record("a", [1.0, 0.0]), _record("b", [1.0, 0.0], content_type="comment")])

        matches = store.query([1.0, 0.0], threshold=0.7, limit=10, content_type=None)

        assert sorted(match.content_id for match in matches) == ["a", "b"]

    def test_query_respects_limit(self) -> None:
        store = InMemoryVectorStore()
        store.upsert([_record(f"p{i}", [1.0, 0.0]) for i in range(5)])
        assert len(store.query([1.0, 0.0], threshold=0.5, limit=2, content_type="post")) == 2

    def test_delete(self) -> None:
        store = InMemoryVectorStore()
        store.upsert([_record("p1", [1.0]), _record("p2", [1.0])])

        assert store.delete(["p1", "missing"]) == 1
        assert store.count() == 1


class TestPgVectorStore:
    def _factory(self) -> tuple[MagicMock, MagicMock]:
        session = MagicMock()
        factory = MagicMock()
        factory.return_value.__enter__.return_value = session
        return factory, session

    def test_upsert_executes_single_statement(self) -> None:
        factory, session = self._factory()
        store = PgVectorStore(factory)

        count = store.upsert([_record("p1", [0.1, 0.2]), _record("p2", [0.3, 0.4])])

        assert count == 2
        session.execute.assert_called_once()
        session.commit.assert_called_once()
        sql = str(session.execute.call_args.args[0])
        assert "ON CONFLICT (content_id, content_type) DO UPDATE" in sql

    def test_upsert_collapses_duplicate_keys(self) -> None:
        factory, session = self._factory()
        store = PgVectorStore(factory)

        count = store.upsert([
            _record("abc", [0.1, 0.2]),
            _record("abc", [0.3, 0.4]),
            _record("abc", [0.5, 0.6], content_type="comment"),
        ])

        assert count == 2
        params = session.execute.call_args.args[0].compile(dialect=postgresql.dialect()).params
        keys = [
            (params[f"content_id_m{i}"], params[f"content_type_m{i}"]) for i in range(count)
        ]
        assert keys == [("abc", "post"), ("abc", "comment")]
        assert params["embedding_m0"] == [0.3, 0.4]
        assert "content_id_m2" not in params

    def test_upsert_empty_is_noop(self) -> None:
        factory, session = self._factory()
        assert PgVectorStore(factory).upsert([]) == 0
        session.execute.assert_not_called()

    def test_query_type_filter_is_optional(self) -> None:
        factory, session = self._factory()
        session.execute.return_value.all.return_value = []
        store = PgVectorStore(factory)

        store.query([1.0, 0.0], threshold=0.7, limit=5, content_type=None)
        unfiltered = str(session.execute.call_args.args[0])
        store.query([1.0, 0.0], threshold=0.7, limit=5, content_type="post")
        filtered = str(session.execute.call_args.args[0])

        assert "embeddings.content_type =" not in unfiltered
        assert "embeddings.content_type =" in filtered


class TestBuildVectorStore:
    def test_memory_backend(self) -> None:
        assert isinstance(build_vector_store("memory"), InMemoryVectorStore)

    def test_postgres_backend(self) -> None:
        assert isinstance(build_vector_store("postgres", MagicMock()), PgVectorStore)

    def test_postgres_requires_session_factory(self) -> None:
        with pytest.raises(ValueError):
            build_vector_store("postgres")

    def test_unknown_backend(self) -> None:
        with pytest.raises(ValueError, match="Unknown vector store backend"):
            build_vector_store("pinecone")
