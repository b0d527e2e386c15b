"""Tests for pipeline.orchestrator module."""

import threading
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import httpx
import openai

from clean_posts.models import CleaningMetadata, Entities, ProcessedItem, TextFeatures
from common.retry import RetryPolicy
from compute_embeddings.compute_embeddings import FATAL_ERRORS, EmbeddingGenerator
from index_embeddings.index_embeddings import VectorIndexWriter
from index_embeddings.models import IndexResult
from index_embeddings.vector_store import InMemoryVectorStore
from pipeline.config import IndexConfig, PipelineConfig
from pipeline.orchestrator import PipelineOrchestrator, build_orchestrator
from scrape_posts.fetch_posts import SourceUnavailableError
from scrape_posts.models import RawPost, SearchQuery


def _orchestrator(**overrides) -> PipelineOrchestrator:
    fetcher = MagicMock()
    fetcher.fetch.return_value = ["raw1", "raw2"]
    cleaner = MagicMock()
    cleaner.clean_batch.return_value = [MagicMock(id="p1"), MagicMock(id="p2")]
    embedder = MagicMock()
    embedder.embed.return_value = [MagicMock(has_embedding=True), MagicMock(has_embedding=False)]
    index_writer = MagicMock()
    index_writer.index.return_value = IndexResult(indexed=1, skipped=1)

    collaborators = dict(fetcher=fetcher, cleaner=cleaner, embedder=embedder, index_writer=index_writer)
    collaborators.update(overrides)
    return PipelineOrchestrator(**collaborators)


def _processed(post_id: str) -> ProcessedItem:
    created = datetime(2024, 6, 1, tzinfo=timezone.utc)
    post = RawPost(
        id=post_id, title="strap battery", body="", author="a", score=1, comment_count=0,
        created_at=created, subreddit="whoop", search_term="WHOOP MG",
    )
    return ProcessedItem(
        post=post, original_text="strap battery", cleaned_text="strap battery", text_length=13,
        word_count=2, keywords=[], entities=Entities(), features=TextFeatures(),
        metadata=CleaningMetadata(), processed_at=created,
    )


class TestRunPipeline:
    def test_runs_stages_in_order(self) -> None:
        orchestrator = _orchestrator()
        calls = MagicMock()
        calls.attach_mock(orchestrator.fetcher.fetch, "fetch")
        calls.attach_mock(orchestrator.cleaner.clean_batch, "clean")
        calls.attach_mock(orchestrator.embedder.embed, "embed")
        calls.attach_mock(orchestrator.index_writer.index, "index")

        result = orchestrator.run_pipeline()

        assert result.success is True
        assert [call[0] for call in calls.mock_calls] == ["fetch", "clean", "embed", "index"]
        orchestrator.cleaner.clean_batch.assert_called_once_with(["raw1", "raw2"])

    def test_records_counts(self) -> None:
        orchestrator = _orchestrator()

        result = orchestrator.run_pipeline()

        assert (result.scraped, result.processed, result.embedded, result.indexed) == (2, 2, 1, 1)
        stats = orchestrator.stats
        assert stats.total_runs == 1
        assert stats.successful_runs == 1
        assert stats.total_embedded == 1
        assert stats.total_indexed == 1
        assert stats.last_success is not None
        assert stats.last_error is None

    def test_uses_given_query(self) -> None:
        orchestrator = _orchestrator()
        query = SearchQuery(subreddit="garmin", search_terms=["fenix"])

        orchestrator.run_pipeline(query)

        orchestrator.fetcher.fetch.assert_called_once_with(query)

    @patch("pipeline.orchestrator.analyze_batch")
    def test_saves_posts_with_sentiment(self, mock_analyze) -> None:
        post_store = MagicMock()
        post_store.save.return_value = 2
        mock_analyze.return_value = {"p1": "s1"}
        orchestrator = _orchestrator(post_store=post_store)

        result = orchestrator.run_pipeline()

        processed = orchestrator.cleaner.clean_batch.return_value
        mock_analyze.assert_called_once_with(processed)
        post_store.save.assert_called_once_with(processed, {"p1": "s1"})
        assert result.saved == 2

    def test_stage_failure_marks_run_failed(self) -> None:
        orchestrator = _orchestrator()
        orchestrator.fetcher.fetch.side_effect = SourceUnavailableError("reddit down")

        result = orchestrator.run_pipeline()

        assert result.success is False
        assert result.error == "reddit down"
        assert orchestrator.stats.failed_runs == 1
        assert orchestrator.stats.last_error == "reddit down"
        assert orchestrator.is_running is False
        orchestrator.embedder.embed.assert_not_called()

    def test_unreachable_embedding_service_fails_run(self) -> None:
        client = MagicMock()
        client.embeddings.create.side_effect = openai.APIConnectionError(
            request=httpx.Request("POST", "https://api.openai.com/v1/embeddings")
        )
        sleep = MagicMock()
        embedder = EmbeddingGenerator(
            client=client,
            retry=RetryPolicy(max_attempts=3, base_delay=2.0, fatal=FATAL_ERRORS, sleep=sleep),
            sleep=sleep,
        )
        orchestrator = _orchestrator(embedder=embedder)
        orchestrator.cleaner.clean_batch.return_value = [_processed(str(i)) for i in range(3)]

        result = orchestrator.run_pipeline()

        assert result.success is False
        assert "unreachable" in result.error
        assert orchestrator.stats.failed_runs == 1
        orchestrator.index_writer.index.assert_not_called()

    def test_recovers_after_failure(self) -> None:
        orchestrator = _orchestrator()
        orchestrator.fetcher.fetch.side_effect = [RuntimeError("boom"), ["raw"]]

        orchestrator.run_pipeline()
        result = orchestrator.run_pipeline()

        assert result.success is True
        assert orchestrator.stats.total_runs == 2
        assert orchestrator.stats.last_error is None

    def test_concurrent_run_is_skipped(self) -> None:
        started = threading.Event()
        release = threading.Event()

        def slow_fetch(query):
            started.set()
            release.wait(timeout=5)
            return []

        orchestrator = _orchestrator()
        orchestrator.fetcher.fetch.side_effect = slow_fetch
        results = []
        worker = threading.Thread(target=lambda: results.append(orchestrator.run_pipeline()))
        worker.start()
        assert started.wait(timeout=5)

        second = orchestrator.run_pipeline()
        assert orchestrator.is_running is True
        release.set()
        worker.join(timeout=5)

        assert second.skipped is True
        assert second.success is False
        assert results[0].success is True
        assert orchestrator.stats.total_runs == 1
        assert orchestrator.fetcher.fetch.call_count == 1


class TestQueries:
    def test_search_similar_uses_defaults(self) -> None:
        orchestrator = _orchestrator()

        orchestrator.search_similar("battery drain")

        orchestrator.index_writer.search_by_text.assert_called_once_with(
            "battery drain", limit=10, threshold=0.7, content_type="post"
        )

    def test_search_similar_propagates_errors(self) -> None:
        orchestrator = _orchestrator()
        orchestrator.index_writer.search_by_text.side_effect = ConnectionError("db down")

        try:
            orchestrator.search_similar("battery")
        except ConnectionError as e:
            assert "db down" in str(e)
        else:
            raise AssertionError("expected ConnectionError")

    @patch("pipeline.orchestrator.cluster_product_themes")
    def test_cluster_themes_uses_session(self, mock_cluster) -> None:
        session = MagicMock()
        factory = MagicMock()
        factory.return_value.__enter__.return_value = session
        orchestrator = _orchestrator(session_factory=factory)

        orchestrator.cluster_themes(timeframe="7d", min_cluster_size=3)

        mock_cluster.assert_called_once_with(session, "whoop", None, "7d", 3)

    @patch("pipeline.orchestrator.generate_product_insights")
    def test_generate_insights_uses_session(self, mock_generate) -> None:
        session = MagicMock()
        factory = MagicMock()
        factory.return_value.__enter__.return_value = session
        orchestrator = _orchestrator(session_factory=factory)

        orchestrator.generate_insights("whoop", "reddit", "24h")

        mock_generate.assert_called_once_with(session, "whoop", "reddit", "24h")


class TestStatsAndScheduling:
    def test_get_stats(self) -> None:
        orchestrator = _orchestrator()
        orchestrator.run_pipeline()

        stats = orchestrator.get_stats()

        assert stats["total_runs"] == 1
        assert stats["is_running"] is False
        assert stats["scheduled_jobs"] == 0

    def test_scheduled_job_lifecycle(self) -> None:
        orchestrator = _orchestrator()

        job = orchestrator.run_scheduled("0 0 1 1 *")
        assert orchestrator.get_stats()["scheduled_jobs"] == 1

        orchestrator.stop_scheduled_jobs()
        job.join(timeout=5)

        assert job.is_active is False
        assert orchestrator.get_stats()["scheduled_jobs"] == 0
        orchestrator.fetcher.fetch.assert_not_called()


class TestBuildOrchestrator:
    def test_wires_memory_backend(self) -> None:
        config = PipelineConfig(save_posts=False, index=IndexConfig(backend="memory"))

        orchestrator = build_orchestrator(config, session_factory=MagicMock(), openai_client=MagicMock())

        assert isinstance(orchestrator.index_writer, VectorIndexWriter)
        assert isinstance(orchestrator.index_writer.store, InMemoryVectorStore)
        assert orchestrator.index_writer.embedder is orchestrator.embedder
        assert orchestrator.post_store is None
        assert orchestrator.default_query.subreddit == "whoop"

    def test_saves_posts_when_enabled(self) -> None:
        orchestrator = build_orchestrator(
            PipelineConfig(index=IndexConfig(backend="memory")),
            session_factory=MagicMock(),
            openai_client=MagicMock(),
        )
        assert orchestrator.post_store is not None
        assert orchestrator.post_store.product_id == "whoop"
