"""Run the scrape, clean, persist, embed and index stages as one pipeline."""

from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Callable, ContextManager, Iterator

from sqlalchemy.orm import Session

from analyze_sentiment.sentiment import analyze_batch
from clean_posts.clean import PostCleaner
from common.retry import RetryPolicy
from compute_embeddings.compute_embeddings import FATAL_ERRORS, EmbeddingGenerator, build_client
from compute_embeddings.models import EmbeddedItem
from feedback_db.connection import get_session
from feedback_db.load import PostStore
from generate_insights.cluster_themes import DEFAULT_MIN_CLUSTER_SIZE
from generate_insights.generate_insights import cluster_product_themes
from generate_insights.generate_insights import generate_insights as generate_product_insights
from generate_insights.models import Insight, Theme
from index_embeddings.index_embeddings import VectorIndexWriter
from index_embeddings.models import SearchMatch
from index_embeddings.vector_store import build_vector_store
from pipeline.config import PipelineConfig
from pipeline.schedule import ScheduledJob
from scrape_posts.fetch_posts import RedditFetcher
from scrape_posts.models import SearchQuery

logger = logging.getLogger(__name__)


@dataclass
class PipelineStats:
    total_runs: int = 0
    successful_runs: int = 0
    failed_runs: int = 0
    last_run: datetime | None = None
    last_success: datetime | None = None
    last_error: str | None = None
    total_scraped: int = 0
    total_processed: int = 0
    total_embedded: int = 0
    total_indexed: int = 0


@dataclass
class RunResult:
    run_id: str
    success: bool
    skipped: bool = False
    error: str | None = None
    scraped: int = 0
    processed: int = 0
    saved: int = 0
    embedded: int = 0
    indexed: int = 0
    failed: int = 0
    started_at: datetime | None = None
    finished_at: datetime | None = None

    @property
    def duration_seconds(self) -> float:
        if self.started_at is None or self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()


class PipelineOrchestrator:
    """Single-flight pipeline over injected stage collaborators.

    Only one run executes at a time; a run requested while another is in
    progress is skipped rather than queued.
    """

    def __init__(
        self,
        fetcher: RedditFetcher,
        cleaner: PostCleaner,
        embedder: EmbeddingGenerator,
        index_writer: VectorIndexWriter,
        post_store: PostStore | None = None,
        session_factory: Callable[[], ContextManager[Session]] = get_session,
        default_query: SearchQuery | None = None,
        product_id: str = "whoop",
        search_threshold: float = 0.7,
        search_limit: int = 10,
    ):
        self.fetcher = fetcher
        self.cleaner = cleaner
        self.embedder = embedder
        self.index_writer = index_writer
        self.post_store = post_store
        self.session_factory = session_factory
        self.default_query = default_query or SearchQuery()
        self.product_id = product_id
        self.search_threshold = search_threshold
        self.search_limit = search_limit
        self.stats = PipelineStats()
        self.scheduled_jobs: list[ScheduledJob] = []
        self._run_lock = threading.Lock()
        self._stats_lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._run_lock.locked()

    @contextmanager
    def _single_flight(self) -> Iterator[bool]:
        acquired = self._run_lock.acquire(blocking=False)
        try:
            yield acquired
        finally:
            if acquired:
                self._run_lock.release()

    def run_pipeline(self, query: SearchQuery | None = None) -> RunResult:
        """Run every stage once. Never raises; failures land in the result and stats."""
        query = query or self.default_query
        run_id = f"run-{int(time.time() * 1000)}"

        with self._single_flight() as acquired:
            if not acquired:
                logger.warning("Pipeline is already running, skipping %s", run_id)
                return RunResult(run_id=run_id, success=False, skipped=True, error="Pipeline is already running")
            return self._run(run_id, query)

    def _run(self, run_id: str, query: SearchQuery) -> RunResult:
        started_at = datetime.now(timezone.utc)
        with self._stats_lock:
            self.stats.total_runs += 1
            self.stats.last_run = started_at

        result = RunResult(run_id=run_id, success=False, started_at=started_at)
        logger.info(
            "Starting pipeline run %s (r/%s, terms=%s)", run_id, query.subreddit, query.search_terms
        )

        try:
            logger.info("Step 1: fetching posts")
            raw_posts = self.fetcher.fetch(query)
            result.scraped = len(raw_posts)
            self._add_stat("total_scraped", result.scraped)

            logger.info("Step 2: cleaning %d posts", len(raw_posts))
            processed = self.cleaner.clean_batch(raw_posts)
            result.processed = len(processed)
            self._add_stat("total_processed", result.processed)

            if self.post_store is not None and processed:
                logger.info("Step 3: saving %d posts", len(processed))
                result.saved = self.post_store.save(processed, analyze_batch(processed))

            logger.info("Step 4: embedding %d posts", len(processed))
            embedded: list[EmbeddedItem] = self.embedder.embed(processed)
            result.embedded = sum(1 for item in embedded if item.has_embedding)
            self._add_stat("total_embedded", result.embedded)

            logger.info("Step 5: indexing %d embeddings", result.embedded)
            index_result = self.index_writer.index(embedded)
            result.indexed = index_result.indexed
            result.failed = index_result.failed
            self._add_stat("total_indexed", result.indexed)
        except Exception as e:
            result.error = str(e)
            result.finished_at = datetime.now(timezone.utc)
            with self._stats_lock:
                self.stats.failed_runs += 1
                self.stats.last_error = str(e)
            logger.error("Pipeline run %s failed: %s", run_id, e)
            return result

        result.success = True
        result.finished_at = datetime.now(timezone.utc)
        with self._stats_lock:
            self.stats.successful_runs += 1
            self.stats.last_success = result.finished_at
            self.stats.last_error = None
        logger.info(
            "Pipeline run %s completed in %.1fs: scraped=%d processed=%d embedded=%d indexed=%d failed=%d",
            run_id, result.duration_seconds, result.scraped, result.processed,
            result.embedded, result.indexed, result.failed,
        )
        return result

    def _add_stat(self, name: str, amount: int) -> None:
        with self._stats_lock:
            setattr(self.stats, name, getattr(self.stats, name) + amount)

    def run_scheduled(self, expression: str, query: SearchQuery | None = None) -> ScheduledJob:
        """Start a background job that runs the pipeline on a cron schedule."""
        job = ScheduledJob(expression, lambda: self.run_pipeline(query))
        self.scheduled_jobs.append(job.start())
        return job

    def stop_scheduled_jobs(self) -> None:
        for job in self.scheduled_jobs:
            job.stop()
        logger.info("Stopped %d scheduled jobs", len(self.scheduled_jobs))
        self.scheduled_jobs = []

    def search_similar(
        self,
        text: str,
        limit: int | None = None,
        threshold: float | None = None,
        content_type: str | None = "post",
    ) -> list[SearchMatch]:
        return self.index_writer.search_by_text(
            text,
            limit=limit or self.search_limit,
            threshold=self.search_threshold if threshold is None else threshold,
            content_type=content_type,
        )

    def cluster_themes(
        self,
        product_id: str | None = None,
        platform: str | None = None,
        timeframe: str = "30d",
        min_cluster_size: int = DEFAULT_MIN_CLUSTER_SIZE,
    ) -> list[Theme]:
        with self.session_factory() as session:
            return cluster_product_themes(
                session, product_id or self.product_id, platform, timeframe, min_cluster_size
            )

    def generate_insights(
        self,
        product_id: str | None = None,
        platform: str | None = None,
        timeframe: str = "30d",
    ) -> list[Insight]:
        with self.session_factory() as session:
            return generate_product_insights(session, product_id or self.product_id, platform, timeframe)

    def get_stats(self) -> dict[str, Any]:
        with self._stats_lock:
            stats = asdict(self.stats)
        stats["is_running"] = self.is_running
        stats["scheduled_jobs"] = len(self.scheduled_jobs)
        return stats


def query_from_config(config: PipelineConfig) -> SearchQuery:
    scrape = config.scrape
    return SearchQuery(
        subreddit=scrape.subreddit,
        search_terms=list(scrape.search_terms),
        limit=scrape.limit,
        timeframe=scrape.timeframe,
        sort=scrape.sort,
    )


def build_orchestrator(
    config: PipelineConfig,
    session_factory: Callable[[], ContextManager[Session]] = get_session,
    openai_client: Any = None,
) -> PipelineOrchestrator:
    """Wire production collaborators from configuration."""
    embedding = config.embedding
    embedder = EmbeddingGenerator(
        client=openai_client or build_client(timeout=embedding.request_timeout),
        model=embedding.model,
        max_chars=embedding.max_chars,
        batch_size=embedding.batch_size,
        batch_delay=embedding.batch_delay,
        cost_per_1k=embedding.cost_per_1k_tokens,
        retry=RetryPolicy(
            max_attempts=embedding.max_attempts,
            base_delay=embedding.retry_delay,
            fatal=FATAL_ERRORS,
        ),
    )

    store = build_vector_store(config.index.backend, session_factory)
    index_writer = VectorIndexWriter(
        store,
        embedder=embedder,
        batch_size=config.index.batch_size,
        batch_delay=config.index.batch_delay,
    )

    post_store = PostStore(session_factory, config.product_id) if config.save_posts else None

    return PipelineOrchestrator(
        fetcher=RedditFetcher(timeout=config.scrape.request_timeout, term_delay=config.scrape.term_delay),
        cleaner=PostCleaner(batch_size=config.clean.batch_size, batch_delay=config.clean.batch_delay),
        embedder=embedder,
        index_writer=index_writer,
        post_store=post_store,
        session_factory=session_factory,
        default_query=query_from_config(config),
        product_id=config.product_id,
        search_threshold=config.index.similarity_threshold,
        search_limit=config.index.search_limit,
    )
