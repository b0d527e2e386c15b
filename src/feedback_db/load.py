"""Persist processed posts and their sentiment annotations."""

import logging
from datetime import datetime, timezone
from typing import Callable, ContextManager

from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.orm import Session

from analyze_sentiment.models import SentimentResult
from clean_posts.models import ProcessedItem
from feedback_db.models import Post, SentimentAnalysis

logger = logging.getLogger(__name__)


def upsert_post(session: Session, item: ProcessedItem, product_id: str | None = None) -> int:
    """Insert or update one post and return its row id."""
    post = item.post
    now = datetime.now(timezone.utc)
    stmt = insert(Post).values(
        platform=post.platform,
        external_id=post.id,
        product_id=product_id,
        title=post.title,
        content=post.body,
        cleaned_content=item.cleaned_text,
        author=post.author,
        subreddit=post.subreddit,
        url=post.url,
        score=post.score,
        comment_count=post.comment_count,
        search_term=post.search_term,
        created_at=post.created_at,
        processed_at=item.processed_at,
        updated_at=now,
    ).on_conflict_do_update(
        index_elements=["platform", "external_id"],
        set_={
            "score": post.score,
            "comment_count": post.comment_count,
            "content": post.body,
            "cleaned_content": item.cleaned_text,
            "processed_at": item.processed_at,
            "updated_at": now,
        },
    ).returning(Post.id)
    return session.execute(stmt).scalar_one()


def upsert_sentiment(session: Session, post_id: int, sentiment: SentimentResult) -> None:
    values = {
        "sentiment_score": sentiment.score,
        "sentiment_label": sentiment.label,
        "confidence": sentiment.confidence,
        "emotions": sentiment.emotions,
        "keywords": sentiment.keywords,
        "analyzed_at": datetime.now(timezone.utc),
    }
    stmt = insert(SentimentAnalysis).values(post_id=post_id, **values).on_conflict_do_update(
        index_elements=["post_id"],
        set_=values,
    )
    session.execute(stmt)


class PostStore:
    """Writes posts to the relational store through a session factory."""

    def __init__(self, session_factory: Callable[[], ContextManager[Session]], product_id: str | None = None):
        self.session_factory = session_factory
        self.product_id = product_id

    def save(
        self,
        items: list[ProcessedItem],
        sentiments: dict[str, SentimentResult] | None = None,
    ) -> int:
        """Upsert posts and any sentiment results keyed by post id.

        Returns:
            Number of posts written.
        """
        if not items:
            return 0

        sentiments = sentiments or {}
        saved = 0
        with self.session_factory() as session:
            for item in items:
                post_id = upsert_post(session, item, self.product_id)
                sentiment = sentiments.get(item.id)
                if sentiment is not None:
                    upsert_sentiment(session, post_id, sentiment)
                saved += 1
            session.commit()

        logger.info("Saved %d posts (%d with sentiment)", saved, len(sentiments))
        return saved
