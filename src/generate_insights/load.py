"""Read posts for analysis and write insights."""

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.orm import Session

from feedback_db.models import Insight as InsightRow
from feedback_db.models import Post, SentimentAnalysis
from generate_insights.models import AnalysisPost, Insight

logger = logging.getLogger(__name__)

TIMEFRAMES = {
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
    "90d": timedelta(days=90),
    "all": None,
}
MAX_ANALYSIS_POSTS = 1000


def timeframe_start(timeframe: str, now: datetime | None = None) -> datetime | None:
    """Earliest created-at for ``timeframe``; None means no lower bound.

    Raises:
        ValueError: If the timeframe is unknown.
    """
    if timeframe not in TIMEFRAMES:
        raise ValueError(f"Invalid timeframe {timeframe!r}. Valid timeframes: {', '.join(TIMEFRAMES)}")
    window = TIMEFRAMES[timeframe]
    if window is None:
        return None
    return (now or datetime.now(timezone.utc)) - window


def load_posts_for_analysis(
    session: Session,
    product_id: str,
    platform: str | None = None,
    timeframe: str = "30d",
) -> list[AnalysisPost]:
    """Newest posts for a product with their sentiment annotations."""
    start = timeframe_start(timeframe)

    stmt = (
        select(Post, SentimentAnalysis)
        .outerjoin(SentimentAnalysis, SentimentAnalysis.post_id == Post.id)
        .where(Post.product_id == product_id)
    )
    if platform:
        stmt = stmt.where(Post.platform == platform)
    if start is not None:
        stmt = stmt.where(Post.created_at >= start)
    stmt = stmt.order_by(Post.created_at.desc(), Post.id).limit(MAX_ANALYSIS_POSTS)

    posts = []
    for post, sentiment in session.execute(stmt).all():
        posts.append(AnalysisPost(
            id=post.external_id,
            title=post.title or "",
            content=(post.content or "")[:200],
            keywords=list(sentiment.keywords or []) if sentiment else [],
            sentiment_score=sentiment.sentiment_score if sentiment else None,
            sentiment_label=sentiment.sentiment_label if sentiment else None,
            author=post.author or "",
            score=post.score or 0,
            platform=post.platform,
            created_at=post.created_at,
        ))

    logger.info("Loaded %d posts for %s (timeframe=%s)", len(posts), product_id, timeframe)
    return posts


def store_insights(session: Session, insights: list[Insight]) -> int:
    """Upsert insights on (product_id, insight_type, title)."""
    now = datetime.now(timezone.utc)
    for insight in insights:
        values = {
            "description": insight.description,
            "sentiment_summary": insight.sentiment_summary,
            "content_count": insight.content_count,
            "confidence_score": insight.confidence,
            "updated_at": now,
        }
        stmt = insert(InsightRow).values(
            product_id=insight.product_id,
            insight_type=insight.insight_type,
            title=insight.title,
            created_at=now,
            **values,
        ).on_conflict_do_update(
            index_elements=["product_id", "insight_type", "title"],
            set_=values,
        )
        session.execute(stmt)
    session.commit()
    logger.info("Stored %d insights", len(insights))
    return len(insights)
