"""Insight generation over persisted posts."""

import logging

from sqlalchemy.orm import Session

from generate_insights.cluster_themes import DEFAULT_MIN_CLUSTER_SIZE, cluster_themes
from generate_insights.insights import analyze_themes, create_insights
from generate_insights.load import load_posts_for_analysis, store_insights
from generate_insights.models import Insight, Theme

logger = logging.getLogger(__name__)


def generate_insights(
    session: Session,
    product_id: str,
    platform: str | None = None,
    timeframe: str = "30d",
) -> list[Insight]:
    """Load recent posts, derive insights from their keywords and store them."""
    posts = load_posts_for_analysis(session, product_id, platform, timeframe)
    if not posts:
        logger.warning("No posts found for insight generation (product=%s)", product_id)
        return []

    themes = analyze_themes(posts)
    insights = create_insights(product_id, themes)
    if insights:
        store_insights(session, insights)
    return insights


def cluster_product_themes(
    session: Session,
    product_id: str,
    platform: str | None = None,
    timeframe: str = "30d",
    min_cluster_size: int = DEFAULT_MIN_CLUSTER_SIZE,
) -> list[Theme]:
    posts = load_posts_for_analysis(session, product_id, platform, timeframe)
    if not posts:
        logger.warning("No posts found for clustering (product=%s)", product_id)
        return []
    return cluster_themes(posts, min_cluster_size)
