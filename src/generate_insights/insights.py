"""Turn themes into typed, templated insights."""

import logging

from generate_insights.cluster_themes import (
    average_sentiment,
    group_by_keyword,
    sentiment_distribution,
)
from generate_insights.models import (
    COMPLAINT,
    FEATURE_REQUEST,
    PRAISE,
    TREND,
    AnalysisPost,
    Insight,
    Theme,
)

logger = logging.getLogger(__name__)

MIN_INSIGHT_POSTS = 3

TITLE_TEMPLATES = {
    COMPLAINT: "Users reporting issues with {keyword}",
    PRAISE: "Positive feedback about {keyword}",
    TREND: "Growing discussion around {keyword}",
    FEATURE_REQUEST: "Feature requests related to {keyword}",
}


def theme_confidence(post_count: int, sentiment_count: int) -> float:
    confidence = min(0.9, post_count / 20)
    # Sparse sentiment coverage
    if sentiment_count < post_count * 0.5:
        confidence *= 0.7
    return max(0.1, confidence)


def analyze_themes(posts: list[AnalysisPost]) -> list[Theme]:
    """One theme per distinct keyword, sorted by post count descending."""
    themes = []
    for keyword, group in group_by_keyword(posts).items():
        sentiment_count = sum(1 for post in group.posts if post.sentiment_score is not None)
        themes.append(Theme(
            keyword=keyword,
            keywords=[keyword],
            posts=group.posts,
            average_sentiment=average_sentiment(group.posts),
            sentiment_distribution=sentiment_distribution(group.posts),
            confidence=theme_confidence(len(group.posts), sentiment_count),
        ))
    themes.sort(key=lambda theme: theme.post_count, reverse=True)
    return themes


def determine_insight_type(theme: Theme) -> str:
    avg = theme.average_sentiment
    count = theme.post_count
    if avg < -0.2 and count >= 5:
        return COMPLAINT
    if avg > 0.2 and count >= 3:
        return PRAISE
    if count >= 10:
        return TREND
    return FEATURE_REQUEST


def insight_title(theme: Theme, insight_type: str) -> str:
    return TITLE_TEMPLATES[insight_type].format(keyword=theme.keyword)


def insight_description(theme: Theme, insight_type: str) -> str:
    avg = theme.average_sentiment
    dist = theme.sentiment_distribution
    description = f"Found {theme.post_count} posts discussing this topic. "
    if insight_type == COMPLAINT:
        description += (
            f"Users are experiencing issues with an average sentiment score of {avg:.2f}. "
            f"{dist.negative:.1f}% of mentions are negative."
        )
    elif insight_type == PRAISE:
        description += (
            f"Users are expressing satisfaction with an average sentiment score of {avg:.2f}. "
            f"{dist.positive:.1f}% of mentions are positive."
        )
    else:
        description += (
            f"Average sentiment score is {avg:.2f}. "
            f"Sentiment distribution: {dist.positive:.1f}% positive, "
            f"{dist.negative:.1f}% negative, {dist.neutral:.1f}% neutral."
        )
    return description


def create_insights(product_id: str, themes: list[Theme]) -> list[Insight]:
    """Promote themes with at least three posts to insights."""
    insights = []
    for theme in themes:
        if theme.post_count < MIN_INSIGHT_POSTS:
            continue
        insight_type = determine_insight_type(theme)
        dist = theme.sentiment_distribution
        insights.append(Insight(
            product_id=product_id,
            insight_type=insight_type,
            title=insight_title(theme, insight_type),
            description=insight_description(theme, insight_type),
            sentiment_summary={
                "average": theme.average_sentiment,
                "distribution": {
                    "positive": dist.positive,
                    "negative": dist.negative,
                    "neutral": dist.neutral,
                },
                "post_count": theme.post_count,
            },
            content_count=theme.post_count,
            confidence=theme.confidence,
        ))
    logger.info("Created %d insights from %d themes", len(insights), len(themes))
    return insights
