"""Group posts into themes by keyword similarity."""

import logging
from dataclasses import dataclass, field

from generate_insights.models import AnalysisPost, SentimentDistribution, Theme

logger = logging.getLogger(__name__)

SIMILARITY_THRESHOLD = 0.7
DEFAULT_MIN_CLUSTER_SIZE = 5


@dataclass
class _KeywordGroup:
    posts: list[AnalysisPost] = field(default_factory=list)
    post_ids: set[str] = field(default_factory=set)

    def add(self, post: AnalysisPost) -> None:
        if post.id not in self.post_ids:
            self.post_ids.add(post.id)
            self.posts.append(post)


def levenshtein_distance(a: str, b: str) -> int:
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + (char_a != char_b),
            ))
        previous = current
    return previous[-1]


def are_keywords_similar(a: str, b: str, threshold: float = SIMILARITY_THRESHOLD) -> bool:
    """Substring match, or edit-distance similarity at or above ``threshold``."""
    if a in b or b in a:
        return True
    max_length = max(len(a), len(b))
    return 1 - levenshtein_distance(a, b) / max_length >= threshold


def normalize_keyword(keyword: str) -> str:
    return keyword.lower().strip()


def group_by_keyword(posts: list[AnalysisPost]) -> dict[str, _KeywordGroup]:
    """Map normalized keyword to the posts mentioning it, in first-encounter order."""
    groups: dict[str, _KeywordGroup] = {}
    for post in posts:
        for keyword in post.keywords or []:
            normalized = normalize_keyword(keyword)
            if not normalized:
                continue
            groups.setdefault(normalized, _KeywordGroup()).add(post)
    return groups


def average_sentiment(posts: list[AnalysisPost]) -> float:
    scores = [post.sentiment_score for post in posts if post.sentiment_score is not None]
    return sum(scores) / len(scores) if scores else 0.0


def sentiment_distribution(posts: list[AnalysisPost]) -> SentimentDistribution:
    if not posts:
        return SentimentDistribution()
    counts = {"positive": 0, "negative": 0, "neutral": 0}
    for post in posts:
        if post.sentiment_label in counts:
            counts[post.sentiment_label] += 1
    total = len(posts)
    return SentimentDistribution(
        positive=round(counts["positive"] / total * 100, 1),
        negative=round(counts["negative"] / total * 100, 1),
        neutral=round(counts["neutral"] / total * 100, 1),
    )


def cluster_confidence(post_count: int, keyword_count: int) -> float:
    confidence = min(0.9, post_count / 15)
    if keyword_count > 1:
        confidence *= 1.1
    return max(0.1, min(0.95, confidence))


def cluster_themes(posts: list[AnalysisPost], min_cluster_size: int = DEFAULT_MIN_CLUSTER_SIZE) -> list[Theme]:
    """Greedily merge similar keywords into themes.

    Each keyword seeds a theme in first-encounter order and absorbs every
    later unprocessed keyword similar to it. Absorbed keywords never seed
    or join another theme. Themes smaller than ``min_cluster_size`` are
    dropped and the rest are sorted by post count, largest first.
    """
    groups = group_by_keyword(posts)
    processed: set[str] = set()
    themes = []

    for keyword, group in groups.items():
        if keyword in processed:
            continue
        processed.add(keyword)

        merged = _KeywordGroup()
        for post in group.posts:
            merged.add(post)
        keywords = [keyword]

        for other, other_group in groups.items():
            if other in processed:
                continue
            if are_keywords_similar(keyword, other):
                keywords.append(other)
                processed.add(other)
                for post in other_group.posts:
                    merged.add(post)

        if len(merged.posts) < min_cluster_size:
            continue

        themes.append(Theme(
            keyword=keyword,
            keywords=keywords,
            posts=merged.posts,
            average_sentiment=average_sentiment(merged.posts),
            sentiment_distribution=sentiment_distribution(merged.posts),
            confidence=cluster_confidence(len(merged.posts), len(keywords)),
        ))

    themes.sort(key=lambda theme: theme.post_count, reverse=True)
    logger.info("Clustered %d keywords into %d themes", len(groups), len(themes))
    return themes
