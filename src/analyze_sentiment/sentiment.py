"""Lexicon-based sentiment scoring with TextBlob."""

import logging

from textblob import TextBlob

from analyze_sentiment.models import NEGATIVE, NEUTRAL, POSITIVE, SentimentResult
from clean_posts.models import ProcessedItem

logger = logging.getLogger(__name__)

LABEL_THRESHOLD = 0.1
BASE_CONFIDENCE = 0.5
MAX_CONFIDENCE = 0.9


def label_for(score: float) -> str:
    if score > LABEL_THRESHOLD:
        return POSITIVE
    if score < -LABEL_THRESHOLD:
        return NEGATIVE
    return NEUTRAL


def confidence_for(emotion_count: int) -> float:
    return min(MAX_CONFIDENCE, BASE_CONFIDENCE + 0.1 * emotion_count)


def analyze_sentiment(item: ProcessedItem) -> SentimentResult:
    """Score an item's cleaned text.

    Falls back to a neutral result when scoring fails so every post keeps
    an annotation.
    """
    emotions = list(item.entities.emotions)
    keywords = item.keyword_words
    try:
        score = float(TextBlob(item.cleaned_text or "").sentiment.polarity)
    except Exception as e:
        logger.warning("Sentiment scoring failed for %s: %s", item.id, e)
        return SentimentResult(
            score=0.0,
            label=NEUTRAL,
            confidence=BASE_CONFIDENCE,
            emotions=emotions,
            keywords=keywords,
            error=str(e),
        )

    score = max(-1.0, min(1.0, score))
    return SentimentResult(
        score=score,
        label=label_for(score),
        confidence=confidence_for(len(emotions)),
        emotions=emotions,
        keywords=keywords,
    )


def analyze_batch(items: list[ProcessedItem]) -> dict[str, SentimentResult]:
    """Score items, keyed by post id."""
    results = {item.id: analyze_sentiment(item) for item in items}
    counts = {POSITIVE: 0, NEGATIVE: 0, NEUTRAL: 0}
    for result in results.values():
        counts[result.label] += 1
    logger.info(
        "Sentiment: %d positive, %d negative, %d neutral",
        counts[POSITIVE], counts[NEGATIVE], counts[NEUTRAL],
    )
    return results
