"""Clean Reddit posts and extract keywords, entities and text features."""

from __future__ import annotations

import logging
import re
import time
from collections import Counter
from datetime import datetime, timezone
from typing import Callable

from clean_posts.lexicons import (
    EMOTION_WORDS,
    FEATURE_PATTERNS,
    MARKUP_PATTERNS,
    MENTION_PATTERN,
    PRODUCT_PATTERNS,
    STOP_WORDS,
    URL_PATTERN,
)
from clean_posts.models import CleaningMetadata, Entities, ProcessedItem, TextFeatures
from common.outcome import Outcome
from common.utils import chunked, truncate
from scrape_posts.models import RawPost

logger = logging.getLogger(__name__)

MAX_KEYWORDS = 15
MAX_NUMBERS = 10
DEFAULT_BATCH_SIZE = 100
BATCH_DELAY_SECONDS = 0.1

_DISALLOWED_CHARS = re.compile(r"[^\w\s.,!?;:'\"()-]", re.ASCII)
_WHITESPACE = re.compile(r"\s+")
_ALPHA_WORD = re.compile(r"^[a-zA-Z]+$")
_SENTENCE_SPLIT = re.compile(r"[.!?]+")
_VOWEL_GROUPS = re.compile(r"[aeiouy]+")
_NUMBERS = re.compile(r"\d+")


def combine_text(post: RawPost) -> str:
    return f"{post.title or ''} {post.body or ''}".strip()


def clean_text(text: str | None) -> str:
    """Strip Reddit markup, URLs and symbols, and collapse whitespace."""
    if not text or not isinstance(text, str):
        return ""

    cleaned = text
    for _, pattern, replacement in MARKUP_PATTERNS:
        cleaned = pattern.sub(replacement, cleaned)

    cleaned = _WHITESPACE.sub(" ", cleaned).strip()
    cleaned = _DISALLOWED_CHARS.sub(" ", cleaned)
    return _WHITESPACE.sub(" ", cleaned).strip()


def extract_keywords(text: str, limit: int = MAX_KEYWORDS) -> list[tuple[str, int]]:
    """Return the most frequent non-stop-words as (word, count) pairs.

    Ties keep the order in which words first appear.
    """
    if not text:
        return []

    words = [
        word
        for word in text.lower().split()
        if len(word) > 2 and word not in STOP_WORDS and _ALPHA_WORD.match(word)
    ]
    return Counter(words).most_common(limit)


def extract_entities(text: str) -> Entities:
    """Match products, features, emotion words and numbers."""
    entities = Entities()
    if not text:
        return entities

    for pattern in PRODUCT_PATTERNS:
        entities.products.extend(match.lower() for match in pattern.findall(text))

    for pattern in FEATURE_PATTERNS:
        entities.features.extend(match.lower() for match in pattern.findall(text))

    lowered = text.lower()
    entities.emotions = [emotion for emotion in EMOTION_WORDS if emotion in lowered]
    entities.numbers = _NUMBERS.findall(text)[:MAX_NUMBERS]
    return entities


def estimate_syllables(text: str) -> int:
    syllables = 0
    for word in text.lower().split():
        if len(word) <= 3:
            syllables += 1
        else:
            syllables += len(_VOWEL_GROUPS.findall(word)) or 1
    return syllables


def readability_score(text: str) -> int:
    """Flesch reading ease, rounded and clamped to [0, 100]."""
    words = len(text.split())
    sentences = len(_SENTENCE_SPLIT.split(text))
    if words == 0 or sentences == 0:
        return 0

    avg_words_per_sentence = words / sentences
    avg_syllables_per_word = estimate_syllables(text) / words
    score = 206.835 - 1.015 * avg_words_per_sentence - 84.6 * avg_syllables_per_word
    return max(0, min(100, round(score)))


def extract_features(text: str, post: RawPost, now: datetime | None = None) -> TextFeatures:
    now = now or datetime.now(timezone.utc)
    age_in_days = 0
    if post.created_at is not None:
        age_in_days = max(0, (now - post.created_at).days)

    return TextFeatures(
        character_count=len(text),
        word_count=len(text.split()),
        sentence_count=len(_SENTENCE_SPLIT.split(text)) if text else 0,
        has_question="?" in text,
        has_exclamation="!" in text,
        has_numbers=any(ch.isdigit() for ch in text),
        has_capitals=any("A" <= ch <= "Z" for ch in text),
        age_in_days=age_in_days,
        readability_score=readability_score(text),
    )


def clean_post(post: RawPost) -> ProcessedItem:
    """Clean a single post. Raises on unexpected input."""
    full_text = combine_text(post)
    cleaned = clean_text(full_text)

    return ProcessedItem(
        post=post,
        original_text=full_text,
        cleaned_text=cleaned,
        text_length=len(cleaned),
        word_count=len(cleaned.split()),
        keywords=extract_keywords(cleaned),
        entities=extract_entities(cleaned),
        features=extract_features(cleaned, post),
        metadata=CleaningMetadata(
            original_length=len(full_text),
            cleaning_ratio=len(cleaned) / max(len(full_text), 1),
            has_urls=bool(URL_PATTERN.search(full_text)),
            has_mentions=bool(MENTION_PATTERN.search(full_text)),
        ),
        processed_at=datetime.now(timezone.utc),
    )


def fallback_item(post: RawPost, error: str) -> ProcessedItem:
    """Pass the raw text through unmodified with empty annotations."""
    full_text = f"{getattr(post, 'title', '') or ''} {getattr(post, 'body', '') or ''}".strip()
    return ProcessedItem(
        post=post,
        original_text=full_text,
        cleaned_text=full_text,
        text_length=len(full_text),
        word_count=0,
        keywords=[],
        entities=Entities(),
        features=TextFeatures(),
        metadata=CleaningMetadata(),
        processed_at=datetime.now(timezone.utc),
        error=error,
    )


def try_clean_post(post: RawPost) -> Outcome[ProcessedItem]:
    try:
        return Outcome.success(clean_post(post))
    except Exception as e:
        logger.error(
            "Failed to clean post %s (%s): %s",
            getattr(post, "id", None), truncate(getattr(post, "title", None)), e,
        )
        return Outcome.fallback(fallback_item(post, f"Cleaning failed: {e}"), str(e))


class PostCleaner:
    """Cleans posts in batches with a short pause between batches."""

    def __init__(
        self,
        batch_size: int = DEFAULT_BATCH_SIZE,
        batch_delay: float = BATCH_DELAY_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self.sleep = sleep

    def clean(self, post: RawPost) -> ProcessedItem:
        return try_clean_post(post).value

    def clean_batch(self, posts: list[RawPost], batch_size: int | None = None) -> list[ProcessedItem]:
        """Clean every post; output has one item per input, in input order."""
        if not posts:
            logger.warning("No posts to clean")
            return []

        size = batch_size or self.batch_size
        total_batches = (len(posts) + size - 1) // size
        logger.info("Cleaning %d posts in %d batches", len(posts), total_batches)

        results: list[ProcessedItem] = []
        failed = 0
        for number, batch in enumerate(chunked(posts, size), start=1):
            if number > 1:
                self.sleep(self.batch_delay)
            logger.debug("Cleaning batch %d/%d", number, total_batches)
            for outcome in map(try_clean_post, batch):
                if not outcome.ok:
                    failed += 1
                results.append(outcome.value)

        logger.info("Cleaned %d posts (%d fallbacks)", len(results), failed)
        return results
