"""Data models for clean_posts pipeline stage."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from scrape_posts.models import RawPost


@dataclass
class Entities:
    """Lexicon matches found in cleaned text."""
    products: list[str] = field(default_factory=list)
    features: list[str] = field(default_factory=list)
    emotions: list[str] = field(default_factory=list)
    numbers: list[str] = field(default_factory=list)


@dataclass
class TextFeatures:
    """Text statistics and content indicators."""
    character_count: int = 0
    word_count: int = 0
    sentence_count: int = 0
    has_question: bool = False
    has_exclamation: bool = False
    has_numbers: bool = False
    has_capitals: bool = False
    age_in_days: int = 0
    readability_score: int = 0


@dataclass
class CleaningMetadata:
    original_length: int = 0
    cleaning_ratio: float = 1.0
    has_urls: bool = False
    has_mentions: bool = False


@dataclass
class ProcessedItem:
    """Post with cleaned text and extracted features."""
    post: RawPost
    original_text: str
    cleaned_text: str
    text_length: int
    word_count: int
    keywords: list[tuple[str, int]]
    entities: Entities
    features: TextFeatures
    metadata: CleaningMetadata
    processed_at: datetime
    error: Optional[str] = None

    @property
    def id(self) -> str:
        return self.post.id

    @property
    def keyword_words(self) -> list[str]:
        return [word for word, _ in self.keywords]
