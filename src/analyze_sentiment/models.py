"""Data models for analyze_sentiment pipeline stage."""

from dataclasses import dataclass, field
from typing import Optional

POSITIVE = "positive"
NEGATIVE = "negative"
NEUTRAL = "neutral"


@dataclass
class SentimentResult:
    """Polarity annotation for one post."""
    score: float
    label: str
    confidence: float
    emotions: list[str] = field(default_factory=list)
    keywords: list[str] = field(default_factory=list)
    error: Optional[str] = None
