"""Data models for generate_insights."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

COMPLAINT = "complaint"
PRAISE = "praise"
TREND = "trend"
FEATURE_REQUEST = "feature_request"


@dataclass
class AnalysisPost:
    """Persisted post joined with its sentiment annotation."""
    id: str
    title: str
    content: str
    keywords: list[str] = field(default_factory=list)
    sentiment_score: Optional[float] = None
    sentiment_label: Optional[str] = None
    author: str = ""
    score: int = 0
    platform: str = "reddit"
    created_at: Optional[datetime] = None


@dataclass
class SentimentDistribution:
    """Share of posts per sentiment label, as percentages rounded to 0.1."""
    positive: float = 0.0
    negative: float = 0.0
    neutral: float = 0.0


@dataclass
class Theme:
    keyword: str
    keywords: list[str]
    posts: list[AnalysisPost]
    average_sentiment: float
    sentiment_distribution: SentimentDistribution
    confidence: float

    @property
    def post_count(self) -> int:
        return len(self.posts)


@dataclass
class Insight:
    product_id: str
    insight_type: str
    title: str
    description: str
    sentiment_summary: dict
    content_count: int
    confidence: float
