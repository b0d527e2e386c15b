"""Data models for scrape_posts pipeline stage."""

from dataclasses import dataclass, field
from datetime import datetime

TIMEFRAMES = ("hour", "day", "week", "month", "year", "all")
SORT_ORDERS = ("relevance", "hot", "top", "new", "comments")


@dataclass(frozen=True)
class RawPost:
    """Reddit post as returned by the search endpoint."""
    id: str
    title: str
    body: str
    author: str
    score: int
    comment_count: int
    created_at: datetime
    subreddit: str
    search_term: str
    url: str = ""
    platform: str = "reddit"
    upvote_ratio: float = 0.0


@dataclass
class SearchQuery:
    """What to fetch from a subreddit."""
    subreddit: str = "whoop"
    search_terms: list[str] = field(default_factory=lambda: ["WHOOP 5.0"])
    limit: int = 100
    timeframe: str = "month"
    sort: str = "new"

    def __post_init__(self) -> None:
        if self.timeframe not in TIMEFRAMES:
            raise ValueError(
                f"Invalid timeframe {self.timeframe!r}. Valid timeframes: {', '.join(TIMEFRAMES)}"
            )
        if self.sort not in SORT_ORDERS:
            raise ValueError(
                f"Invalid sort {self.sort!r}. Valid sort orders: {', '.join(SORT_ORDERS)}"
            )
        if self.limit <= 0:
            raise ValueError("limit must be greater than zero")
