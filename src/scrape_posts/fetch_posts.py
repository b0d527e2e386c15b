"""Fetch posts from Reddit search."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable

import requests

from scrape_posts.models import RawPost, SearchQuery

logger = logging.getLogger(__name__)

BASE_URL = "https://www.reddit.com"
USER_AGENT = "feedback-pipeline/1.0 (reddit search)"
MAX_PAGE_SIZE = 100
REQUEST_TIMEOUT = 30
TERM_DELAY_SECONDS = 1.0


class SourceUnavailableError(RuntimeError):
    """Raised when no search term could be fetched."""


class RedditFetcher:
    """Search a subreddit once per term and normalize the results."""

    def __init__(
        self,
        base_url: str = BASE_URL,
        user_agent: str = USER_AGENT,
        timeout: float = REQUEST_TIMEOUT,
        term_delay: float = TERM_DELAY_SECONDS,
        raise_on_total_failure: bool = True,
        http: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.base_url = base_url.rstrip("/")
        self.user_agent = user_agent
        self.timeout = timeout
        self.term_delay = term_delay
        self.raise_on_total_failure = raise_on_total_failure
        self.http = http or requests.Session()
        self.sleep = sleep

    def fetch(self, query: SearchQuery) -> list[RawPost]:
        """Fetch posts for every search term in ``query``.

        A failing term is logged and skipped. Posts are not deduplicated
        across terms.

        Raises:
            SourceUnavailableError: If every term failed and
                ``raise_on_total_failure`` is set.
        """
        logger.info(
            "Fetching r/%s for %d terms (limit=%d, timeframe=%s)",
            query.subreddit, len(query.search_terms), query.limit, query.timeframe,
        )

        posts: list[RawPost] = []
        failures: list[str] = []

        for index, term in enumerate(query.search_terms):
            if index > 0:
                self.sleep(self.term_delay)

            try:
                term_posts = self.fetch_term(query, term)
            except Exception as e:
                logger.error("Failed to fetch posts for term %r in r/%s: %s", term, query.subreddit, e)
                failures.append(f"{term}: {e}")
                continue

            logger.info("Found %d posts for term %r", len(term_posts), term)
            posts.extend(term_posts)

        if query.search_terms and len(failures) == len(query.search_terms) and self.raise_on_total_failure:
            raise SourceUnavailableError(
                f"All {len(failures)} search terms failed for r/{query.subreddit}: {'; '.join(failures)}"
            )

        logger.info("Total posts collected: %d", len(posts))
        return posts

    def fetch_term(self, query: SearchQuery, term: str) -> list[RawPost]:
        """Issue one search request for a single term."""
        response = self.http.get(
            f"{self.base_url}/r/{query.subreddit}/search.json",
            params={
                "q": term,
                "sort": query.sort,
                "limit": min(query.limit, MAX_PAGE_SIZE),
                "t": query.timeframe,
                "raw_json": 1,
            },
            headers={"User-Agent": self.user_agent},
            timeout=self.timeout,
        )
        response.raise_for_status()

        children = _validate_listing(response.json())

        posts = []
        for child in children:
            try:
                posts.append(_parse_child(child, term, query.subreddit))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed post for term %r: %s", term, e)
        return posts


def _validate_listing(payload: Any) -> list[dict]:
    """Return the listing children or raise if the payload is unusable."""
    if not isinstance(payload, dict):
        raise ValueError("Empty response from Reddit API")
    if payload.get("error"):
        raise ValueError(f"Reddit API error: {payload.get('message') or payload['error']}")
    data = payload.get("data")
    if not isinstance(data, dict) or not isinstance(data.get("children"), list):
        raise ValueError("Invalid Reddit API response structure")
    return data["children"]


def _parse_child(child: dict, term: str, subreddit: str) -> RawPost:
    data = child["data"]
    permalink = data.get("permalink") or ""
    return RawPost(
        id=data["id"],
        title=data.get("title") or "",
        body=data.get("selftext") or "",
        author=data.get("author") or "unknown",
        score=int(data.get("score") or 0),
        comment_count=int(data.get("num_comments") or 0),
        created_at=datetime.fromtimestamp(float(data["created_utc"]), tz=timezone.utc),
        subreddit=data.get("subreddit") or subreddit,
        search_term=term,
        url=f"https://reddit.com{permalink}" if permalink else "",
        upvote_ratio=float(data.get("upvote_ratio") or 0.0),
    )


def fetch_posts(query: SearchQuery, **kwargs: Any) -> list[RawPost]:
    """Fetch posts with a default-configured fetcher."""
    return RedditFetcher(**kwargs).fetch(query)
