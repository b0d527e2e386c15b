"""Tests for feedback_db.load module."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

from analyze_sentiment.models import SentimentResult
from clean_posts.models import CleaningMetadata, Entities, ProcessedItem, TextFeatures
from feedback_db.load import PostStore, upsert_post
from scrape_posts.models import RawPost

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


def _item(post_id: str) -> ProcessedItem:
    post = RawPost(
        id=post_id, title="T", body="B", author="a", score=5, comment_count=1,
        created_at=NOW, subreddit="whoop", search_term="WHOOP 5.0",
    )
    return ProcessedItem(
        post=post, original_text="T B", cleaned_text="T B", text_length=3, word_count=2,
        keywords=[], entities=Entities(), features=TextFeatures(), metadata=CleaningMetadata(),
        processed_at=NOW,
    )


def _factory(session: MagicMock) -> MagicMock:
    factory = MagicMock()
    factory.return_value.__enter__.return_value = session
    return factory


class TestUpsertPost:
    def test_upserts_on_platform_and_external_id(self) -> None:
        session = MagicMock()
        session.execute.return_value.scalar_one.return_value = 42

        assert upsert_post(session, _item("p1"), "whoop") == 42

        sql = str(session.execute.call_args.args[0])
        assert "ON CONFLICT (platform, external_id) DO UPDATE" in sql
        assert "RETURNING posts.id" in sql


class TestPostStore:
    def test_saves_posts_and_sentiment(self) -> None:
        session = MagicMock()
        session.execute.return_value.scalar_one.side_effect = [1, 2]
        store = PostStore(_factory(session), product_id="whoop")
        sentiments = {"p1": SentimentResult(score=0.4, label="positive", confidence=0.6)}

        saved = store.save([_item("p1"), _item("p2")], sentiments)

        assert saved == 2
        # two posts plus one sentiment row
        assert session.execute.call_count == 3
        sentiment_sql = str(session.execute.call_args_list[1].args[0])
        assert "ON CONFLICT (post_id) DO UPDATE" in sentiment_sql
        session.commit.assert_called_once()

    def test_empty_input_skips_session(self) -> None:
        factory = MagicMock()
        assert PostStore(factory).save([]) == 0
        factory.assert_not_called()
