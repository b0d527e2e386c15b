"""Tests for generate_insights.insights module."""

import pytest

from generate_insights.insights import (
    analyze_themes,
    create_insights,
    determine_insight_type,
    insight_description,
    theme_confidence,
)
from generate_insights.models import AnalysisPost, SentimentDistribution, Theme


def _post(post_id: str, keywords: list[str], score: float | None = 0.0, label: str | None = "neutral") -> AnalysisPost:
    return AnalysisPost(id=post_id, title="", content="", keywords=keywords,
                        sentiment_score=score, sentiment_label=label)


def _theme(keyword: str, count: int, avg: float, dist: SentimentDistribution | None = None) -> Theme:
    return Theme(
        keyword=keyword,
        keywords=[keyword],
        posts=[_post(f"{keyword}-{i}", [keyword]) for i in range(count)],
        average_sentiment=avg,
        sentiment_distribution=dist or SentimentDistribution(),
        confidence=0.5,
    )


class TestThemeConfidence:
    def test_scales_with_post_count(self) -> None:
        assert theme_confidence(10, 10) == pytest.approx(0.5)
        assert theme_confidence(40, 40) == pytest.approx(0.9)

    def test_sparse_sentiment_penalty(self) -> None:
        assert theme_confidence(4, 1) == pytest.approx(0.14)

    def test_floor(self) -> None:
        assert theme_confidence(1, 1) == pytest.approx(0.1)


class TestAnalyzeThemes:
    def test_one_theme_per_keyword(self) -> None:
        posts = [
            _post("1", ["battery", "strap"], 0.5, "positive"),
            _post("2", ["battery"], None, None),
        ]

        themes = analyze_themes(posts)

        assert [theme.keyword for theme in themes] == ["battery", "strap"]
        battery = themes[0]
        assert battery.post_count == 2
        assert battery.average_sentiment == pytest.approx(0.5)
        assert battery.sentiment_distribution.positive == 50.0


class TestDetermineInsightType:
    @pytest.mark.parametrize(
        ("count", "avg", "expected"),
        [
            (5, -0.3, "complaint"),
            (4, -0.3, "feature_request"),
            (3, 0.3, "praise"),
            (12, -0.3, "complaint"),
            (12, 0.0, "trend"),
            (3, 0.0, "feature_request"),
        ],
    )
    def test_classification(self, count: int, avg: float, expected: str) -> None:
        assert determine_insight_type(_theme("battery", count, avg)) == expected


class TestInsightDescription:
    def test_complaint(self) -> None:
        theme = _theme("battery", 5, -0.5, SentimentDistribution(positive=0.0, negative=80.0, neutral=20.0))
        assert insight_description(theme, "complaint") == (
            "Found 5 posts discussing this topic. "
            "Users are experiencing issues with an average sentiment score of -0.50. "
            "80.0% of mentions are negative."
        )

    def test_praise(self) -> None:
        theme = _theme("sleep", 3, 0.456, SentimentDistribution(positive=66.7, negative=0.0, neutral=33.3))
        assert insight_description(theme, "praise").endswith(
            "average sentiment score of 0.46. 66.7% of mentions are positive."
        )

    def test_other_types_show_distribution(self) -> None:
        theme = _theme("app", 12, 0.0, SentimentDistribution(positive=25.0, negative=25.0, neutral=50.0))
        assert insight_description(theme, "trend").endswith(
            "Sentiment distribution: 25.0% positive, 25.0% negative, 50.0% neutral."
        )


class TestCreateInsights:
    def test_skips_small_themes(self) -> None:
        themes = [_theme("battery", 2, -0.9), _theme("strap", 3, 0.5)]

        insights = create_insights("whoop", themes)

        assert len(insights) == 1
        insight = insights[0]
        assert insight.insight_type == "praise"
        assert insight.title == "Positive feedback about strap"
        assert insight.content_count == 3
        assert insight.sentiment_summary["post_count"] == 3
        assert insight.product_id == "whoop"

    def test_titles(self) -> None:
        insights = create_insights("whoop", [
            _theme("battery", 6, -0.6),
            _theme("app", 10, 0.0),
            _theme("band", 3, 0.0),
        ])

        assert [insight.title for insight in insights] == [
            "Users reporting issues with battery",
            "Growing discussion around app",
            "Feature requests related to band",
        ]
