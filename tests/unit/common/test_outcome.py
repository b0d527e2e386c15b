"""Tests for common.outcome module."""

from common.outcome import Outcome


class TestOutcome:
    def test_success(self) -> None:
        outcome = Outcome.success("item")
        assert outcome.ok
        assert outcome.value == "item"
        assert outcome.error is None

    def test_fallback_keeps_value(self) -> None:
        outcome = Outcome.fallback("fallback item", "timeout")
        assert not outcome.ok
        assert outcome.value == "fallback item"
        assert outcome.error == "timeout"
