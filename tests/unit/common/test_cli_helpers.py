"""Tests for common.cli_helpers module."""

import argparse
import json
from datetime import datetime, timezone

import pytest

from common.cli_helpers import parse_terms, positive_int, save_jsonl_local


class TestParseTerms:
    def test_splits_and_strips(self) -> None:
        assert parse_terms(" WHOOP 5.0 , WHOOP band,") == ["WHOOP 5.0", "WHOOP band"]

    def test_empty_raises(self) -> None:
        with pytest.raises(argparse.ArgumentTypeError):
            parse_terms(" , ")


class TestPositiveInt:
    def test_valid(self) -> None:
        assert positive_int("5") == 5

    def test_invalid(self) -> None:
        with pytest.raises(argparse.ArgumentTypeError):
            positive_int("five")
        with pytest.raises(argparse.ArgumentTypeError):
            positive_int("-1")


class TestSaveJsonlLocal:
    def test_writes_one_record_per_line(self, tmp_path) -> None:
        timestamp = datetime(2024, 6, 1, 9, 5, tzinfo=timezone.utc)

        path = save_jsonl_local([{"id": "a"}, {"id": "b"}], "pipeline_run", timestamp, str(tmp_path))

        assert path.name == "pipeline_run_2024_06_01_09_05.jsonl"
        lines = path.read_text().splitlines()
        assert [json.loads(line)["id"] for line in lines] == ["a", "b"]
