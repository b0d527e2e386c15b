"""Common CLI helper utilities."""

from __future__ import annotations

import argparse
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any


def setup_logging(level: int = logging.INFO) -> None:
    """Configure standard logging format for CLI tools."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )


def parse_terms(value: str | None) -> list[str]:
    """Parse a comma-separated list of search terms.

    Args:
        value: Raw argument value, e.g. ``"WHOOP 5.0, WHOOP band"``.

    Returns:
        List of stripped, non-empty terms.

    Raises:
        argparse.ArgumentTypeError: If no usable term is present.
    """
    terms = [part.strip() for part in (value or "").split(",") if part.strip()]
    if not terms:
        raise argparse.ArgumentTypeError("terms must contain at least one search term")
    return terms


def positive_int(value: str) -> int:
    """Parse a strictly positive integer for argparse arguments."""
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"{value!r} is not an integer") from exc
    if parsed <= 0:
        raise argparse.ArgumentTypeError(f"{value!r} must be greater than zero")
    return parsed


def save_jsonl_local(
    records: list[dict[str, Any]],
    prefix: str,
    timestamp: datetime,
    output_dir: str = "output",
) -> Path:
    """Save records to a local JSONL file.

    Args:
        records: List of dictionaries to save.
        prefix: Filename prefix (e.g., "embedded_posts").
        timestamp: Timestamp to include in filename.
        output_dir: Directory to save to (default: "output").

    Returns:
        Path to the created file.
    """
    output_path = Path(output_dir)
    output_path.mkdir(exist_ok=True)
    filename = f"{prefix}_{timestamp.strftime('%Y_%m_%d_%H_%M')}.jsonl"
    filepath = output_path / filename
    with filepath.open("w") as f:
        for record in records:
            f.write(json.dumps(record, default=str, ensure_ascii=False) + "\n")
    return filepath
