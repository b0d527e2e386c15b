"""Common utility functions."""

from typing import Iterator, Sequence, TypeVar

T = TypeVar("T")


def chunked(items: Sequence[T], size: int) -> Iterator[list[T]]:
    """Yield consecutive slices of ``items`` with at most ``size`` elements."""
    if size <= 0:
        raise ValueError("size must be greater than zero")
    for start in range(0, len(items), size):
        yield list(items[start:start + size])


def truncate(text: str | None, length: int = 50) -> str:
    """Shorten text for log messages."""
    if not text:
        return ""
    return text if len(text) <= length else text[:length] + "..."
