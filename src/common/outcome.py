"""Tagged per-item results for stages that never drop an input."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Result of transforming one item.

    ``value`` is always present: on failure it holds the fallback record,
    so a list of outcomes has the same length as its inputs.
    """

    value: T
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def fallback(cls, value: T, error: str) -> "Outcome[T]":
        return cls(value=value, error=error)
