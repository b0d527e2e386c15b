"""Cron-driven background jobs."""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Callable

from croniter import croniter

logger = logging.getLogger(__name__)


def validate_cron(expression: str) -> str:
    if not expression or not croniter.is_valid(expression):
        raise ValueError(f"Invalid cron expression: {expression!r}")
    return expression


def next_run_at(expression: str, now: datetime | None = None) -> datetime:
    now = now or datetime.now(timezone.utc)
    return croniter(validate_cron(expression), now).get_next(datetime)


def seconds_until_next(expression: str, now: datetime | None = None) -> float:
    """Seconds from ``now`` until the next time ``expression`` fires."""
    now = now or datetime.now(timezone.utc)
    return max(0.0, (next_run_at(expression, now) - now).total_seconds())


class ScheduledJob:
    """Runs ``action`` on a cron schedule in a daemon thread.

    Stopping prevents future triggers; a run already in progress finishes.
    """

    def __init__(self, expression: str, action: Callable[[], object], name: str = "pipeline"):
        self.expression = validate_cron(expression)
        self.action = action
        self.name = name
        self.trigger_count = 0
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def is_active(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._stop.is_set()

    def start(self) -> "ScheduledJob":
        if self._thread is not None:
            raise RuntimeError(f"Job {self.name} already started")
        self._thread = threading.Thread(target=self._loop, name=f"schedule-{self.name}", daemon=True)
        self._thread.start()
        logger.info("Scheduled %s with cron %r", self.name, self.expression)
        return self

    def _loop(self) -> None:
        while not self._stop.is_set():
            delay = seconds_until_next(self.expression)
            logger.debug("Next %s run in %.0fs", self.name, delay)
            if self._stop.wait(delay):
                break
            self.trigger()

    def trigger(self) -> None:
        """Run the action once."""
        self.trigger_count += 1
        logger.info("Scheduled run of %s triggered", self.name)
        try:
            self.action()
        except Exception:
            logger.exception("Scheduled run of %s failed", self.name)

    def stop(self) -> None:
        self._stop.set()
        logger.info("Stopped scheduled job %s", self.name)

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)
