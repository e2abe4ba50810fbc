from __future__ import annotations

import itertools
from datetime import datetime, timezone
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Default wall-clock implementation."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class MessageIdSource(Protocol):
    def next_id(self, at: datetime) -> int: ...


class WallClockIdSource:
    """Millisecond timestamps, bumped past the last issued value.

    Two sends in the same millisecond (or a clock stepping backwards) would
    otherwise collide, so every id is at least one greater than the previous
    one handed out by this process.
    """

    def __init__(self) -> None:
        self._last = 0

    def next_id(self, at: datetime) -> int:
        candidate = int(at.timestamp() * 1000)
        if candidate <= self._last:
            candidate = self._last + 1
        self._last = candidate
        return candidate


class SequentialIdSource:
    """Deterministic ids for tests and seeding."""

    def __init__(self, start: int = 1) -> None:
        self._counter = itertools.count(start)

    def next_id(self, at: datetime) -> int:
        return next(self._counter)
