"""Restartable lazy event sequences."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable

from sharkband.ledger.types import CheckInEvent


class EventStream:
    """Ordered, lazily produced sequence of check-in events.

    Each ``async for`` starts a fresh pass from the beginning, so a stream can
    be iterated any number of times. Nothing is read from storage until
    iteration starts.
    """

    def __init__(self, factory: Callable[[], AsyncIterator[CheckInEvent]]) -> None:
        self._factory = factory

    def __aiter__(self) -> AsyncIterator[CheckInEvent]:
        return self._factory()

    async def to_list(self) -> list[CheckInEvent]:
        return [event async for event in self]

    async def total_points(self) -> int:
        total = 0
        async for event in self:
            total += event.points_earned
        return total
