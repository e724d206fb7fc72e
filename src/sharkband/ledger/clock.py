"""Clock helpers. All ledger timestamps are timezone-aware UTC."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Normalize to UTC. Naive values are taken to already be UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


class MonotonicClock:
    """Wraps a clock so successive readings never go backwards.

    Wall clocks can step back (NTP corrections); event timestamps handed to
    the log must not.
    """

    def __init__(self, source: Clock = utc_now) -> None:
        self._source = source
        self._last: datetime | None = None

    def __call__(self) -> datetime:
        now = ensure_utc(self._source())
        if self._last is not None and now < self._last:
            now = self._last
        self._last = now
        return now
