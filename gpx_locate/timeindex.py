"""Sorted containers of instants and time intervals.

All instants are integer epoch nanoseconds.
"""

from __future__ import annotations

import bisect
from dataclasses import dataclass
from typing import Callable, Iterator


@dataclass(frozen=True, slots=True, order=True)
class TimeInterval:
    """A closed interval [start, stop] of epoch nanoseconds."""

    start: int
    stop: int

    def __post_init__(self) -> None:
        if self.start > self.stop:
            raise ValueError(f"interval start is after stop: ({self.start}, {self.stop})")

    def contains(self, t: int) -> bool:
        return self.start <= t <= self.stop


class TimeIntervalSlice:
    """Intervals kept sorted by (start, stop), one entry per distinct interval."""

    def __init__(self) -> None:
        self._intervals: list[TimeInterval] = []

    def add(self, interval: TimeInterval) -> bool:
        """Insert in sorted position. Returns False if already present."""

        i = bisect.bisect_left(self._intervals, interval)
        if i < len(self._intervals) and self._intervals[i] == interval:
            return False
        self._intervals.insert(i, interval)
        return True

    def containing(self, t: int) -> Iterator[TimeInterval]:
        """Yield every interval with start <= t <= stop, in slice order."""

        # Only intervals starting at or before t can contain it.
        end = bisect.bisect_right(self._intervals, t, key=lambda iv: iv.start)
        for interval in self._intervals[:end]:
            if interval.stop >= t:
                yield interval

    def search(self, t: int, callback: Callable[[TimeInterval], None]) -> None:
        for interval in self.containing(t):
            callback(interval)

    def __len__(self) -> int:
        return len(self._intervals)

    def __iter__(self) -> Iterator[TimeInterval]:
        return iter(self._intervals)

    def __getitem__(self, i: int) -> TimeInterval:
        return self._intervals[i]

    def __contains__(self, interval: object) -> bool:
        if not isinstance(interval, TimeInterval):
            return False
        i = bisect.bisect_left(self._intervals, interval)
        return i < len(self._intervals) and self._intervals[i] == interval

    def __repr__(self) -> str:
        return f"TimeIntervalSlice({self._intervals!r})"


class TimeSlice:
    """Instants sorted ascending without duplicates."""

    def __init__(self) -> None:
        self._times: list[int] = []

    def add(self, t: int) -> bool:
        """Insert in sorted position. Returns False if already present."""

        i = bisect.bisect_left(self._times, t)
        if i < len(self._times) and self._times[i] == t:
            return False
        self._times.insert(i, t)
        return True

    def nearest(self, q: int, tolerance: int) -> Iterator[int]:
        """Yield every stored t with |t - q| <= tolerance, ascending."""

        lo = bisect.bisect_left(self._times, q - tolerance)
        hi = bisect.bisect_right(self._times, q + tolerance)
        yield from self._times[lo:hi]

    def search_nearest(self, q: int, tolerance: int, callback: Callable[[int], None]) -> None:
        for t in self.nearest(q, tolerance):
            callback(t)

    def __len__(self) -> int:
        return len(self._times)

    def __iter__(self) -> Iterator[int]:
        return iter(self._times)

    def __getitem__(self, i: int) -> int:
        return self._times[i]

    def __repr__(self) -> str:
        return f"TimeSlice({len(self._times)} times)"
