"""Find where a tracked object was at a given time across many GPX files.

Files are registered by label. Registration reads a file once to learn its
time range; the points themselves are only loaded when a query falls inside
that range. With `max_loaded_files > 0` at most that many files keep their
points in memory, the least recently used one being released first.
"""

from __future__ import annotations

import bisect
import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import Iterable, Iterator

from gpx_locate.accessors import GpxDataAccessor, GpxFileDataAccessor, collect_gpx_paths
from gpx_locate.gpx_io import EmptyFileError, enumerate_track_points, summary
from gpx_locate.models import GpxPoint, TrackPoint
from gpx_locate.timeindex import TimeInterval, TimeIntervalSlice, TimeSlice
from gpx_locate.timeutils import dt_from_epoch_ns, epoch_ns_from_dt, ns_from_timedelta

logger = logging.getLogger(__name__)


class FileAlreadyAddedError(ValueError):
    """The label (compared case-insensitively) is already registered."""


class NotFoundError(LookupError):
    """A query was issued against an index with no registered files."""


@dataclass(eq=False, slots=True)
class GpxFileInfo:
    """One registered GPX file.

    Attributes:
        label: Label as given to `add()`; handed to the accessor unchanged.
        key: Case-folded label used for lookups, ordering and the LRU.
        interval: Time range covered by the file's timestamped points.
        last_point_time_ns: Latest timestamp in the file.
        count: Number of timestamped points.
        is_loaded: Whether `index` and `points` are populated.
        index: Sorted point instants while loaded, else None.
        points: Point by instant while loaded, else None.
    """

    label: str
    key: str
    interval: TimeInterval
    last_point_time_ns: int
    count: int
    is_loaded: bool = False
    index: TimeSlice | None = None
    points: dict[int, GpxPoint] | None = field(default=None, repr=False)

    def release(self) -> None:
        self.index = None
        self.points = None
        self.is_loaded = False


@dataclass(frozen=True, slots=True)
class IndexHit:
    """A stored point near the queried time."""

    time_ns: int
    point: GpxPoint
    file_info: GpxFileInfo

    @property
    def time(self) -> datetime:
        return dt_from_epoch_ns(self.time_ns)

    @property
    def sort_key(self) -> tuple[int, str]:
        return (self.time_ns, self.file_info.key)


def insert_hit(hits: list[IndexHit], hit: IndexHit) -> bool:
    """Insert keeping (time, file key) order. Returns False for a duplicate."""

    key = hit.sort_key
    i = bisect.bisect_left(hits, key, key=lambda h: h.sort_key)
    if i < len(hits) and hits[i].sort_key == key:
        return False
    hits.insert(i, hit)
    return True


class GpxIndex:
    """Temporal index over a set of GPX files.

    Args:
        accessor: Opens a fresh stream for a label.
        tolerance: How far from the queried time a stored point may be and
            still match.
        max_loaded_files: Maximum number of files whose points are held in
            memory at once. 0 means unlimited and disables the LRU.

    Not safe for concurrent use.
    """

    def __init__(self, accessor: GpxDataAccessor, tolerance: timedelta, max_loaded_files: int = 0) -> None:
        if tolerance < timedelta(0):
            raise ValueError(f"tolerance must not be negative: {tolerance}")
        if max_loaded_files < 0:
            raise ValueError(f"max_loaded_files must not be negative: {max_loaded_files}")

        self._accessor = accessor
        self._tolerance = tolerance
        self._tolerance_ns = ns_from_timedelta(tolerance)
        self._max_loaded_files = max_loaded_files

        self._file_times = TimeIntervalSlice()
        # Several files may cover exactly the same range.
        self._files: dict[TimeInterval, list[GpxFileInfo]] = {}
        self._members: dict[str, GpxFileInfo] = {}
        # Keys of loaded files, most recently used first.
        self._lru: OrderedDict[str, None] = OrderedDict()

    @property
    def tolerance(self) -> timedelta:
        return self._tolerance

    @property
    def max_loaded_files(self) -> int:
        return self._max_loaded_files

    @property
    def file_times(self) -> TimeIntervalSlice:
        return self._file_times

    @property
    def members(self) -> dict[str, GpxFileInfo]:
        return dict(self._members)

    @property
    def lru(self) -> list[str]:
        """Keys of loaded files, most recently used first (empty when the cap is 0)."""

        return list(self._lru)

    @property
    def loaded_count(self) -> int:
        return sum(1 for info in self._members.values() if info.is_loaded)

    def files_for(self, interval: TimeInterval) -> list[GpxFileInfo]:
        return list(self._files.get(interval, ()))

    def get(self, label: str) -> GpxFileInfo | None:
        return self._members.get(label.casefold())

    def __contains__(self, label: object) -> bool:
        return isinstance(label, str) and label.casefold() in self._members

    def __len__(self) -> int:
        return len(self._members)

    def __iter__(self) -> Iterator[GpxFileInfo]:
        return iter(self._members.values())

    def add(self, label: str) -> TimeInterval:
        """Register a file and return the time range it covers.

        Raises:
            FileAlreadyAddedError: The label is already registered.
            EmptyFileError: The file has no track points.
            NoTimestampsError: The file's points all lack timestamps.
        """

        key = label.casefold()
        if key in self._members:
            raise FileAlreadyAddedError(f"file already added: {label!r}")

        with self._accessor.open(label) as stream:
            gs = summary(stream)

        interval = TimeInterval(gs.start_ns, gs.stop_ns)
        self._file_times.add(interval)

        info = GpxFileInfo(
            label=label,
            key=key,
            interval=interval,
            last_point_time_ns=gs.stop_ns,
            count=gs.count,
        )
        self._members[key] = info
        self._files.setdefault(interval, []).append(info)

        logger.info("已添加 %s：%s 个点，%s ~ %s", label, gs.count, gs.start.isoformat(), gs.stop.isoformat())
        return interval

    def ensure_loaded(self, info: GpxFileInfo) -> None:
        """Make sure the points of `info` are in memory.

        With a cap, an already loaded file is only promoted to the front of
        the LRU; otherwise the least recently used file is released when the
        cap is reached. Without a cap the file is re-read on every call.
        """

        if info.is_loaded and self._max_loaded_files > 0:
            if info.key not in self._lru:
                raise RuntimeError(f"loaded file missing from LRU: {info.label!r}")
            self._lru.move_to_end(info.key, last=False)
            logger.debug("提升 %s 至 LRU 首位", info.label)
            return

        index, points = self._load_points(info)

        if self._max_loaded_files > 0:
            while len(self._lru) >= self._max_loaded_files:
                victim_key, _ = self._lru.popitem(last=True)
                victim = self._members[victim_key]
                victim.release()
                logger.debug("释放 %s 的轨迹点（LRU）", victim.label)

        info.index = index
        info.points = points
        info.is_loaded = True

        if self._max_loaded_files > 0:
            self._lru[info.key] = None
            self._lru.move_to_end(info.key, last=False)

    def _load_points(self, info: GpxFileInfo) -> tuple[TimeSlice, dict[int, GpxPoint]]:
        index = TimeSlice()
        points: dict[int, GpxPoint] = {}

        def on_point(point: TrackPoint) -> None:
            t = point.time_ns
            if t is None:
                return
            index.add(t)
            # A later point with the same instant replaces the earlier one.
            points[t] = GpxPoint(latitude=point.latitude, longitude=point.longitude)

        with self._accessor.open(info.label) as stream:
            enumerate_track_points(stream, on_point)

        logger.debug("已加载 %s：%s 个时间点", info.label, len(index))
        return index, points

    def search(self, when: datetime) -> list[IndexHit]:
        """Points within the tolerance of `when`, sorted by time then file.

        Raises:
            NotFoundError: No file has been registered.
        """

        return self.search_ns(epoch_ns_from_dt(when))

    def search_ns(self, t: int) -> list[IndexHit]:
        if len(self._file_times) == 0:
            raise NotFoundError("index is empty")

        hits: list[IndexHit] = []
        for interval in self._file_times.containing(t):
            for info in self._files[interval]:
                self.ensure_loaded(info)
                for found in info.index.nearest(t, self._tolerance_ns):
                    insert_hit(hits, IndexHit(time_ns=found, point=info.points[found], file_info=info))

        return hits


def build_file_index(
    paths: Iterable[str | Path],
    tolerance: timedelta,
    max_loaded_files: int = 0,
) -> tuple[GpxIndex, list[tuple[str, str]]]:
    """Index every GPX file found under `paths` (files or directories).

    Files without usable points and repeated labels are skipped.

    Returns:
        (index, skipped) where skipped lists (path, reason).
    """

    index = GpxIndex(GpxFileDataAccessor(), tolerance, max_loaded_files)
    skipped: list[tuple[str, str]] = []
    for path in collect_gpx_paths(paths):
        label = str(path)
        try:
            index.add(label)
        except (EmptyFileError, FileAlreadyAddedError) as exc:
            logger.warning("跳过 %s：%s", label, exc)
            skipped.append((label, str(exc)))
    return index, skipped
