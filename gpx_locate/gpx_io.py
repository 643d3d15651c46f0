"""Whole-file helpers on top of the GPX decoder: point enumeration and summary."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import BinaryIO, Callable

from gpx_locate.gpx_parser import GpxParser
from gpx_locate.models import TrackPoint
from gpx_locate.timeutils import dt_from_epoch_ns

logger = logging.getLogger(__name__)

TrackPointCallback = Callable[[TrackPoint], None]


class EmptyFileError(ValueError):
    """The file holds no timestamped track points."""


class NoTimestampsError(EmptyFileError):
    """The file holds track points, but none of them has a timestamp."""


class SimpleGpxTrackVisitor:
    """Hand every completed track point to a callback."""

    def __init__(self, callback: TrackPointCallback) -> None:
        self._callback = callback

    def track_point_close(self, point: TrackPoint) -> None:
        self._callback(point)


def enumerate_track_points(stream: BinaryIO, callback: TrackPointCallback) -> None:
    """Call `callback` once per track point, in document order.

    Points are streamed; memory use does not grow with the file. An
    exception raised by the callback stops the enumeration and propagates.
    """

    GpxParser(stream, SimpleGpxTrackVisitor(callback)).parse()


def extract_track_points(stream: BinaryIO) -> list[TrackPoint]:
    """Load all points into memory."""

    points: list[TrackPoint] = []
    enumerate_track_points(stream, points.append)
    return points


@dataclass(frozen=True, slots=True)
class GpxSummary:
    """Time range of a GPX stream.

    Attributes:
        start_ns: Earliest point timestamp (epoch nanoseconds).
        stop_ns: Latest point timestamp (epoch nanoseconds).
        count: Number of points that carried a timestamp.
        untimed: Number of points without a timestamp (not part of the range).
    """

    start_ns: int
    stop_ns: int
    count: int
    untimed: int = 0

    @property
    def start(self) -> datetime:
        return dt_from_epoch_ns(self.start_ns)

    @property
    def stop(self) -> datetime:
        return dt_from_epoch_ns(self.stop_ns)


def summary(stream: BinaryIO) -> GpxSummary:
    """Read a stream once and establish its time range.

    Raises:
        NoTimestampsError: Points exist, but none has a timestamp.
        EmptyFileError: The stream holds no track points at all.
    """

    start_ns: int | None = None
    stop_ns: int | None = None
    count = 0
    untimed = 0

    def on_point(point: TrackPoint) -> None:
        nonlocal start_ns, stop_ns, count, untimed
        t = point.time_ns
        if t is None:
            untimed += 1
            return
        count += 1
        if start_ns is None or t < start_ns:
            start_ns = t
        if stop_ns is None or t > stop_ns:
            stop_ns = t

    enumerate_track_points(stream, on_point)

    if count == 0:
        if untimed > 0:
            raise NoTimestampsError(f"{untimed} 个轨迹点均缺少时间戳")
        raise EmptyFileError("文件中没有轨迹点")
    if untimed > 0:
        logger.warning("GPX中有 %s 个轨迹点缺少时间戳已跳过", untimed)

    return GpxSummary(start_ns=start_ns, stop_ns=stop_ns, count=count, untimed=untimed)


def file_summary(gpx_path: str | Path) -> GpxSummary:
    """Summary of a GPX file on disk."""

    with Path(gpx_path).open("rb") as f:
        return summary(f)
