"""Inspect decoded GPX points and export readable time series."""

from __future__ import annotations

import csv
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Sequence

from gpx_locate.gpx_index import IndexHit
from gpx_locate.models import TrackPoint
from gpx_locate.timeutils import DeltaStats, delta_stats, dt_from_epoch_ns


@dataclass(frozen=True, slots=True)
class InspectResult:
    """High-level GPX inspection result."""

    points_total: int
    points_timed: int
    min_time_ns: int | None
    max_time_ns: int | None
    delta: DeltaStats | None
    min_lat: float | None
    max_lat: float | None
    min_lon: float | None
    max_lon: float | None
    duplicates_time: int


def inspect_points(points: Sequence[TrackPoint]) -> InspectResult:
    """Inspect already-loaded points."""

    if not points:
        return InspectResult(
            points_total=0,
            points_timed=0,
            min_time_ns=None,
            max_time_ns=None,
            delta=None,
            min_lat=None,
            max_lat=None,
            min_lon=None,
            max_lon=None,
            duplicates_time=0,
        )

    times = sorted(p.time_ns for p in points if p.time_ns is not None)
    dupe = 0
    for i in range(1, len(times)):
        if times[i] == times[i - 1]:
            dupe += 1

    lats = [p.latitude for p in points]
    lons = [p.longitude for p in points]
    return InspectResult(
        points_total=len(points),
        points_timed=len(times),
        min_time_ns=times[0] if times else None,
        max_time_ns=times[-1] if times else None,
        delta=delta_stats(times),
        min_lat=min(lats),
        max_lat=max(lats),
        min_lon=min(lons),
        max_lon=max(lons),
        duplicates_time=dupe,
    )


def export_readable_csv(points: Iterable[TrackPoint], out_path: str | Path, tz_name: str) -> None:
    """Export points to a human-readable CSV.

    Output columns:
        - time_local: ISO datetime (local timezone), empty for untimed points
        - epoch_ns, latitude, longitude, elevation, course, speed, hdop, src, satellites
    """

    p = Path(out_path)
    with p.open("w", encoding="utf-8", newline="") as f:
        w = csv.DictWriter(
            f,
            fieldnames=[
                "time_local",
                "epoch_ns",
                "latitude",
                "longitude",
                "elevation",
                "course",
                "speed",
                "hdop",
                "src",
                "satellites",
            ],
        )
        w.writeheader()
        for pt in points:
            w.writerow(
                {
                    "time_local": (
                        "" if pt.time_ns is None else dt_from_epoch_ns(pt.time_ns, tz_name).isoformat(sep=" ")
                    ),
                    "epoch_ns": "" if pt.time_ns is None else pt.time_ns,
                    "latitude": pt.latitude,
                    "longitude": pt.longitude,
                    "elevation": pt.elevation,
                    "course": pt.course,
                    "speed": pt.speed,
                    "hdop": pt.hdop,
                    "src": pt.src,
                    "satellites": pt.satellite_count,
                }
            )


def export_hits_csv(hits: Iterable[tuple[str, IndexHit]], out_path: str | Path, tz_name: str) -> int:
    """Export (query, hit) pairs to CSV. Returns the number of rows written."""

    p = Path(out_path)
    n = 0
    with p.open("w", encoding="utf-8", newline="") as f:
        w = csv.DictWriter(f, fieldnames=["query", "time_local", "epoch_ns", "latitude", "longitude", "file"])
        w.writeheader()
        for query, hit in hits:
            w.writerow(
                {
                    "query": query,
                    "time_local": dt_from_epoch_ns(hit.time_ns, tz_name).isoformat(sep=" "),
                    "epoch_ns": hit.time_ns,
                    "latitude": hit.point.latitude,
                    "longitude": hit.point.longitude,
                    "file": hit.file_info.label,
                }
            )
            n += 1
    return n
