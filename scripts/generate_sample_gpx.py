from __future__ import annotations

import argparse
import random
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Final

from gpx_locate.models import TrackPoint
from gpx_locate.timeutils import epoch_ns_from_dt
from gpx_locate.writer import write_gpx


CREATOR: Final[str] = "generate_sample_gpx"


@dataclass(frozen=True, slots=True)
class Cluster:
    name: str
    lat: float
    lon: float


def generate_segments(
    *,
    points: int,
    seed: int,
    start: datetime,
    cluster: Cluster,
) -> list[list[TrackPoint]]:
    """Generate fake track segments with realistic-ish movement and pauses.

    A gap of more than 30 minutes starts a new segment.
    """

    rng = random.Random(seed)
    cur = start
    lat, lon = cluster.lat, cluster.lon

    segments: list[list[TrackPoint]] = [[]]
    for _ in range(points):
        # Time step: usually 5-60 seconds, sometimes a 30-90 minute pause
        if rng.random() < 0.02:
            cur = cur + timedelta(minutes=rng.uniform(30, 90))
            if segments[-1]:
                segments.append([])
        else:
            cur = cur + timedelta(seconds=rng.uniform(5, 60))

        lat += rng.uniform(-0.0004, 0.0004)
        lon += rng.uniform(-0.0004, 0.0004)

        segments[-1].append(
            TrackPoint(
                latitude=round(lat, 7),
                longitude=round(lon, 7),
                elevation=round(rng.uniform(0, 600), 1),
                course=round(rng.uniform(0, 360), 1),
                speed=rng.choice([0.0, round(rng.uniform(0.5, 2.5), 1), round(rng.uniform(3.0, 12.0), 1)]),
                hdop=rng.choice([0.8, 1.0, 1.5, 2.0, 3.5]),
                src="gps",
                satellite_count=rng.randint(4, 14),
                time_ns=epoch_ns_from_dt(cur.replace(microsecond=0)),
            )
        )

    return segments


def main() -> int:
    p = argparse.ArgumentParser(description="Generate fake GPX files for demo/testing (privacy-safe).")
    p.add_argument("--out-dir", type=str, default="sample_data", help="Output directory")
    p.add_argument("--files", type=int, default=3, help="Number of GPX files (one per day)")
    p.add_argument("--points", type=int, default=500, help="Points per file")
    p.add_argument("--seed", type=int, default=42, help="Random seed (reproducible)")
    p.add_argument(
        "--start",
        type=str,
        default="2016-12-02 08:00:00",
        help="Start time of the first file in UTC, e.g. '2016-12-02 08:00:00'",
    )
    args = p.parse_args()

    start = datetime.fromisoformat(args.start).replace(tzinfo=UTC)
    clusters = [
        Cluster("seattle", 47.6062000, -122.3321000),
        Cluster("mount_vernon", 48.4212000, -122.3340000),
        Cluster("bellingham", 48.7519000, -122.4787000),
    ]

    out_dir = Path(args.out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    total = 0
    for i in range(args.files):
        day_start = start + timedelta(days=i)
        segments = generate_segments(
            points=args.points,
            seed=args.seed + i,
            start=day_start,
            cluster=clusters[i % len(clusters)],
        )
        out_path = out_dir / f"track-{day_start:%Y%m%d}.gpx"
        n = write_gpx(segments, out_path, creator=CREATOR)
        total += n
        print(f"Generated: {out_path} (points={n}, segments={len(segments)})")

    print(f"Done: {args.files} files, {total} points, seed={args.seed}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
