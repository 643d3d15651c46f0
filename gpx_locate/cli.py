"""Command-line interface for gpx_locate.

Run:
    python -m gpx_locate locate --gpx tracks/ --time "2016-12-03 07:23:50"
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import asdict
from datetime import timedelta
from pathlib import Path

from gpx_locate.gpx_index import IndexHit, NotFoundError, build_file_index
from gpx_locate.gpx_io import EmptyFileError, extract_track_points, file_summary
from gpx_locate.gpx_parser import GpxParser
from gpx_locate.inspect import export_hits_csv, export_readable_csv, inspect_points
from gpx_locate.models import (
    DEFAULT_MAX_LOADED_FILES,
    DEFAULT_TOLERANCE_SECONDS,
    DEFAULT_TZ,
    Gpx,
    Track,
    TrackPoint,
    TrackSegment,
)
from gpx_locate.timeutils import dt_from_epoch_ns, parse_dt


class _PrintingGpxVisitor:
    """Print every structural element as it is decoded."""

    def gpx_open(self, gpx: Gpx) -> None:
        print(f"GPX: {gpx}")

    def track_open(self, track: Track) -> None:
        print(f"Track: {track}")

    def track_segment_open(self, segment: TrackSegment) -> None:
        print(f"Track segment: {segment}")

    def track_point_close(self, point: TrackPoint) -> None:
        print(f"Point: {point}")


def _load_points(gpx_path: str) -> list[TrackPoint]:
    with Path(gpx_path).open("rb") as f:
        return extract_track_points(f)


def _cmd_summary(args: argparse.Namespace) -> int:
    payload: list[dict[str, object]] = []
    rc = 0
    for path in args.gpx:
        try:
            gs = file_summary(path)
        except EmptyFileError as exc:
            print(f"{path}: {exc}", file=sys.stderr)
            rc = 1
            continue

        start = dt_from_epoch_ns(gs.start_ns, args.tz)
        stop = dt_from_epoch_ns(gs.stop_ns, args.tz)
        if args.json:
            payload.append(
                {
                    "path": path,
                    "start": start.isoformat(),
                    "stop": stop.isoformat(),
                    "count": gs.count,
                    "untimed": gs.untimed,
                }
            )
        else:
            print(f"### {path}")
            print(f"start={start.isoformat(sep=' ')}, end={stop.isoformat(sep=' ')}")
            print(f"points={gs.count}, untimed={gs.untimed}")
            print()

    if args.json:
        print(json.dumps(payload, ensure_ascii=False, indent=2))
    return rc


def _cmd_dump(args: argparse.Namespace) -> int:
    with Path(args.gpx).open("rb") as f:
        GpxParser(f, _PrintingGpxVisitor()).parse()
    return 0


def _cmd_inspect(args: argparse.Namespace) -> int:
    points = _load_points(args.gpx)
    res = inspect_points(points)

    print("### 轨迹点数")
    print(f"total={res.points_total}, timed={res.points_timed}")
    print()

    if res.min_time_ns is not None and res.max_time_ns is not None:
        print("### 时间范围（本地时区）")
        start = dt_from_epoch_ns(res.min_time_ns, args.tz)
        end = dt_from_epoch_ns(res.max_time_ns, args.tz)
        print(f"start={start.isoformat(sep=' ')}, end={end.isoformat(sep=' ')}")
        print()

    if res.delta is not None:
        print("### 采样间隔（秒）")
        print(
            f"count={res.delta.count}, min={res.delta.min_s:.3f}, median={res.delta.median_s:.3f}, "
            f"p95={res.delta.p95_s:.3f}, max={res.delta.max_s:.3f}"
        )
        print()

    print("### 经纬度范围（粗略）")
    print(f"lat=[{res.min_lat}, {res.max_lat}], lon=[{res.min_lon}, {res.max_lon}]")
    print()

    print("### 重复时间戳")
    print(res.duplicates_time)
    print()

    if args.json:
        print(json.dumps(asdict(res), ensure_ascii=False, indent=2))
    return 0


def _cmd_export_readable(args: argparse.Namespace) -> int:
    points = _load_points(args.gpx)
    export_readable_csv(points, args.out, args.tz)
    print(f"已导出：{args.out}（{len(points)} 个点）")
    return 0


def _hit_payload(query: str, hit: IndexHit, tz_name: str) -> dict[str, object]:
    return {
        "query": query,
        "time": dt_from_epoch_ns(hit.time_ns, tz_name).isoformat(),
        "latitude": hit.point.latitude,
        "longitude": hit.point.longitude,
        "file": hit.file_info.label,
    }


def _cmd_locate(args: argparse.Namespace) -> int:
    try:
        queries = [(text, parse_dt(text, args.tz)) for text in args.time]
    except ValueError as exc:
        print(str(exc), file=sys.stderr)
        return 2

    index, skipped = build_file_index(
        args.gpx,
        timedelta(seconds=args.tolerance_seconds),
        args.max_loaded_files,
    )
    for path, reason in skipped:
        print(f"跳过：{path}（{reason}）", file=sys.stderr)

    rc = 0
    found: list[tuple[str, IndexHit]] = []
    for text, when in queries:
        try:
            hits = index.search(when)
        except NotFoundError:
            print("索引为空：没有可用的GPX文件", file=sys.stderr)
            return 1

        if not hits:
            rc = 1
            if not args.json:
                print(f"未找到：{text}")
            continue

        for hit in hits:
            found.append((text, hit))
            if not args.json:
                t = dt_from_epoch_ns(hit.time_ns, args.tz)
                print(
                    f"MATCH: [{t.isoformat(sep=' ')}] ({hit.point.latitude:f}, {hit.point.longitude:f}) "
                    f"IN [{hit.file_info.label}]"
                )

    if args.json:
        payload = [_hit_payload(q, h, args.tz) for q, h in found]
        print(json.dumps(payload, ensure_ascii=False, indent=2))
    if args.out:
        n = export_hits_csv(found, args.out, args.tz)
        print(f"已导出：{args.out}（{n} 行）", file=sys.stderr)
    return rc


def build_parser() -> argparse.ArgumentParser:
    """Build CLI parser."""

    p = argparse.ArgumentParser(prog="gpx_locate")
    p.add_argument(
        "--log-level",
        type=str,
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="日志级别",
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    p_sum = sub.add_parser("summary", help="每个GPX文件的时间范围与点数")
    p_sum.add_argument("--gpx", type=str, nargs="+", required=True, help="GPX文件路径")
    p_sum.add_argument("--tz", type=str, default=DEFAULT_TZ, help="时区（IANA），默认 UTC")
    p_sum.add_argument("--json", action="store_true", help="输出JSON（便于后处理）")
    p_sum.set_defaults(func=_cmd_summary)

    p_dump = sub.add_parser("dump", help="逐个打印解析出的 gpx/trk/trkseg/trkpt")
    p_dump.add_argument("--gpx", type=str, required=True, help="GPX文件路径")
    p_dump.set_defaults(func=_cmd_dump)

    p_ins = sub.add_parser("inspect", help="分析GPX文件的时间范围/采样间隔等")
    p_ins.add_argument("--gpx", type=str, required=True, help="GPX文件路径")
    p_ins.add_argument("--tz", type=str, default=DEFAULT_TZ, help="时区（IANA）")
    p_ins.add_argument("--json", action="store_true", help="额外输出JSON（便于后处理）")
    p_ins.set_defaults(func=_cmd_inspect)

    p_exp = sub.add_parser("export-readable", help="导出可读时间的轨迹点CSV")
    p_exp.add_argument("--gpx", type=str, required=True, help="GPX文件路径")
    p_exp.add_argument("--out", type=str, default="readable.csv", help="输出CSV路径")
    p_exp.add_argument("--tz", type=str, default=DEFAULT_TZ, help="时区（IANA）")
    p_exp.set_defaults(func=_cmd_export_readable)

    p_loc = sub.add_parser("locate", help="查询某个时刻所在的位置（可跨多个GPX文件）")
    p_loc.add_argument("--gpx", type=str, nargs="+", required=True, help="GPX文件或目录（目录递归查找 *.gpx）")
    p_loc.add_argument(
        "--time",
        type=str,
        action="append",
        required=True,
        help="查询时间（可多次指定），例如 2016-12-03 07:23:50",
    )
    p_loc.add_argument("--tz", type=str, default=DEFAULT_TZ, help="无时区的查询时间按该时区解释；输出也用该时区")
    p_loc.add_argument(
        "--tolerance-seconds",
        type=float,
        default=DEFAULT_TOLERANCE_SECONDS,
        help="与查询时间相差不超过该秒数的轨迹点都算命中（默认5分钟）",
    )
    p_loc.add_argument(
        "--max-loaded-files",
        type=int,
        default=DEFAULT_MAX_LOADED_FILES,
        help="同时加载到内存的文件数上限（LRU淘汰）；0 表示不限制",
    )
    p_loc.add_argument("--json", action="store_true", help="以JSON输出命中结果")
    p_loc.add_argument("--out", type=str, default=None, help="可选：把命中结果导出为CSV")
    p_loc.set_defaults(func=_cmd_locate)

    return p


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint."""

    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s %(name)s: %(message)s")
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
