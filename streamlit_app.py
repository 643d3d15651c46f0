from __future__ import annotations

import threading
from datetime import datetime, timedelta
from pathlib import Path

import streamlit as st

from gpx_locate.gpx_index import GpxIndex, IndexHit, NotFoundError, build_file_index
from gpx_locate.models import DEFAULT_MAX_LOADED_FILES, DEFAULT_TOLERANCE_SECONDS, DEFAULT_TZ
from gpx_locate.timeutils import dt_from_epoch_ns, epoch_ns_from_dt, tzinfo_from_name


def _hhmmss(seconds: float) -> str:
    s = int(round(abs(seconds)))
    h = s // 3600
    m = (s % 3600) // 60
    sec = s % 60
    sign = "-" if seconds < 0 else "+"
    return f"{sign}{h:02d}:{m:02d}:{sec:02d}"


def _dir_mtime(gpx_dir: str) -> float:
    """Latest mtime below the directory, so new or edited files rebuild the index."""

    p = Path(gpx_dir)
    mtimes = [f.stat().st_mtime for f in p.rglob("*.gpx") if f.is_file()]
    return max(mtimes, default=p.stat().st_mtime)


@st.cache_resource(show_spinner=False)
def _load_index(
    gpx_dir: str, tolerance_seconds: float, max_loaded_files: int, mtime: float
) -> tuple[GpxIndex, list[tuple[str, str]], threading.Lock]:
    _ = mtime  # part of cache key so updated files reload automatically
    index, skipped = build_file_index([gpx_dir], timedelta(seconds=tolerance_seconds), max_loaded_files)
    # The cached index is shared by every session; searches load and evict files.
    return index, skipped, threading.Lock()


def _search(index: GpxIndex, lock: threading.Lock, when: datetime) -> tuple[list[IndexHit], int]:
    """Search while holding the index lock. Returns (hits, loaded file count)."""

    with lock:
        return index.search(when), index.loaded_count


def _hit_rows(hits: list[IndexHit], query_ns: int, tz_name: str) -> list[dict[str, object]]:
    return [
        {
            "time": dt_from_epoch_ns(h.time_ns, tz_name).isoformat(sep=" "),
            "offset": _hhmmss((h.time_ns - query_ns) / 1e9),
            "latitude": h.point.latitude,
            "longitude": h.point.longitude,
            "file": h.file_info.label,
        }
        for h in hits
    ]


def main() -> None:
    st.set_page_config(page_title="GPX 轨迹：按时间查位置", layout="wide")
    st.title("GPX 轨迹：某个时刻我在哪里")

    with st.sidebar:
        st.subheader("数据与时区")
        tz_name = st.text_input("时区（IANA）", value=DEFAULT_TZ)
        gpx_dir = st.text_input("GPX 目录（递归查找 *.gpx）", value="sample_data")

        with st.expander("高级参数（通常不用改）", expanded=False):
            tolerance_seconds = st.number_input(
                "tolerance_seconds（默认 5min）", value=DEFAULT_TOLERANCE_SECONDS, min_value=0.0, step=60.0
            )
            max_loaded_files = st.number_input(
                "max_loaded_files（0 表示不限制）", value=DEFAULT_MAX_LOADED_FILES, min_value=0, step=1
            )

        st.subheader("查询时间")
        now = datetime.now(tzinfo_from_name(tz_name))
        query_d = st.date_input("日期", value=now.date())
        query_t = st.time_input("时间", value=now.time().replace(microsecond=0), step=60)

    p = Path(gpx_dir)
    if not p.is_dir():
        st.error(f"找不到目录：{gpx_dir!r}。可以先运行 scripts/generate_sample_gpx.py 生成示例数据。")
        return

    try:
        index, skipped, lock = _load_index(gpx_dir, float(tolerance_seconds), int(max_loaded_files), _dir_mtime(gpx_dir))
    except Exception as exc:
        st.exception(exc)
        return

    if skipped:
        with st.expander(f"跳过的文件（{len(skipped)}）", expanded=False):
            st.dataframe([{"file": f, "reason": r} for f, r in skipped], use_container_width=True)

    query = datetime.combine(query_d, query_t).replace(tzinfo=tzinfo_from_name(tz_name))
    try:
        hits, loaded_count = _search(index, lock, query)
    except NotFoundError:
        st.error("目录中没有可用的 GPX 文件（需要带时间戳的轨迹点）。")
        return

    st.subheader("汇总")
    c1, c2, c3 = st.columns(3)
    c1.metric("已索引文件数", str(len(index)))
    c2.metric("命中点数", str(len(hits)))
    c3.metric("已加载文件数", str(loaded_count))

    if not hits:
        st.info(f"{query.isoformat(sep=' ')} 前后 {_hhmmss(float(tolerance_seconds))[1:]} 内没有轨迹点。")
        return

    query_ns = epoch_ns_from_dt(query)
    st.subheader("命中的轨迹点（按时间、文件排序）")
    st.dataframe(_hit_rows(hits, query_ns, tz_name), use_container_width=True, height=360)
    st.map({"lat": [h.point.latitude for h in hits], "lon": [h.point.longitude for h in hits]})

    st.caption("说明：只加载时间范围覆盖查询时刻的文件；与查询时刻相差不超过容差的点都算命中。")


if __name__ == "__main__":
    main()
