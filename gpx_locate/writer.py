"""Minimal GPX writer: gpx/trk/trkseg/trkpt and the point leaves."""

from __future__ import annotations

import struct
from contextlib import AbstractContextManager, contextmanager
from pathlib import Path
from typing import Iterable, Iterator, TextIO
from xml.sax.saxutils import XMLGenerator

from gpx_locate.models import TrackPoint
from gpx_locate.timeutils import format_rfc3339_ns

GPX_NAMESPACE = "http://www.topografix.com/GPX/1/1"
XSI_NAMESPACE = "http://www.w3.org/2001/XMLSchema-instance"
GPX_SCHEMA_LOCATION = "http://www.topografix.com/GPX/1/1 http://www.topografix.com/GPX/1/1/gpx.xsd"


def _format_float32(value: float) -> str:
    """Shortest decimal that reads back as the same single-precision value."""

    packed = struct.pack("f", value)
    for precision in range(1, 10):
        text = f"{value:.{precision}g}"
        if struct.pack("f", float(text)) == packed:
            return text
    return repr(value)


class GpxWriter:
    """Stream a GPX 1.1 document to a text stream.

    Elements are emitted through `XMLGenerator` as they are written, so
    nothing is buffered beyond the current line.

    Usage:
        with GpxWriter(f, creator="me") as w:
            with w.track(), w.segment():
                w.point(tp)
    """

    def __init__(self, out: TextIO, creator: str = "gpx_locate", indent: str = "  ") -> None:
        self._gen = XMLGenerator(out, encoding="UTF-8")
        self._creator = creator
        self._indent = indent
        self._depth = 0
        self._open = False

    def __enter__(self) -> GpxWriter:
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self.end()

    def start(self) -> None:
        if self._open:
            raise RuntimeError("gpx element already started")
        self._gen.startDocument()
        self._gen.startElement(
            "gpx",
            {
                "xmlns": GPX_NAMESPACE,
                "xmlns:xsi": XSI_NAMESPACE,
                "version": "1.1",
                "creator": self._creator,
                "xsi:schemaLocation": GPX_SCHEMA_LOCATION,
            },
        )
        self._gen.ignorableWhitespace("\n")
        self._open = True
        self._depth = 1

    def end(self) -> None:
        if not self._open:
            raise RuntimeError("gpx element not started")
        self._gen.endElement("gpx")
        self._gen.ignorableWhitespace("\n")
        self._gen.endDocument()
        self._open = False
        self._depth = 0

    def _newline(self) -> None:
        self._gen.ignorableWhitespace("\n")

    def _start(self, tag: str, attrs: dict[str, str] | None = None) -> None:
        self._gen.ignorableWhitespace(self._indent * self._depth)
        self._gen.startElement(tag, attrs or {})
        self._newline()
        self._depth += 1

    def _end(self, tag: str) -> None:
        self._depth -= 1
        self._gen.ignorableWhitespace(self._indent * self._depth)
        self._gen.endElement(tag)
        self._newline()

    def _leaf(self, tag: str, text: str) -> None:
        self._gen.ignorableWhitespace(self._indent * self._depth)
        self._gen.startElement(tag, {})
        self._gen.characters(text)
        self._gen.endElement(tag)
        self._newline()

    @contextmanager
    def _element(self, tag: str) -> Iterator[None]:
        if not self._open:
            raise RuntimeError("gpx element not started")
        self._start(tag)
        try:
            yield
        finally:
            self._end(tag)

    def track(self) -> AbstractContextManager[None]:
        return self._element("trk")

    def segment(self) -> AbstractContextManager[None]:
        return self._element("trkseg")

    def point(self, tp: TrackPoint) -> None:
        """Write one `<trkpt>`; zero-valued optional children are omitted."""

        if not self._open:
            raise RuntimeError("gpx element not started")
        self._start("trkpt", {"lat": repr(tp.latitude), "lon": repr(tp.longitude)})
        if tp.elevation:
            self._leaf("ele", _format_float32(tp.elevation))
        if tp.time_ns is not None:
            self._leaf("time", format_rfc3339_ns(tp.time_ns))
        if tp.course:
            self._leaf("course", _format_float32(tp.course))
        if tp.speed:
            self._leaf("speed", _format_float32(tp.speed))
        if tp.src:
            self._leaf("src", tp.src)
        if tp.satellite_count:
            self._leaf("sat", str(tp.satellite_count))
        if tp.hdop:
            self._leaf("hdop", _format_float32(tp.hdop))
        self._end("trkpt")


def write_gpx(
    segments: Iterable[Iterable[TrackPoint]],
    out_path: str | Path,
    creator: str = "gpx_locate",
) -> int:
    """Write one track made of the given segments. Returns the point count."""

    n = 0
    p = Path(out_path)
    with p.open("w", encoding="utf-8") as f:
        with GpxWriter(f, creator=creator) as w, w.track():
            for points in segments:
                with w.segment():
                    for tp in points:
                        w.point(tp)
                        n += 1
    return n
