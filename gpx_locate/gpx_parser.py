"""Event-driven GPX decoder built on the streaming XML visitor.

`GpxParser` recognises `gpx`, `trk`, `trkseg` and `trkpt` plus the leaf
children of `trkpt`, and forwards open/close pairs to a user visitor. The
visitor may implement any subset of:

    gpx_open(gpx) / gpx_close(gpx)
    track_open(track) / track_close(track)
    track_segment_open(segment) / track_segment_close(segment)
    track_point_open(point) / track_point_close(point)

Records are only valid between their open and close calls. Leaf values of a
point are filled in after `track_point_open`, so a visitor that needs the
complete point should read it in `track_point_close`.
"""

from __future__ import annotations

import math
import re
import struct
from typing import Any, BinaryIO, Callable, Protocol

from gpx_locate.models import Gpx, Track, TrackPoint, TrackSegment
from gpx_locate.timeutils import parse_rfc3339_ns
from gpx_locate.xml_visitor import XmlParser

_FLOAT_RE = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$")
_UINT_RE = re.compile(r"^\d+$")


class GpxDecodeError(ValueError):
    """A GPX literal (number or timestamp) could not be parsed."""


class GpxFileVisitor(Protocol):
    def gpx_open(self, gpx: Gpx) -> None: ...

    def gpx_close(self, gpx: Gpx) -> None: ...


class GpxTrackVisitor(Protocol):
    def track_open(self, track: Track) -> None: ...

    def track_close(self, track: Track) -> None: ...


class GpxTrackSegmentVisitor(Protocol):
    def track_segment_open(self, segment: TrackSegment) -> None: ...

    def track_segment_close(self, segment: TrackSegment) -> None: ...


class GpxTrackPointVisitor(Protocol):
    def track_point_open(self, point: TrackPoint) -> None: ...

    def track_point_close(self, point: TrackPoint) -> None: ...


def parse_float64(raw: str, what: str = "value") -> float:
    if not _FLOAT_RE.match(raw):
        raise GpxDecodeError(f"invalid {what}: {raw!r}")
    value = float(raw)
    if math.isinf(value):
        raise GpxDecodeError(f"{what} out of range: {raw!r}")
    return value


def parse_float32(raw: str, what: str = "value") -> float:
    """Parse a float and round it to single precision."""

    value = parse_float64(raw, what)
    try:
        return struct.unpack("f", struct.pack("f", value))[0]
    except OverflowError as exc:
        raise GpxDecodeError(f"{what} out of range: {raw!r}") from exc


def parse_uint8(raw: str, what: str = "value") -> int:
    if not _UINT_RE.match(raw):
        raise GpxDecodeError(f"invalid {what}: {raw!r}")
    value = int(raw)
    if value > 0xFF:
        raise GpxDecodeError(f"{what} out of range: {raw!r}")
    return value


def parse_timestamp(raw: str, what: str = "time") -> int:
    try:
        return parse_rfc3339_ns(raw)
    except ValueError as exc:
        raise GpxDecodeError(f"invalid {what}: {raw!r}") from exc


def _bind(visitor: Any, name: str) -> Callable[[Any], Any] | None:
    handler = getattr(visitor, name, None)
    return handler if callable(handler) else None


class _GpxXmlVisitor:
    """Translate XML visitor calls into GPX visitor calls."""

    def __init__(self, visitor: Any) -> None:
        self.current_gpx: Gpx | None = None
        self.current_track: Track | None = None
        self.current_track_segment: TrackSegment | None = None
        self.current_track_point: TrackPoint | None = None

        self._gpx_open = _bind(visitor, "gpx_open")
        self._gpx_close = _bind(visitor, "gpx_close")
        self._track_open = _bind(visitor, "track_open")
        self._track_close = _bind(visitor, "track_close")
        self._segment_open = _bind(visitor, "track_segment_open")
        self._segment_close = _bind(visitor, "track_segment_close")
        self._point_open = _bind(visitor, "track_point_open")
        self._point_close = _bind(visitor, "track_point_close")

    def handle_start(self, tag: str, attrs: dict[str, str], parser: XmlParser) -> None:
        if tag == "gpx":
            self.current_gpx = self._new_gpx(attrs)
            if self._gpx_open is not None:
                self._gpx_open(self.current_gpx)
        elif tag == "trk":
            self.current_track = Track()
            if self._track_open is not None:
                self._track_open(self.current_track)
        elif tag == "trkseg":
            self.current_track_segment = TrackSegment()
            if self._segment_open is not None:
                self._segment_open(self.current_track_segment)
        elif tag == "trkpt":
            self.current_track_point = TrackPoint(
                latitude=parse_float64(attrs.get("lat", "0"), "trkpt lat"),
                longitude=parse_float64(attrs.get("lon", "0"), "trkpt lon"),
            )
            if self._point_open is not None:
                self._point_open(self.current_track_point)

    def handle_end(self, tag: str, parser: XmlParser) -> None:
        if tag == "gpx":
            if self._gpx_close is not None:
                self._gpx_close(self.current_gpx)
            self.current_gpx = None
        elif tag == "trk":
            if self._track_close is not None:
                self._track_close(self.current_track)
            self.current_track = None
        elif tag == "trkseg":
            if self._segment_close is not None:
                self._segment_close(self.current_track_segment)
            self.current_track_segment = None
        elif tag == "trkpt":
            if self._point_close is not None:
                self._point_close(self.current_track_point)
            self.current_track_point = None

    def handle_value(self, tag: str, value: str, parser: XmlParser) -> None:
        # The closing tag has already been popped, so the top is its parent.
        stack = parser.node_stack
        parent = stack.peek_from_end(0)

        if parent == "trkpt" and self.current_track_point is not None:
            self._set_track_point_value(tag, value)
        elif tag == "time" and self.current_gpx is not None:
            if parent == "gpx" or (parent == "metadata" and stack.peek_from_end(1) == "gpx"):
                self.current_gpx.time_ns = parse_timestamp(value, "gpx time")

    def _new_gpx(self, attrs: dict[str, str]) -> Gpx:
        gpx = Gpx(
            xmlns=attrs.get("xmlns", ""),
            xsi=attrs.get("xsi", ""),
            creator=attrs.get("creator", ""),
            schema_location=attrs.get("schemaLocation", ""),
        )
        if "version" in attrs:
            gpx.version = parse_float32(attrs["version"], "gpx version")
        if "time" in attrs:
            gpx.time_ns = parse_timestamp(attrs["time"], "gpx time")
        return gpx

    def _set_track_point_value(self, tag: str, value: str) -> None:
        point = self.current_track_point
        if tag == "ele":
            point.elevation = parse_float32(value, "ele")
        elif tag == "course":
            point.course = parse_float32(value, "course")
        elif tag == "speed":
            point.speed = parse_float32(value, "speed")
        elif tag == "hdop":
            point.hdop = parse_float32(value, "hdop")
        elif tag == "src":
            point.src = value
        elif tag == "sat":
            point.satellite_count = parse_uint8(value, "sat")
        elif tag == "time":
            point.time_ns = parse_timestamp(value, "trkpt time")


class GpxParser:
    """Decode one GPX stream into visitor calls.

    Args:
        stream: Readable binary stream holding a GPX document.
        visitor: Object implementing any subset of the GPX handlers.

    Raises (from `parse`):
        XmlSyntaxError: Malformed XML.
        GpxDecodeError: An unparseable number or timestamp.
        Exception: Whatever a visitor handler raised, unchanged.
    """

    def __init__(self, stream: BinaryIO, visitor: Any) -> None:
        self._xml_visitor = _GpxXmlVisitor(visitor)
        self._xml_parser = XmlParser(stream, self._xml_visitor)

    @property
    def xml_parser(self) -> XmlParser:
        return self._xml_parser

    def parse(self) -> None:
        self._xml_parser.parse()
