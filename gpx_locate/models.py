"""Data models for decoded GPX records and located points."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Final

from gpx_locate.timeutils import dt_from_epoch_ns


@dataclass(slots=True)
class Gpx:
    """The `<gpx>` root element.

    Attributes:
        xmlns: Default namespace URI.
        xsi: URI bound to the `xsi` prefix.
        version: GPX version, single precision. 0.0 if absent.
        creator: Producing application.
        schema_location: Value of `xsi:schemaLocation`.
        time_ns: Root-level timestamp as epoch nanoseconds, if any.
    """

    xmlns: str = ""
    xsi: str = ""
    version: float = 0.0
    creator: str = ""
    schema_location: str = ""
    time_ns: int | None = None

    @property
    def time(self) -> datetime | None:
        return None if self.time_ns is None else dt_from_epoch_ns(self.time_ns)

    def __str__(self) -> str:
        return f"GPX<C=[{self.creator}]>"


@dataclass(slots=True)
class Track:
    """A `<trk>` element."""

    def __str__(self) -> str:
        return "Track<>"


@dataclass(slots=True)
class TrackSegment:
    """A `<trkseg>` element."""

    def __str__(self) -> str:
        return "TrackSegment<>"


@dataclass(slots=True)
class TrackPoint:
    """A single `<trkpt>` fix.

    Attributes:
        latitude: Latitude in decimal degrees.
        longitude: Longitude in decimal degrees.
        elevation: Elevation in meters (single precision).
        course: Course over ground in degrees (single precision).
        speed: Speed in meters/second (single precision).
        hdop: Horizontal dilution of precision (single precision).
        src: Source of the fix, e.g. "gps".
        satellite_count: Number of satellites, 0..255.
        time_ns: Epoch nanoseconds. None if the point carried no `<time>`.

    Numeric children that are missing from the document stay 0.
    """

    latitude: float = 0.0
    longitude: float = 0.0
    elevation: float = 0.0
    course: float = 0.0
    speed: float = 0.0
    hdop: float = 0.0
    src: str = ""
    satellite_count: int = 0
    time_ns: int | None = None

    @property
    def time(self) -> datetime | None:
        """UTC datetime view of `time_ns` (microsecond precision)."""

        return None if self.time_ns is None else dt_from_epoch_ns(self.time_ns)

    def __str__(self) -> str:
        return (
            f"TrackPoint<LAT=({self.latitude:.8f}) LON=({self.longitude:.8f}) ELV=({self.elevation:f}) "
            f"CRS=({self.course:f}) SPD=({self.speed:f}) HDOP=({self.hdop:f}) SRC=[{self.src}] "
            f"SAT=({self.satellite_count}) TIME=[{self.time}]>"
        )


@dataclass(frozen=True, slots=True)
class GpxPoint:
    """A location kept in the point index of a loaded file."""

    latitude: float
    longitude: float


DEFAULT_TZ: Final[str] = "UTC"
DEFAULT_TOLERANCE_SECONDS: Final[float] = 5 * 60.0
# 0 keeps every loaded file in memory and disables the LRU.
DEFAULT_MAX_LOADED_FILES: Final[int] = 0
