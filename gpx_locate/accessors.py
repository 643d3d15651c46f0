"""Data accessors: open a fresh byte stream for a file label."""

from __future__ import annotations

import io
from pathlib import Path
from typing import BinaryIO, Iterable, Protocol


class AccessorError(OSError):
    """The accessor could not produce a stream."""


class LabelAlreadyAddedError(AccessorError):
    pass


class LabelNotFoundError(AccessorError):
    pass


class GpxDataAccessor(Protocol):
    def open(self, label: str) -> BinaryIO:
        """Return a new readable, closeable stream for `label`."""
        ...


class GpxFileDataAccessor:
    """Treat labels as filesystem paths."""

    def open(self, label: str) -> BinaryIO:
        return Path(label).open("rb")


class GpxBufferedDataAccessor:
    """Serve pre-registered in-memory documents."""

    def __init__(self) -> None:
        self._sources: dict[str, bytes] = {}

    def add(self, label: str, data: bytes | str) -> None:
        if label in self._sources:
            raise LabelAlreadyAddedError(f"label already added: {label!r}")
        self._sources[label] = data.encode("utf-8") if isinstance(data, str) else bytes(data)

    def open(self, label: str) -> BinaryIO:
        try:
            data = self._sources[label]
        except KeyError:
            raise LabelNotFoundError(f"label not found: {label!r}") from None
        return io.BytesIO(data)

    def __contains__(self, label: object) -> bool:
        return label in self._sources

    def __len__(self) -> int:
        return len(self._sources)


def collect_gpx_paths(paths: Iterable[str | Path]) -> list[Path]:
    """Expand directories (recursively) into their `*.gpx` files.

    Files given explicitly are kept whatever their suffix. Order follows the
    arguments; files found in a directory are sorted.
    """

    out: list[Path] = []
    for raw in paths:
        p = Path(raw)
        if p.is_dir():
            out.extend(sorted(f for f in p.rglob("*") if f.is_file() and f.suffix.lower() == ".gpx"))
        else:
            out.append(p)
    return out
