from __future__ import annotations

import pytest

from gpx_locate.accessors import (
    AccessorError,
    GpxBufferedDataAccessor,
    GpxFileDataAccessor,
    LabelAlreadyAddedError,
    LabelNotFoundError,
    collect_gpx_paths,
)


def test_buffered_accessor_fresh_streams():
    a = GpxBufferedDataAccessor()
    a.add("x", b"<gpx/>")
    a.add("y", "<gpx>é</gpx>")

    with a.open("x") as f:
        assert f.read() == b"<gpx/>"
    # every open starts from the beginning
    with a.open("x") as f:
        assert f.read(4) == b"<gpx"
    with a.open("y") as f:
        assert f.read() == "<gpx>é</gpx>".encode("utf-8")

    assert "x" in a
    assert "z" not in a
    assert len(a) == 2


def test_buffered_accessor_errors():
    a = GpxBufferedDataAccessor()
    a.add("x", b"")
    with pytest.raises(LabelAlreadyAddedError):
        a.add("x", b"again")
    with pytest.raises(LabelNotFoundError):
        a.open("missing")
    with pytest.raises(AccessorError):
        a.open("missing")


def test_file_accessor(tmp_path):
    p = tmp_path / "t.gpx"
    p.write_bytes(b"<gpx/>")
    with GpxFileDataAccessor().open(str(p)) as f:
        assert f.read() == b"<gpx/>"
    with pytest.raises(OSError):
        GpxFileDataAccessor().open(str(tmp_path / "missing.gpx"))


def test_collect_gpx_paths(gpx_dir):
    explicit = gpx_dir / "notes.txt"
    paths = collect_gpx_paths([gpx_dir, explicit])
    names = [p.name for p in paths]
    assert names == ["empty.gpx", "file-1.gpx", "file-2.GPX", "notes.txt"]
