from __future__ import annotations

import pytest

from gpx_locate.accessors import GpxBufferedDataAccessor


GPX_FILE_1 = """<?xml version="1.0" encoding="UTF-8"?>
<!-- recorded by a handheld unit -->
<gpx xmlns="http://www.topografix.com/GPX/1/1" xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance" version="1.1" creator="GPSLogger 19 - http://gpslogger.mendhak.com/" xsi:schemaLocation="http://www.topografix.com/GPX/1/1 http://www.topografix.com/GPX/1/1/gpx.xsd">
  <metadata>
    <time>2016-12-02T08:05:44Z</time>
  </metadata>
  <trk>
    <name>Skagit</name>
    <trkseg>
      <trkpt lat="48.45662045478821" lon="-122.34096348285675">
        <ele>-12.0</ele>
        <time>2016-12-02T08:05:44Z</time>
        <course>0.0</course>
        <speed>0.0</speed>
        <src>gps</src>
        <sat>7</sat>
        <hdop>1.6</hdop>
      </trkpt>
      <trkpt lat="48.45660801231861" lon="-122.34107300639153">
        <ele>3.5</ele>
        <time>2016-12-02T16:16:23Z</time>
        <src>gps</src>
        <sat>9</sat>
      </trkpt>
      <trkpt lat="48.45667314529419" lon="-122.34124839305878">
        <time>2016-12-02T16:27:08Z</time>
        <extensions>
          <speed>99.0</speed>
        </extensions>
      </trkpt>
    </trkseg>
    <trkseg>
      <trkpt lat="48.45672936673762" lon="-122.34140644128601">
        <ele>11.25</ele>
        <time>2016-12-03T07:23:50Z</time>
        <course>212.5</course>
        <speed>1.25</speed>
        <src>gps</src>
        <sat>11</sat>
        <hdop>0.9</hdop>
      </trkpt>
      <trkpt lat="48.45699017494917" lon="-122.34180178493261">
        <time>2016-12-03T07:29:20Z</time>
      </trkpt>
      <trkpt lat="48.45711678639054" lon="-122.34196305274963">
        <time>2016-12-03T07:57:07Z</time>
      </trkpt>
    </trkseg>
  </trk>
</gpx>
"""

GPX_FILE_2 = """<gpx xmlns="http://www.topografix.com/GPX/1/1" version="1.1" creator="test">
  <trk>
    <trkseg>
      <trkpt lat="48.4574" lon="-122.3412">
        <time>2016-12-22T07:13:21Z</time>
      </trkpt>
    </trkseg>
  </trk>
</gpx>
"""

GPX_NO_POINTS = """<?xml version="1.0" encoding="UTF-8"?>
<gpx version="1.1" creator="test">
  <trk>
    <trkseg>
    </trkseg>
  </trk>
</gpx>
"""

GPX_UNTIMED = """<gpx version="1.1" creator="test">
  <trk>
    <trkseg>
      <trkpt lat="1.0" lon="2.0"><ele>5</ele></trkpt>
      <trkpt lat="1.5" lon="2.5"></trkpt>
    </trkseg>
  </trk>
</gpx>
"""

GPX_PARTLY_TIMED = """<gpx version="1.1" creator="test">
  <trk>
    <trkseg>
      <trkpt lat="1.0" lon="2.0"><time>2020-01-01T00:00:10Z</time></trkpt>
      <trkpt lat="1.1" lon="2.1"></trkpt>
      <trkpt lat="1.2" lon="2.2"><time>2020-01-01T00:00:00Z</time></trkpt>
    </trkseg>
  </trk>
</gpx>
"""


@pytest.fixture()
def gpx_file_1() -> str:
    return GPX_FILE_1


@pytest.fixture()
def gpx_file_2() -> str:
    return GPX_FILE_2


@pytest.fixture()
def gpx_no_points() -> str:
    return GPX_NO_POINTS


@pytest.fixture()
def gpx_untimed() -> str:
    return GPX_UNTIMED


@pytest.fixture()
def gpx_partly_timed() -> str:
    return GPX_PARTLY_TIMED


@pytest.fixture()
def accessor() -> GpxBufferedDataAccessor:
    """Buffered accessor holding "file-1" and "file-2"."""

    a = GpxBufferedDataAccessor()
    a.add("file-1", GPX_FILE_1)
    a.add("file-2", GPX_FILE_2)
    return a


@pytest.fixture()
def gpx_dir(tmp_path):
    """Directory with both sample files plus a non-GPX file and a nested GPX file."""

    (tmp_path / "file-1.gpx").write_text(GPX_FILE_1, encoding="utf-8")
    nested = tmp_path / "nested"
    nested.mkdir()
    (nested / "file-2.GPX").write_text(GPX_FILE_2, encoding="utf-8")
    (tmp_path / "notes.txt").write_text("not a track", encoding="utf-8")
    (tmp_path / "empty.gpx").write_text(GPX_NO_POINTS, encoding="utf-8")
    return tmp_path
