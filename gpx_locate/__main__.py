"""Module entry point: python -m gpx_locate ..."""

from __future__ import annotations

from gpx_locate.cli import main


if __name__ == "__main__":
    raise SystemExit(main())
