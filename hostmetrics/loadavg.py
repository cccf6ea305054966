"""Load average from /proc/loadavg."""

from __future__ import annotations

from .prom import Paths


def parse_load(data: str) -> list[float]:
    """Return the 1m, 5m and 15m load averages."""
    parts = data.split()
    if len(parts) < 3:
        raise ValueError("unexpected content in loadavg")
    loads = []
    for load in parts[:3]:
        try:
            loads.append(float(load))
        except ValueError as exc:
            raise ValueError(f"could not parse load '{load}': {exc}") from exc
    return loads


def get_load(paths: Paths | None = None) -> list[float]:
    """Read and parse the load averages."""
    paths = paths or Paths()
    with open(paths.proc("loadavg"), encoding="utf-8") as fh:
        return parse_load(fh.read())