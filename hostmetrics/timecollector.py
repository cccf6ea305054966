"""Current system time, time zone and clock sources."""

from __future__ import annotations

import glob
import os
import time
from dataclasses import dataclass

from .prom import NAMESPACE, Desc, Metric, Paths, ValueType, build_fq_name

SUBSYSTEM = "time"
CLOCKSOURCE_GLOB = "devices/system/clocksource/clocksource[0-9]*"


@dataclass(frozen=True)
class ClockSource:
    """A clocksource device with its available and current sources."""

    name: str
    available: tuple[str, ...]
    current: str


def read_clock_sources(paths: Paths | None = None) -> list[ClockSource]:
    """Read every clocksource device under sysfs."""
    paths = paths or Paths()
    if not os.path.isdir(paths.sys_path):
        raise FileNotFoundError(f"failed to open sysfs: {paths.sys_path} is not a directory")
    sources = []
    for directory in sorted(glob.glob(paths.sys(CLOCKSOURCE_GLOB))):
        with open(os.path.join(directory, "available_clocksource"), encoding="utf-8") as fh:
            available = tuple(fh.read().split())
        with open(os.path.join(directory, "current_clocksource"), encoding="utf-8") as fh:
            current = fh.read().strip()
        sources.append(ClockSource(os.path.basename(directory), available, current))
    return sources


class TimeCollector:
    """Exposes the system time, zone offset and clock sources."""

    def __init__(self, paths: Paths | None = None) -> None:
        self.paths = paths or Paths()
        self.now = Desc(
            build_fq_name(NAMESPACE, SUBSYSTEM, "seconds"),
            "System time in seconds since epoch (1970).",
        )
        self.zone = Desc(
            build_fq_name(NAMESPACE, SUBSYSTEM, "zone_offset_seconds"),
            "System time zone offset in seconds.",
            ("time_zone",),
        )
        self.clocksources_available = Desc(
            build_fq_name(NAMESPACE, SUBSYSTEM, "clocksource_available_info"),
            "Available clocksources read from '/sys/devices/system/clocksource'.",
            ("device", "clocksource"),
        )
        self.clocksource_current = Desc(
            build_fq_name(NAMESPACE, SUBSYSTEM, "clocksource_current_info"),
            "Current clocksource read from '/sys/devices/system/clocksource'.",
            ("device", "clocksource"),
        )

    def _clocksource_metrics(self) -> list[Metric]:
        try:
            sources = read_clock_sources(self.paths)
        except (OSError, ValueError):
            return []
        metrics = []
        for index, source in enumerate(sources):
            device = str(index)
            metrics.extend(
                Metric(self.clocksources_available, ValueType.GAUGE, 1.0, (device, name))
                for name in source.available
            )
            metrics.append(
                Metric(self.clocksource_current, ValueType.GAUGE, 1.0, (device, source.current))
            )
        return metrics

    def collect(self) -> list[Metric]:
        now_ns = time.time_ns()
        local = time.localtime(now_ns // 10**9)
        metrics = [
            Metric(self.now, ValueType.GAUGE, now_ns / 1e9),
            Metric(self.zone, ValueType.GAUGE, float(local.tm_gmtoff), (local.tm_zone,)),
        ]
        metrics.extend(self._clocksource_metrics())
        return metrics

    def describe(self) -> list[Desc]:
        return [
            self.now,
            self.zone,
            self.clocksources_available,
            self.clocksource_current,
        ]