"""Per-NUMA-node memory statistics from sysfs."""

from __future__ import annotations

import glob
import os
import re
from dataclasses import dataclass
from typing import Iterable

from .prom import NAMESPACE, Desc, Metric, Paths, ValueType, build_fq_name

SUBSYSTEM = "memory_numa"

_NODE_RE = re.compile(r".*devices/system/node/node([0-9]*)")
_PARENS_RE = re.compile(r"\((.*)\)")


@dataclass(frozen=True)
class MeminfoMetric:
    """One value read for a NUMA node."""

    metric_name: str
    metric_type: ValueType
    numa_node: str
    value: float


def _lines(stream: Iterable[str]) -> Iterable[str]:
    for raw in stream:
        line = raw.strip()
        if line:
            yield line


def parse_meminfo_numa(stream: Iterable[str]) -> list[MeminfoMetric]:
    """Parse a node's meminfo file; values in kB are converted to bytes."""
    metrics: list[MeminfoMetric] = []
    for line in _lines(stream):
        parts = line.split()
        if len(parts) < 4:
            raise ValueError(f"invalid line in meminfo: {line}")
        try:
            value = float(parts[3])
        except ValueError as exc:
            raise ValueError(f"invalid value in meminfo: {exc}") from exc
        if len(parts) == 5 and parts[4] == "kB":
            value *= 1024
        elif len(parts) != 4:
            raise ValueError(f"invalid line in meminfo: {line}")
        name = _PARENS_RE.sub(r"_\1", parts[2].rstrip(":"))
        metrics.append(MeminfoMetric(name, ValueType.GAUGE, parts[1], value))
    return metrics


def parse_meminfo_numa_stat(stream: Iterable[str], node_number: str) -> list[MeminfoMetric]:
    """Parse a node's numastat file into counters."""
    stats: list[MeminfoMetric] = []
    for line in _lines(stream):
        parts = line.split()
        if len(parts) != 2:
            raise ValueError(f"line scan did not return 2 fields: {line}")
        try:
            value = float(parts[1])
        except ValueError as exc:
            raise ValueError(f"invalid value in numastat: {exc}") from exc
        stats.append(MeminfoMetric(parts[0] + "_total", ValueType.COUNTER, node_number, value))
    return stats


def get_meminfo_numa(paths: Paths | None = None) -> list[MeminfoMetric]:
    """Read meminfo and numastat of every NUMA node."""
    paths = paths or Paths()
    metrics: list[MeminfoMetric] = []
    for node in sorted(glob.glob(paths.sys("devices/system/node/node[0-9]*"))):
        with open(os.path.join(node, "meminfo"), encoding="utf-8") as fh:
            metrics.extend(parse_meminfo_numa(fh))
        with open(os.path.join(node, "numastat"), encoding="utf-8") as fh:
            match = _NODE_RE.match(node)
            if match is None:
                raise ValueError(f"device node string didn't match regexp: {node}")
            metrics.extend(parse_meminfo_numa_stat(fh, match.group(1)))
    return metrics


def _desc(name: str) -> Desc:
    return Desc(
        build_fq_name(NAMESPACE, SUBSYSTEM, name),
        f"Memory information field {name}.",
        ("node",),
    )


class MeminfoNumaCollector:
    """Exposes memory statistics per NUMA node."""

    def __init__(self, paths: Paths | None = None) -> None:
        self.paths = paths or Paths()
        self.metric_descs: dict[str, Desc] = {}

    def _metrics(self) -> list[MeminfoMetric]:
        try:
            return get_meminfo_numa(self.paths)
        except (OSError, ValueError):
            return []

    def collect(self) -> list[Metric]:
        result = []
        for item in self._metrics():
            desc = self.metric_descs.get(item.metric_name)
            if desc is None:
                desc = self.metric_descs[item.metric_name] = _desc(item.metric_name)
            result.append(Metric(desc, item.metric_type, item.value, (item.numa_node,)))
        return result

    def describe(self) -> list[Desc]:
        return [
            self.metric_descs.get(item.metric_name) or _desc(item.metric_name)
            for item in self._metrics()
        ]