"""Memory statistics from /proc/meminfo."""

from __future__ import annotations

import re
from typing import Iterable

from .prom import NAMESPACE, Desc, Metric, Paths, ValueType, build_fq_name

SUBSYSTEM = "memory"
_PARENS_RE = re.compile(r"\((.*)\)")


def parse_meminfo(stream: Iterable[str]) -> dict[str, float]:
    """Parse meminfo lines; values with a unit are converted from kB to bytes."""
    mem_info: dict[str, float] = {}
    for line in stream:
        parts = line.split()
        if not parts:
            continue
        if len(parts) < 2:
            raise ValueError(f"invalid line in meminfo: {line.rstrip()}")
        try:
            value = float(parts[1])
        except ValueError as exc:
            raise ValueError(f"invalid value in meminfo: {exc}") from exc
        key = _PARENS_RE.sub(r"_\1", parts[0][:-1])
        if len(parts) == 3:
            value *= 1024
            key += "_bytes"
        elif len(parts) != 2:
            raise ValueError(f"invalid line in meminfo: {line.rstrip()}")
        mem_info[key] = value
    return mem_info


def _desc(key: str) -> Desc:
    return Desc(build_fq_name(NAMESPACE, SUBSYSTEM, key), f"Memory information field {key}.")


class MeminfoCollector:
    """Exposes memory statistics."""

    def __init__(self, paths: Paths | None = None) -> None:
        self.paths = paths or Paths()

    def get_mem_info(self) -> dict[str, float]:
        with open(self.paths.proc("meminfo"), encoding="utf-8") as fh:
            return parse_meminfo(fh)

    def _safe_info(self) -> dict[str, float]:
        try:
            return self.get_mem_info()
        except (OSError, ValueError):
            return {}

    def collect(self) -> list[Metric]:
        return [
            Metric(
                _desc(key),
                ValueType.COUNTER if key.endswith("_total") else ValueType.GAUGE,
                value,
            )
            for key, value in self._safe_info().items()
        ]

    def describe(self) -> list[Desc]:
        return [_desc(key) for key in self._safe_info()]