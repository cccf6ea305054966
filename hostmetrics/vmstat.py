"""Selected fields from /proc/vmstat."""

from __future__ import annotations

import re
from typing import Iterator

from .prom import NAMESPACE, Desc, Metric, Paths, ValueType, build_fq_name

SUBSYSTEM = "vmstat"
DEFAULT_FIELDS = "^(oom_kill|pgpg|pswp|pg.*fault).*"


def _desc(name: str) -> Desc:
    return Desc(
        build_fq_name(NAMESPACE, SUBSYSTEM, name),
        f"/proc/vmstat information field {name}.",
    )


class VmstatCollector:
    """Exposes vmstat fields whose names match a pattern."""

    def __init__(self, paths: Paths | None = None, fields: str = DEFAULT_FIELDS) -> None:
        self.paths = paths or Paths()
        self.field_pattern = re.compile(fields)

    def _entries(self) -> Iterator[tuple[str, float]]:
        try:
            fh = open(self.paths.proc("vmstat"), encoding="utf-8")
        except OSError:
            return
        with fh:
            for line in fh:
                parts = line.split()
                if not parts:
                    continue
                try:
                    value = float(parts[1])
                except (IndexError, ValueError):
                    return
                if self.field_pattern.search(parts[0]):
                    yield parts[0], value

    def collect(self) -> list[Metric]:
        return [Metric(_desc(name), ValueType.UNTYPED, value) for name, value in self._entries()]

    def describe(self) -> list[Desc]:
        return [_desc(name) for name, _ in self._entries()]