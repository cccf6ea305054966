"""Metric descriptors, const metrics and filesystem path helpers."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum

NAMESPACE = "node"


class ValueType(Enum):
    """Kind of value carried by a const metric."""

    COUNTER = "counter"
    GAUGE = "gauge"
    UNTYPED = "untyped"
    SUMMARY = "summary"
    HISTOGRAM = "histogram"


def build_fq_name(namespace: str, subsystem: str, name: str) -> str:
    """Join the non-empty parts with underscores; empty name gives ''."""
    if not name:
        return ""
    return "_".join(part for part in (namespace, subsystem, name) if part)


@dataclass(frozen=True)
class Desc:
    """Describes a metric: its name, help and label names."""

    fq_name: str
    help: str
    variable_labels: tuple[str, ...] = ()
    const_labels: tuple[tuple[str, str], ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "variable_labels", tuple(self.variable_labels))
        object.__setattr__(self, "const_labels", tuple(self.const_labels))


@dataclass
class Metric:
    """A single sample bound to a descriptor."""

    desc: Desc
    value_type: ValueType
    value: float = 0.0
    label_values: tuple[str, ...] = ()
    sample_count: int | None = None
    sample_sum: float | None = None
    quantiles: dict[float, float] = field(default_factory=dict)
    buckets: dict[float, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.label_values = tuple(self.label_values)
        if len(self.label_values) != len(self.desc.variable_labels):
            raise ValueError(
                f"inconsistent label cardinality for {self.desc.fq_name}: "
                f"expected {len(self.desc.variable_labels)} label values, "
                f"got {len(self.label_values)}"
            )

    @property
    def labels(self) -> dict[str, str]:
        return dict(zip(self.desc.variable_labels, self.label_values))


@dataclass(frozen=True)
class Paths:
    """Mount points of the proc, sys and root filesystems."""

    proc_path: str = "/proc"
    sys_path: str = "/sys"
    rootfs_path: str = "/"

    def proc(self, name: str) -> str:
        return os.path.normpath(os.path.join(self.proc_path, name))

    def sys(self, name: str) -> str:
        return os.path.normpath(os.path.join(self.sys_path, name))

    def rootfs(self, name: str) -> str:
        return os.path.normpath(os.path.join(self.rootfs_path, name))

    def strip_rootfs(self, path: str) -> str:
        if self.rootfs_path == "/":
            return path
        stripped = path[len(self.rootfs_path):] if path.startswith(self.rootfs_path) else path
        return stripped or "/"