"""Kernel and system statistics from /proc/stat."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field, fields
from typing import Iterable

from .prom import NAMESPACE, Desc, Metric, Paths, ValueType, build_fq_name

_UINT_RE = re.compile(r"[0-9]+")


@dataclass
class SoftIRQStat:
    """Per-vector softirq counts."""

    hi: int = 0
    timer: int = 0
    net_tx: int = 0
    net_rx: int = 0
    block: int = 0
    block_iopoll: int = 0
    tasklet: int = 0
    sched: int = 0
    hrtimer: int = 0
    rcu: int = 0


@dataclass
class KernelStat:
    """Selected system-wide counters from /proc/stat."""

    boot_time: int = 0
    irq_total: int = 0
    context_switches: int = 0
    process_created: int = 0
    processes_running: int = 0
    processes_blocked: int = 0
    softirq_total: int = 0
    softirq: SoftIRQStat = field(default_factory=SoftIRQStat)


_SCALAR_KEYS = {
    "btime": "boot_time",
    "intr": "irq_total",
    "ctxt": "context_switches",
    "processes": "process_created",
    "procs_running": "processes_running",
    "procs_blocked": "processes_blocked",
}

_SOFTIRQ_VECTORS = tuple(f.name for f in fields(SoftIRQStat))


def _uint(text: str, key: str) -> int:
    if not _UINT_RE.fullmatch(text):
        raise ValueError(f"couldn't parse {text!r} ({key})")
    return int(text)


def parse_stat(stream: Iterable[str]) -> KernelStat:
    """Parse /proc/stat content."""
    stat = KernelStat()
    for line in stream:
        parts = line.split()
        if len(parts) < 2:
            continue
        key = parts[0]
        if key in _SCALAR_KEYS:
            setattr(stat, _SCALAR_KEYS[key], _uint(parts[1], key))
        elif key == "softirq":
            if len(parts) < 2 + len(_SOFTIRQ_VECTORS):
                raise ValueError(f"couldn't parse {line.strip()!r} (softirq)")
            stat.softirq_total = _uint(parts[1], key)
            stat.softirq = SoftIRQStat(
                *(_uint(value, key) for value in parts[2 : 2 + len(_SOFTIRQ_VECTORS)])
            )
    return stat


def _desc(name: str, help: str, labels: tuple[str, ...] = ()) -> Desc:
    return Desc(build_fq_name(NAMESPACE, "", name), help, labels)


class StatCollector:
    """Exposes kernel and system statistics."""

    def __init__(self, paths: Paths | None = None, softirq: bool = False) -> None:
        self.paths = paths or Paths()
        if not os.path.isdir(self.paths.proc_path):
            raise FileNotFoundError(
                f"failed to open procfs: {self.paths.proc_path} is not a directory"
            )
        self.softirq_enabled = softirq
        self.intr = _desc("intr_total", "Total number of interrupts serviced.")
        self.ctxt = _desc("context_switches_total", "Total number of context switches.")
        self.forks = _desc("forks_total", "Total number of forks.")
        self.btime = _desc("boot_time_seconds", "Node boot time, in unixtime.")
        self.procs_running = _desc("procs_running", "Number of processes in runnable state.")
        self.procs_blocked = _desc(
            "procs_blocked", "Number of processes blocked waiting for I/O to complete."
        )
        self.softirq = _desc("softirqs_total", "Number of softirq calls.", ("vector",))

    def _stats(self) -> KernelStat | None:
        try:
            with open(self.paths.proc("stat"), encoding="utf-8") as fh:
                return parse_stat(fh)
        except (OSError, ValueError):
            return None

    def collect(self) -> list[Metric]:
        stats = self._stats()
        if stats is None:
            return []
        metrics = [
            Metric(self.intr, ValueType.COUNTER, float(stats.irq_total)),
            Metric(self.ctxt, ValueType.COUNTER, float(stats.context_switches)),
            Metric(self.forks, ValueType.COUNTER, float(stats.process_created)),
            Metric(self.btime, ValueType.GAUGE, float(stats.boot_time)),
            Metric(self.procs_running, ValueType.GAUGE, float(stats.processes_running)),
            Metric(self.procs_blocked, ValueType.GAUGE, float(stats.processes_blocked)),
        ]
        if self.softirq_enabled:
            metrics.extend(
                Metric(
                    self.softirq,
                    ValueType.COUNTER,
                    float(getattr(stats.softirq, vector)),
                    (vector,),
                )
                for vector in _SOFTIRQ_VECTORS
            )
        return metrics

    def describe(self) -> list[Desc]:
        if self._stats() is None:
            return []
        descs = [
            self.intr,
            self.ctxt,
            self.forks,
            self.btime,
            self.procs_running,
            self.procs_blocked,
        ]
        if self.softirq_enabled:
            descs.extend(self.softirq for _ in _SOFTIRQ_VECTORS)
        return descs