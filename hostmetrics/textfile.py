"""Metrics read from ``*.prom`` files in a text-file directory."""

from __future__ import annotations

import glob
import os
from typing import Iterable, Mapping

from .expfmt import MetricFamily, MetricType, parse_text
from .prom import Desc, Metric, ValueType

MTIME_DESC = Desc(
    "node_textfile_mtime_seconds",
    "Unixtime mtime of textfiles successfully read.",
    ("file",),
)
SCRAPE_ERROR_DESC = Desc(
    "node_textfile_scrape_error",
    "1 if there was an error opening or reading a file, 0 otherwise",
)

_SIMPLE_TYPES = {
    MetricType.COUNTER: ValueType.COUNTER,
    MetricType.GAUGE: ValueType.GAUGE,
    MetricType.UNTYPED: ValueType.UNTYPED,
}


def convert_metric_family(family: MetricFamily) -> list[Metric]:
    """Turn a parsed family into const metrics sharing one label set.

    Labels used by some samples of the family but missing from others are
    added to those others with an empty value.
    """
    all_names = list(dict.fromkeys(name for sample in family.metrics for name in sample.labels))
    help_text = family.help or ""
    result = []
    for sample in family.metrics:
        names = list(sample.labels)
        values = list(sample.labels.values())
        for name in all_names:
            if name not in sample.labels:
                names.append(name)
                values.append("")
        desc = Desc(family.name, help_text, tuple(names))
        if family.type in _SIMPLE_TYPES:
            value = sample.value if sample.value is not None else 0.0
            result.append(Metric(desc, _SIMPLE_TYPES[family.type], value, values))
        elif family.type is MetricType.SUMMARY:
            result.append(
                Metric(
                    desc,
                    ValueType.SUMMARY,
                    label_values=values,
                    sample_count=sample.sample_count or 0,
                    sample_sum=sample.sample_sum or 0.0,
                    quantiles=dict(sample.quantiles),
                )
            )
        elif family.type is MetricType.HISTOGRAM:
            result.append(
                Metric(
                    desc,
                    ValueType.HISTOGRAM,
                    label_values=values,
                    sample_count=sample.sample_count or 0,
                    sample_sum=sample.sample_sum or 0.0,
                    buckets=dict(sample.buckets),
                )
            )
        else:
            raise ValueError("unknown metric type")
    return result


def has_timestamps(families: Mapping[str, MetricFamily] | Iterable[MetricFamily]) -> bool:
    """Return True when any sample carries a client-side timestamp."""
    values = families.values() if isinstance(families, Mapping) else families
    return any(
        sample.timestamp_ms is not None for family in values for sample in family.metrics
    )


def _unix_seconds(ns: int) -> float:
    seconds = ns // 10**9 if ns >= 0 else -((-ns) // 10**9)
    return float(seconds)


class TextFileCollector:
    """Exposes metrics read from ``*.prom`` files in a directory or glob."""

    def __init__(self, path: str = "", mtime: float | None = None) -> None:
        self.path = path
        # Fixed mtime value, only meant to make output predictable.
        self.mtime = mtime

    def _process_file(self, directory: str, name: str) -> tuple[list[Metric], int]:
        path = os.path.normpath(os.path.join(directory, name))
        with open(path, encoding="utf-8") as fh:
            try:
                families = parse_text(fh.read())
            except ValueError as exc:
                raise ValueError(f"failed to parse textfile data from {path!r}: {exc}") from exc
            if has_timestamps(families):
                raise ValueError(
                    f"textfile {path!r} contains unsupported client-side timestamps, "
                    "skipping entire file"
                )
            for family in families.values():
                if family.help is None:
                    family.help = f"Metric read from {path}"
            metrics = [m for family in families.values() for m in convert_metric_family(family)]
            # Stat only once the file parsed, so a failure does not appear fresh.
            stat = os.fstat(fh.fileno())
        return metrics, stat.st_mtime_ns

    def _scan(self) -> tuple[list[Metric], dict[str, int], bool]:
        paths = sorted(glob.glob(self.path)) or [self.path]
        metrics: list[Metric] = []
        mtimes: dict[str, int] = {}
        errored = False
        for directory in paths:
            try:
                names = sorted(os.listdir(directory))
            except OSError:
                if directory:
                    errored = True
                continue
            for name in names:
                if not name.endswith(".prom"):
                    continue
                try:
                    file_metrics, mtime = self._process_file(directory, name)
                except (OSError, ValueError):
                    errored = True
                    continue
                metrics.extend(file_metrics)
                mtimes[os.path.normpath(os.path.join(directory, name))] = mtime
        return metrics, mtimes, errored

    def collect(self) -> list[Metric]:
        metrics, mtimes, errored = self._scan()
        for path in sorted(mtimes):
            value = self.mtime if self.mtime is not None else _unix_seconds(mtimes[path])
            metrics.append(Metric(MTIME_DESC, ValueType.GAUGE, value, (path,)))
        metrics.append(Metric(SCRAPE_ERROR_DESC, ValueType.GAUGE, 1.0 if errored else 0.0))
        return metrics

    def describe(self) -> list[Desc]:
        metrics, mtimes, _ = self._scan()
        descs = [metric.desc for metric in metrics]
        if mtimes:
            descs.append(MTIME_DESC)
        descs.append(SCRAPE_ERROR_DESC)
        return descs