"""Parser for the Prometheus text exposition format."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import IO, Protocol, runtime_checkable

_NAME_RE = re.compile(r"[a-zA-Z_:][a-zA-Z0-9_:]*")
_LABEL_RE = re.compile(r"[a-zA-Z_][a-zA-Z0-9_]*")
_INT_RE = re.compile(r"[+-]?\d+")


class MetricType(Enum):
    COUNTER = "counter"
    GAUGE = "gauge"
    SUMMARY = "summary"
    UNTYPED = "untyped"
    HISTOGRAM = "histogram"


@dataclass
class Sample:
    """One metric of a family, identified by its labels."""

    labels: dict[str, str] = field(default_factory=dict)
    value: float | None = None
    timestamp_ms: int | None = None
    quantiles: dict[float, float] = field(default_factory=dict)
    buckets: dict[float, int] = field(default_factory=dict)
    sample_count: int | None = None
    sample_sum: float | None = None


@dataclass
class MetricFamily:
    name: str
    help: str | None = None
    type: MetricType = MetricType.UNTYPED
    metrics: list[Sample] = field(default_factory=list)


class ParseError(ValueError):
    """Raised on malformed exposition text."""

    def __init__(self, line: int, message: str) -> None:
        super().__init__(f"text format parsing error in line {line}: {message}")
        self.line = line


@runtime_checkable
class KeyMatcher(Protocol):
    """Selects metric names."""

    def match(self, name: str) -> bool: ...


@dataclass
class PEFFilter:
    """Matches only the listed metric names."""

    to_match: list[str] = field(default_factory=list)

    def match(self, metric_name: str) -> bool:
        return metric_name in self.to_match


def _parse_float(token: str, line: int) -> float:
    if "_" in token:
        raise ParseError(line, f"expected float as value, got {token!r}")
    try:
        return float(token)
    except ValueError:
        raise ParseError(line, f"expected float as value, got {token!r}") from None


def _skip_ws(text: str, pos: int) -> int:
    while pos < len(text) and text[pos] in " \t":
        pos += 1
    return pos


def _unescape(text: str, line: int, quoted: bool) -> str:
    out = []
    chars = iter(text)
    for ch in chars:
        if ch != "\\":
            out.append(ch)
            continue
        nxt = next(chars, None)
        if nxt == "\\":
            out.append("\\")
        elif nxt == "n":
            out.append("\n")
        elif nxt == '"' and quoted:
            out.append('"')
        else:
            raise ParseError(line, f"invalid escape sequence '\\{nxt or ''}'")
    return "".join(out)


def _parse_quoted(text: str, pos: int, line: int) -> tuple[str, int]:
    start = pos
    while pos < len(text):
        ch = text[pos]
        if ch == "\\":
            pos += 2
            continue
        if ch == '"':
            return _unescape(text[start:pos], line, True), pos + 1
        pos += 1
    raise ParseError(line, "label value not closed")


def _parse_labels(text: str, pos: int, line: int) -> tuple[dict[str, str], int]:
    labels: dict[str, str] = {}
    while True:
        pos = _skip_ws(text, pos)
        if pos >= len(text):
            raise ParseError(line, "label set not closed")
        if text[pos] == "}":
            return labels, pos + 1
        m = _LABEL_RE.match(text, pos)
        if not m:
            raise ParseError(line, f"invalid label name at {text[pos:]!r}")
        name = m.group()
        pos = _skip_ws(text, m.end())
        if pos >= len(text) or text[pos] != "=":
            raise ParseError(line, f"expected '=' after label name {name!r}")
        pos = _skip_ws(text, pos + 1)
        if pos >= len(text) or text[pos] != '"':
            raise ParseError(line, f"expected '\"' to start value of label {name!r}")
        value, pos = _parse_quoted(text, pos + 1, line)
        if name in labels:
            raise ParseError(line, f"duplicate label name {name!r}")
        labels[name] = value
        pos = _skip_ws(text, pos)
        if pos < len(text) and text[pos] == ",":
            pos += 1
            continue
        if pos < len(text) and text[pos] == "}":
            return labels, pos + 1
        raise ParseError(line, "expected ',' or '}' after label value")


def _parse_sample(text: str, line: int):
    m = _NAME_RE.match(text)
    if not m:
        raise ParseError(line, f"invalid metric name in {text!r}")
    name, pos = m.group(), _skip_ws(text, m.end())
    labels: dict[str, str] = {}
    if pos < len(text) and text[pos] == "{":
        labels, pos = _parse_labels(text, pos + 1, line)
    rest = text[pos:].split()
    if not rest:
        raise ParseError(line, f"missing value for metric {name!r}")
    if len(rest) > 2:
        raise ParseError(line, f"unexpected trailing data {' '.join(rest[2:])!r}")
    value = _parse_float(rest[0], line)
    timestamp = None
    if len(rest) == 2:
        if not _INT_RE.fullmatch(rest[1]):
            raise ParseError(line, f"expected integer as timestamp, got {rest[1]!r}")
        timestamp = int(rest[1])
    return name, labels, value, timestamp


def _resolve_family(name, families, typed):
    for suffix, kinds in (
        ("_bucket", (MetricType.HISTOGRAM,)),
        ("_sum", (MetricType.SUMMARY, MetricType.HISTOGRAM)),
        ("_count", (MetricType.SUMMARY, MetricType.HISTOGRAM)),
    ):
        if name.endswith(suffix):
            base = families.get(name[: -len(suffix)])
            if base is not None and base.name in typed and base.type in kinds:
                return base, suffix
    return families.setdefault(name, MetricFamily(name)), ""


def parse_text(text: str) -> dict[str, MetricFamily]:
    """Parse exposition text into metric families keyed by name."""
    families: dict[str, MetricFamily] = {}
    typed: set[str] = set()
    groups: dict[tuple, Sample] = {}

    for line_no, raw in enumerate(text.splitlines(), 1):
        line = raw.strip()
        if not line:
            continue
        if line.startswith("#"):
            parts = line[1:].split(maxsplit=2)
            if len(parts) < 2 or parts[0] not in ("HELP", "TYPE"):
                continue
            keyword, name = parts[0], parts[1]
            if not _NAME_RE.fullmatch(name):
                raise ParseError(line_no, f"invalid metric name {name!r}")
            family = families.setdefault(name, MetricFamily(name))
            if keyword == "HELP":
                if family.help is not None:
                    raise ParseError(line_no, f"second HELP line for metric name {name!r}")
                family.help = _unescape(parts[2] if len(parts) == 3 else "", line_no, False)
            else:
                tokens = parts[2].split() if len(parts) == 3 else []
                if len(tokens) != 1:
                    raise ParseError(line_no, f"invalid TYPE line for {name!r}")
                try:
                    kind = MetricType(tokens[0].lower())
                except ValueError:
                    raise ParseError(line_no, f"unknown metric type {tokens[0]!r}") from None
                if name in typed:
                    raise ParseError(line_no, f"second TYPE line for metric name {name!r}")
                if family.metrics:
                    raise ParseError(line_no, f"TYPE line for {name!r} after its samples")
                family.type = kind
                typed.add(name)
            continue

        name, labels, value, timestamp = _parse_sample(line, line_no)
        family, suffix = _resolve_family(name, families, typed)
        if family.type not in (MetricType.SUMMARY, MetricType.HISTOGRAM):
            family.metrics.append(Sample(labels=labels, value=value, timestamp_ms=timestamp))
            continue

        special = "quantile" if family.type is MetricType.SUMMARY else "le"
        other = {k: v for k, v in labels.items() if k != special}
        key = (family.name, tuple(sorted(other.items())))
        sample = groups.get(key)
        if sample is None:
            sample = groups[key] = Sample(labels=other)
            family.metrics.append(sample)
        if timestamp is not None:
            sample.timestamp_ms = timestamp
        if suffix == "_sum":
            sample.sample_sum = value
        elif suffix == "_count":
            sample.sample_count = int(value)
        elif (suffix == "_bucket") == (family.type is MetricType.HISTOGRAM):
            if special not in labels:
                raise ParseError(line_no, f"expected {special!r} label for {name!r}")
            bound = _parse_float(labels[special], line_no)
            if family.type is MetricType.SUMMARY:
                sample.quantiles[bound] = value
            else:
                sample.buckets[bound] = int(value)
        else:
            raise ParseError(line_no, f"unexpected sample {name!r} in {family.type.value}")
    return families


def parse_pef(stream: IO | str | bytes, filter: KeyMatcher | None = None) -> list[MetricFamily]:
    """Parse exposition data, keeping only families accepted by ``filter``."""
    data = stream if isinstance(stream, (str, bytes)) else stream.read()
    if isinstance(data, bytes):
        data = data.decode("utf-8")
    families = parse_text(data)
    return [fam for name, fam in families.items() if filter is None or filter.match(name)]