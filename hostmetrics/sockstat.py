"""Socket statistics from /proc/net/sockstat and /proc/net/sockstat6."""

from __future__ import annotations

import mmap
import re
from dataclasses import dataclass, field
from typing import Iterable, Iterator

from .prom import NAMESPACE, Desc, Metric, Paths, ValueType, build_fq_name

SUBSYSTEM = "sockstat"

_INT_RE = re.compile(r"[+-]?[0-9]+")


@dataclass
class SockstatProtocol:
    """Counters of one protocol line; fields absent from the file are None."""

    protocol: str
    in_use: int = 0
    orphan: int | None = None
    tw: int | None = None
    alloc: int | None = None
    mem: int | None = None
    memory: int | None = None


@dataclass
class NetSockstat:
    """Parsed content of a sockstat file."""

    used: int | None = None
    protocols: list[SockstatProtocol] = field(default_factory=list)
    is_ipv6: bool = False


def _parse_int(text: str) -> int:
    if not _INT_RE.fullmatch(text):
        raise ValueError(f"invalid integer {text!r}")
    return int(text)


def _parse_kvs(fields: list[str]) -> dict[str, int]:
    if len(fields) % 2:
        raise ValueError("odd number of fields in key/value pairs")
    return {key: _parse_int(value) for key, value in zip(fields[::2], fields[1::2])}


def _parse_protocol(name: str, kvs: dict[str, int]) -> SockstatProtocol:
    proto = SockstatProtocol(protocol=name)
    for key, value in kvs.items():
        if key == "inuse":
            proto.in_use = value
        elif key in ("orphan", "tw", "alloc", "mem", "memory"):
            setattr(proto, key, value)
    return proto


def parse_sockstat(stream: Iterable[str], is_ipv6: bool = False) -> NetSockstat:
    """Parse sockstat lines of the form 'PROTO: key value key value ...'."""
    stat = NetSockstat(is_ipv6=is_ipv6)
    for raw in stream:
        line = raw.rstrip("\n")
        fields = line.split(" ")
        if len(fields) < 3:
            raise ValueError(f"malformed sockstat line: {line!r}")
        try:
            kvs = _parse_kvs(fields[1:])
        except ValueError as exc:
            raise ValueError(
                f"error parsing sockstat key/value pairs from {line!r}: {exc}"
            ) from exc
        proto = fields[0].removesuffix(":")
        if proto == "sockets":
            stat.used = kvs.get("used", 0)
        else:
            stat.protocols.append(_parse_protocol(proto, kvs))
    return stat


class SockStatCollector:
    """Exposes socket usage per protocol."""

    def __init__(self, paths: Paths | None = None, page_size: int | None = None) -> None:
        self.paths = paths or Paths()
        self.page_size = page_size if page_size is not None else mmap.PAGESIZE

    def _read(self, name: str, is_ipv6: bool) -> NetSockstat | None:
        try:
            fh = open(self.paths.proc(name), encoding="utf-8")
        except FileNotFoundError:
            return None
        with fh:
            return parse_sockstat(fh, is_ipv6)

    def _stats(self) -> list[NetSockstat | None]:
        try:
            return [self._read("net/sockstat", False), self._read("net/sockstat6", True)]
        except (OSError, ValueError):
            return []

    def _entries(self) -> Iterator[tuple[Desc, int]]:
        for stat in self._stats():
            if stat is None:
                continue
            if not stat.is_ipv6 and stat.used is not None:
                yield (
                    Desc(
                        build_fq_name(NAMESPACE, SUBSYSTEM, "sockets_used"),
                        "Number of IPv4 sockets in use.",
                    ),
                    stat.used,
                )
            for proto in stat.protocols:
                pairs: list[tuple[str, int | None]] = [
                    ("inuse", proto.in_use),
                    ("orphan", proto.orphan),
                    ("tw", proto.tw),
                    ("alloc", proto.alloc),
                    ("mem", proto.mem),
                    ("memory", proto.memory),
                ]
                if proto.mem is not None:
                    pairs.append(("mem_bytes", proto.mem * self.page_size))
                for name, value in pairs:
                    if value is None:
                        continue
                    yield (
                        Desc(
                            build_fq_name(NAMESPACE, SUBSYSTEM, f"{proto.protocol}_{name}"),
                            f"Number of {proto.protocol} sockets in state {name}.",
                        ),
                        value,
                    )

    def collect(self) -> list[Metric]:
        return [Metric(desc, ValueType.GAUGE, float(value)) for desc, value in self._entries()]

    def describe(self) -> list[Desc]:
        return [desc for desc, _ in self._entries()]