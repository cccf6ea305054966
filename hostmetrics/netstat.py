"""Network protocol statistics from /proc/net/netstat, snmp and snmp6."""

from __future__ import annotations

import re
from typing import Iterable, Iterator

from .prom import NAMESPACE, Desc, Metric, Paths, ValueType, build_fq_name

SUBSYSTEM = "netstat"
DEFAULT_FIELDS = (
    "^(.*_(InErrors|InErrs)|Ip_Forwarding|Ip(6|Ext)_(InOctets|OutOctets)"
    "|Icmp6?_(InMsgs|OutMsgs)|TcpExt_(Listen.*|Syncookies.*|TCPSynRetrans|TCPTimeouts)"
    "|Tcp_(ActiveOpens|InSegs|OutSegs|OutRsts|PassiveOpens|RetransSegs|CurrEstab)"
    "|Udp6?_(InDatagrams|OutDatagrams|NoPorts|RcvbufErrors|SndbufErrors))$"
)

NetStats = dict[str, dict[str, str]]


def _strip_eol(line: str) -> str:
    if line.endswith("\n"):
        line = line[:-1]
    if line.endswith("\r"):
        line = line[:-1]
    return line


def parse_net_stats(stream: Iterable[str], file_name: str) -> NetStats:
    """Parse paired header/value lines as found in /proc/net/netstat and snmp."""
    net_stats: NetStats = {}
    lines = (_strip_eol(line) for line in stream)
    for name_line in lines:
        value_line = next(lines, "")
        name_parts = name_line.split(" ")
        value_parts = value_line.split(" ")
        if not name_parts[0]:
            raise ValueError(f"missing protocol name in {file_name}")
        protocol = name_parts[0][:-1]
        net_stats[protocol] = {}
        if len(name_parts) != len(value_parts):
            raise ValueError(f"mismatch field count mismatch in {file_name}: {protocol}")
        net_stats[protocol] = dict(zip(name_parts[1:], value_parts[1:]))
    return net_stats


def get_net_stats(file_name: str) -> NetStats:
    """Read and parse a netstat-style file."""
    with open(file_name, encoding="utf-8") as fh:
        return parse_net_stats(fh, file_name)


def parse_snmp6_stats(stream: Iterable[str]) -> NetStats:
    """Parse /proc/net/snmp6, splitting names after the first '6'."""
    net_stats: NetStats = {}
    for line in stream:
        stat = line.split()
        if len(stat) < 2:
            continue
        six = stat[0].find("6")
        if six == -1:
            continue
        protocol, name = stat[0][: six + 1], stat[0][six + 1:]
        net_stats.setdefault(protocol, {})[name] = stat[1]
    return net_stats


def get_snmp6_stats(file_name: str) -> NetStats:
    """Read /proc/net/snmp6; a missing file (IPv6 disabled) gives no stats."""
    try:
        fh = open(file_name, encoding="utf-8")
    except FileNotFoundError:
        return {}
    with fh:
        return parse_snmp6_stats(fh)


def _desc(protocol: str, name: str) -> Desc:
    return Desc(
        build_fq_name(NAMESPACE, SUBSYSTEM, f"{protocol}_{name}"),
        f"Statistic {protocol}{name}.",
    )


class NetStatCollector:
    """Exposes selected network protocol statistics."""

    def __init__(self, paths: Paths | None = None, fields: str = DEFAULT_FIELDS) -> None:
        self.paths = paths or Paths()
        self.field_pattern = re.compile(fields)

    def _load(self) -> NetStats | None:
        try:
            net_stats = get_net_stats(self.paths.proc("net/netstat"))
            snmp_stats = get_net_stats(self.paths.proc("net/snmp"))
            snmp6_stats = get_snmp6_stats(self.paths.proc("net/snmp6"))
        except (OSError, ValueError):
            return None
        net_stats.update(snmp_stats)
        net_stats.update(snmp6_stats)
        return net_stats

    def _entries(self) -> Iterator[tuple[str, str, str]]:
        net_stats = self._load()
        if net_stats is None:
            return
        for protocol, protocol_stats in net_stats.items():
            for name, value in protocol_stats.items():
                yield protocol, name, value

    def collect(self) -> list[Metric]:
        metrics = []
        for protocol, name, raw in self._entries():
            try:
                value = float(raw)
            except ValueError:
                return metrics
            if not self.field_pattern.search(f"{protocol}_{name}"):
                continue
            metrics.append(Metric(_desc(protocol, name), ValueType.UNTYPED, value))
        return metrics

    def describe(self) -> list[Desc]:
        return [
            _desc(protocol, name)
            for protocol, name, _ in self._entries()
            if self.field_pattern.search(f"{protocol}_{name}")
        ]