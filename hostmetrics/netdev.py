"""Network device statistics from /proc/net/dev and interface addresses."""

from __future__ import annotations

import ipaddress
import re
import socket
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

import psutil

from .prom import NAMESPACE, Desc, Metric, Paths, ValueType, build_fq_name

SUBSYSTEM = "network"

_INTERFACE_RE = re.compile(r"^(.+): *(.+)$")
_FIELD_SEP_RE = re.compile(r" +")

NetDevStats = dict[str, dict[str, int]]


class NetDevFilter:
    """Decides which devices are ignored by name."""

    def __init__(self, ignore_pattern: str = "", accept_pattern: str = "") -> None:
        self.ignore_pattern = re.compile(ignore_pattern) if ignore_pattern else None
        self.accept_pattern = re.compile(accept_pattern) if accept_pattern else None

    def ignored(self, name: str) -> bool:
        if self.ignore_pattern is not None and self.ignore_pattern.search(name):
            return True
        return self.accept_pattern is not None and not self.accept_pattern.search(name)


def _parse_uint(text: str) -> int:
    """Parse an unsigned 64-bit integer, honouring 0x, 0o, 0b and leading-0 octal prefixes."""
    if not text or text != text.strip() or text[0] in "+-":
        raise ValueError(f"invalid unsigned integer {text!r}")
    if len(text) > 1 and text[0] == "0" and (text[1].isdigit() or text[1] == "_"):
        value = int(text[1:], 8)
    else:
        value = int(text, 0)
    if value >= 1 << 64:
        raise ValueError(f"value out of range: {text!r}")
    return value


def _strip_eol(line: str) -> str:
    if line.endswith("\n"):
        line = line[:-1]
    if line.endswith("\r"):
        line = line[:-1]
    return line


def parse_net_dev_stats(stream: Iterable[str], filter: NetDevFilter | None = None) -> NetDevStats:
    """Parse /proc/net/dev content into per-device counters."""
    lines = (_strip_eol(line) for line in stream)
    next(lines, None)
    header = next(lines, "")
    parts = header.split("|")
    if len(parts) != 3:
        raise ValueError(f"invalid header line in net/dev: {header}")
    receive_header = parts[1].split()
    transmit_header = parts[2].split()
    header_length = len(receive_header) + len(transmit_header)

    net_dev: NetDevStats = {}
    for raw in lines:
        line = raw.lstrip(" ")
        match = _INTERFACE_RE.match(line)
        if match is None:
            raise ValueError(f"couldn't get interface name, invalid line in net/dev: {line!r}")
        dev, rest = match.group(1), match.group(2)
        if filter is not None and filter.ignored(dev):
            continue
        values = _FIELD_SEP_RE.split(rest.lstrip(" "))
        if len(values) != header_length:
            raise ValueError(f"couldn't get values, invalid line in net/dev: {rest!r}")

        keys = [f"receive_{name}" for name in receive_header]
        keys += [f"transmit_{name}" for name in transmit_header]
        dev_stats: dict[str, int] = {}
        for key, value in zip(keys, values):
            try:
                dev_stats[key] = _parse_uint(value)
            except ValueError:
                continue
        net_dev[dev] = dev_stats
    return net_dev


def get_net_dev_stats(filter: NetDevFilter | None = None, paths: Paths | None = None) -> NetDevStats:
    """Read and parse /proc/net/dev."""
    paths = paths or Paths()
    with open(paths.proc("net/dev"), encoding="utf-8") as fh:
        return parse_net_dev_stats(fh, filter)


@dataclass(frozen=True)
class AddrInfo:
    device: str
    addr: str
    scope: str
    netmask: str


_V4_LINK_LOCAL_MULTICAST = ipaddress.ip_network("224.0.0.0/24")
_V4_BROADCAST = ipaddress.IPv4Address("255.255.255.255")


def scope(ip: str | ipaddress.IPv4Address | ipaddress.IPv6Address) -> str:
    """Classify an address as link-local, interface-local, global or ''."""
    if isinstance(ip, str):
        ip = ipaddress.ip_address(ip)
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        ip = ip.ipv4_mapped

    if isinstance(ip, ipaddress.IPv4Address):
        link_local_multicast = ip in _V4_LINK_LOCAL_MULTICAST
        interface_local_multicast = False
        broadcast = ip == _V4_BROADCAST
    else:
        packed = ip.packed
        link_local_multicast = packed[0] == 0xFF and packed[1] & 0x0F == 0x02
        interface_local_multicast = packed[0] == 0xFF and packed[1] & 0x0F == 0x01
        broadcast = False

    if ip.is_loopback or ip.is_link_local or link_local_multicast:
        return "link-local"
    if interface_local_multicast:
        return "interface-local"
    if not (broadcast or ip.is_unspecified or ip.is_loopback or ip.is_multicast or ip.is_link_local):
        return "global"
    return ""


def _prefix_length(netmask: str | None, bits: int) -> int:
    if not netmask:
        return bits
    mask = int(ipaddress.ip_address(netmask))
    inverted = ~mask & ((1 << bits) - 1)
    if (inverted + 1) & inverted:
        return 0
    return bits - inverted.bit_length()


def get_addrs_info(interfaces: Mapping[str, Iterable[Any]]) -> list[AddrInfo]:
    """Return name, address, scope and prefix length for every IP address.

    ``interfaces`` maps interface names to address records with ``family``,
    ``address`` and ``netmask`` attributes, as returned by psutil.net_if_addrs().
    """
    result = []
    for name, addrs in interfaces.items():
        for addr in addrs:
            if addr.family not in (socket.AF_INET, socket.AF_INET6):
                continue
            try:
                ip = ipaddress.ip_address(addr.address.split("%", 1)[0])
                prefix = _prefix_length(addr.netmask, ip.max_prefixlen)
            except ValueError:
                continue
            result.append(AddrInfo(name, str(ip), scope(ip), str(prefix)))
    return result


_ADDRESS_DESC = Desc(
    build_fq_name(NAMESPACE, "network_address", "info"),
    "node network address by device",
    ("device", "address", "netmask", "scope"),
)


def _stat_desc(key: str) -> Desc:
    return Desc(
        build_fq_name(NAMESPACE, SUBSYSTEM, key + "_total"),
        f"Network device statistic {key}.",
        ("device",),
    )


class NetDevCollector:
    """Exposes network device counters and address information."""

    def __init__(
        self,
        paths: Paths | None = None,
        device_include: str = "",
        device_exclude: str = "",
        old_device_include: str = "",
        old_device_exclude: str = "",
        address_info: bool = True,
    ) -> None:
        if old_device_include:
            if device_include:
                raise ValueError(
                    "--collector.netdev.device-whitelist and "
                    "--collector.netdev.device-include are mutually exclusive"
                )
            device_include = old_device_include
        if old_device_exclude:
            if device_exclude:
                raise ValueError(
                    "--collector.netdev.device-blacklist and "
                    "--collector.netdev.device-exclude are mutually exclusive"
                )
            device_exclude = old_device_exclude
        if device_exclude and device_include:
            raise ValueError("device-exclude & device-include are mutually exclusive")

        self.paths = paths or Paths()
        self.subsystem = SUBSYSTEM
        self.device_filter = NetDevFilter(device_exclude, device_include)
        self.address_info = address_info
        self.metric_descs: dict[str, Desc] = {}

    def _stats(self) -> NetDevStats | None:
        try:
            return get_net_dev_stats(self.device_filter, self.paths)
        except (OSError, ValueError):
            return None

    def collect(self) -> list[Metric]:
        net_dev = self._stats()
        if net_dev is None:
            return []
        metrics = []
        for dev, dev_stats in net_dev.items():
            for key, value in dev_stats.items():
                desc = self.metric_descs.get(key)
                if desc is None:
                    desc = self.metric_descs[key] = _stat_desc(key)
                metrics.append(Metric(desc, ValueType.COUNTER, float(value), (dev,)))
        if self.address_info:
            try:
                interfaces = psutil.net_if_addrs()
            except OSError:
                return metrics
            for addr in get_addrs_info(interfaces):
                metrics.append(
                    Metric(
                        _ADDRESS_DESC,
                        ValueType.GAUGE,
                        1.0,
                        (addr.device, addr.addr, addr.netmask, addr.scope),
                    )
                )
        return metrics

    def describe(self) -> list[Desc]:
        net_dev = self._stats()
        if net_dev is None:
            return []
        descs = [
            self.metric_descs.get(key) or _stat_desc(key)
            for dev_stats in net_dev.values()
            for key in dev_stats
        ]
        if self.address_info:
            descs.append(_ADDRESS_DESC)
        return descs