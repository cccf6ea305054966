"""Network interface attributes from /sys/class/net."""

from __future__ import annotations

import errno
import os
import re
from dataclasses import dataclass, fields

from .prom import NAMESPACE, Desc, Metric, Paths, ValueType, build_fq_name

SUBSYSTEM = "network"
NET_CLASS_PATH = "class/net"

_INT_ATTRIBUTES = {
    "addr_assign_type",
    "carrier",
    "carrier_changes",
    "carrier_up_count",
    "carrier_down_count",
    "dev_id",
    "dormant",
    "flags",
    "ifindex",
    "iflink",
    "link_mode",
    "mtu",
    "name_assign_type",
    "netdev_group",
    "speed",
    "tx_queue_len",
    "type",
}
_STR_ATTRIBUTES = {"address", "broadcast", "duplex", "operstate", "ifalias"}
_SKIPPABLE_ERRNOS = {errno.ENOENT, errno.EACCES, errno.EPERM, errno.EINVAL, errno.EOPNOTSUPP}


@dataclass
class NetClassIface:
    """Attributes of one network interface; missing ones are None."""

    name: str
    address: str = ""
    broadcast: str = ""
    duplex: str = ""
    operstate: str = ""
    ifalias: str = ""
    addr_assign_type: int | None = None
    carrier: int | None = None
    carrier_changes: int | None = None
    carrier_up_count: int | None = None
    carrier_down_count: int | None = None
    dev_id: int | None = None
    dormant: int | None = None
    flags: int | None = None
    ifindex: int | None = None
    iflink: int | None = None
    link_mode: int | None = None
    mtu: int | None = None
    name_assign_type: int | None = None
    netdev_group: int | None = None
    speed: int | None = None
    tx_queue_len: int | None = None
    type: int | None = None


def _parse_int(text: str) -> int:
    """Parse a signed integer with 0x, 0o, 0b or leading-0 octal prefixes."""
    sign, body = 1, text
    if body[:1] in "+-" and body:
        sign, body = (-1 if body[0] == "-" else 1), body[1:]
    if not body or body[0] in "+-" or body != body.strip():
        raise ValueError(f"invalid integer {text!r}")
    if len(body) > 1 and body[0] == "0" and (body[1].isdigit() or body[1] == "_"):
        value = int(body[1:], 8)
    else:
        value = int(body, 0)
    value *= sign
    if not -(1 << 63) <= value < (1 << 63):
        raise ValueError(f"value out of range: {text!r}")
    return value


def net_class_devices(paths: Paths | None = None) -> list[str]:
    """List interface names under /sys/class/net, skipping regular files."""
    paths = paths or Paths()
    with os.scandir(paths.sys(NET_CLASS_PATH)) as entries:
        return sorted(e.name for e in entries if not e.is_file(follow_symlinks=False))


def read_net_class_iface(paths: Paths | None, device: str) -> NetClassIface:
    """Read the attribute files of one interface."""
    paths = paths or Paths()
    iface = NetClassIface(name=device)
    directory = os.path.join(paths.sys(NET_CLASS_PATH), device)
    with os.scandir(directory) as entries:
        files = sorted(e.name for e in entries if e.is_file(follow_symlinks=False))
    for attr in files:
        if attr not in _INT_ATTRIBUTES and attr not in _STR_ATTRIBUTES:
            continue
        try:
            with open(os.path.join(directory, attr), encoding="utf-8") as fh:
                value = fh.read().strip()
        except OSError as exc:
            if exc.errno in _SKIPPABLE_ERRNOS:
                continue
            raise
        if attr in _INT_ATTRIBUTES:
            try:
                setattr(iface, attr, _parse_int(value))
            except ValueError as exc:
                raise ValueError(f"invalid {attr} value {value!r} for {device}") from exc
        else:
            setattr(iface, attr, value)
    return iface


# (metric name, attribute, value type) in exposition order; speed is special.
_FIELD_METRICS = (
    ("address_assign_type", "addr_assign_type", ValueType.GAUGE),
    ("carrier", "carrier", ValueType.GAUGE),
    ("carrier_changes_total", "carrier_changes", ValueType.COUNTER),
    ("carrier_up_changes_total", "carrier_up_count", ValueType.COUNTER),
    ("carrier_down_changes_total", "carrier_down_count", ValueType.COUNTER),
    ("device_id", "dev_id", ValueType.GAUGE),
    ("dormant", "dormant", ValueType.GAUGE),
    ("flags", "flags", ValueType.GAUGE),
    ("iface_id", "ifindex", ValueType.GAUGE),
    ("iface_link", "iflink", ValueType.GAUGE),
    ("iface_link_mode", "link_mode", ValueType.GAUGE),
    ("mtu_bytes", "mtu", ValueType.GAUGE),
    ("name_assign_type", "name_assign_type", ValueType.GAUGE),
    ("net_dev_group", "netdev_group", ValueType.GAUGE),
    ("speed_bytes", "speed", ValueType.GAUGE),
    ("transmit_queue_length", "tx_queue_len", ValueType.GAUGE),
    ("protocol_type", "type", ValueType.GAUGE),
)

assert {attr for _, attr, _ in _FIELD_METRICS} <= {f.name for f in fields(NetClassIface)}


def _trunc_div(numerator: int, denominator: int) -> int:
    quotient = abs(numerator) // denominator
    return -quotient if numerator < 0 else quotient


class NetClassCollector:
    """Exposes network interface attributes."""

    def __init__(
        self,
        paths: Paths | None = None,
        ignored_devices: str = "^$",
        ignore_invalid_speed: bool = False,
    ) -> None:
        self.paths = paths or Paths()
        self.subsystem = SUBSYSTEM
        self.ignored_devices_pattern = re.compile(ignored_devices)
        self.ignore_invalid_speed = ignore_invalid_speed
        self.metric_descs: dict[str, Desc] = {}

    def get_net_class_info(self) -> dict[str, NetClassIface]:
        return {
            device: read_net_class_iface(self.paths, device)
            for device in net_class_devices(self.paths)
            if not self.ignored_devices_pattern.search(device)
        }

    def _safe_info(self) -> dict[str, NetClassIface]:
        try:
            return self.get_net_class_info()
        except (OSError, ValueError):
            return {}

    def _up_desc(self) -> Desc:
        return Desc(
            build_fq_name(NAMESPACE, self.subsystem, "up"),
            "Value is 1 if operstate is 'up', 0 otherwise.",
            ("device",),
        )

    def _info_desc(self) -> Desc:
        return Desc(
            build_fq_name(NAMESPACE, self.subsystem, "info"),
            "Non-numeric data from /sys/class/net/<iface>, value is always 1.",
            ("device", "address", "broadcast", "duplex", "operstate", "ifalias"),
        )

    def _field_desc(self, name: str) -> Desc:
        return Desc(
            build_fq_name(NAMESPACE, self.subsystem, name),
            f"{name} value of /sys/class/net/<iface>.",
            ("device",),
        )

    def _fields(self, iface: NetClassIface):
        for name, attr, value_type in _FIELD_METRICS:
            value = getattr(iface, attr)
            if value is None:
                continue
            if attr == "speed":
                if value < 0 and self.ignore_invalid_speed:
                    continue
                value = _trunc_div(value * 1000 * 1000, 8)
            yield name, value, value_type

    def collect(self) -> list[Metric]:
        metrics = []
        for iface in self._safe_info().values():
            up = 1.0 if iface.operstate == "up" else 0.0
            metrics.append(Metric(self._up_desc(), ValueType.GAUGE, up, (iface.name,)))
            metrics.append(
                Metric(
                    self._info_desc(),
                    ValueType.GAUGE,
                    1.0,
                    (
                        iface.name,
                        iface.address,
                        iface.broadcast,
                        iface.duplex,
                        iface.operstate,
                        iface.ifalias,
                    ),
                )
            )
            for name, value, value_type in self._fields(iface):
                metrics.append(
                    Metric(self._field_desc(name), value_type, float(value), (iface.name,))
                )
        return metrics

    def describe(self) -> list[Desc]:
        descs = []
        for iface in self._safe_info().values():
            descs.append(self._up_desc())
            descs.append(self._info_desc())
            descs.extend(self._field_desc(name) for name, _, _ in self._fields(iface))
        return descs