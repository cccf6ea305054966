"""System identification as reported by uname."""

from __future__ import annotations

import os
from dataclasses import dataclass

from .prom import NAMESPACE, Desc, Metric, ValueType, build_fq_name

_DOMAINNAME_PATH = "/proc/sys/kernel/domainname"

UNAME_DESC = Desc(
    build_fq_name(NAMESPACE, "uname", "info"),
    "Labeled system information as provided by the uname system call.",
    ("sysname", "release", "version", "machine", "nodename", "domainname"),
)


@dataclass(frozen=True)
class Uname:
    sys_name: str
    release: str
    version: str
    machine: str
    node_name: str
    domain_name: str


def _domain_name() -> str:
    try:
        with open(_DOMAINNAME_PATH, encoding="utf-8") as fh:
            return fh.read().strip("\n")
    except OSError:
        return ""


def get_uname() -> Uname:
    """Return the system's uname fields."""
    info = os.uname()
    return Uname(
        sys_name=info.sysname,
        release=info.release,
        version=info.version,
        machine=info.machine,
        node_name=info.nodename,
        domain_name=_domain_name(),
    )


class UnameCollector:
    """Exposes uname information as labels of a constant gauge."""

    def collect(self) -> list[Metric]:
        try:
            info = get_uname()
        except OSError:
            return []
        return [
            Metric(
                UNAME_DESC,
                ValueType.GAUGE,
                1.0,
                (
                    info.sys_name,
                    info.release,
                    info.version,
                    info.machine,
                    info.node_name,
                    info.domain_name,
                ),
            )
        ]

    def describe(self) -> list[Desc]:
        return [UNAME_DESC]