import io

import pytest

from hostmetrics.meminfo import MeminfoCollector, parse_meminfo
from hostmetrics.prom import Paths, ValueType

MEMINFO = """MemTotal:        3742148 kB
Active(anon):       1024 kB

HugePages_Total:       0
Foo_total:             5
DirectMap2M:     3698688 kB
"""


def test_parse_meminfo_values():
    info = parse_meminfo(io.StringIO(MEMINFO))
    assert info["MemTotal_bytes"] == 3831959552.0
    assert info["DirectMap2M_bytes"] == 3787456512.0
    assert info["Active_anon_bytes"] == 1024 * 1024
    assert info["HugePages_Total"] == 0


def test_parse_meminfo_invalid_line():
    with pytest.raises(ValueError):
        parse_meminfo(io.StringIO("Foo: 1 kB extra\n"))


def test_parse_meminfo_invalid_value():
    with pytest.raises(ValueError, match="invalid value"):
        parse_meminfo(io.StringIO("Foo: abc kB\n"))


def test_collector_collect_and_describe(tmp_path):
    (tmp_path / "meminfo").write_text(MEMINFO)
    c = MeminfoCollector(Paths(proc_path=str(tmp_path)))
    metrics = {m.desc.fq_name: m for m in c.collect()}
    assert metrics["node_memory_MemTotal_bytes"].value == 3831959552.0
    assert metrics["node_memory_MemTotal_bytes"].value_type is ValueType.GAUGE
    assert metrics["node_memory_Foo_total"].value_type is ValueType.COUNTER
    assert {d.fq_name for d in c.describe()} == set(metrics)


def test_collector_missing_file(tmp_path):
    c = MeminfoCollector(Paths(proc_path=str(tmp_path)))
    assert c.collect() == []