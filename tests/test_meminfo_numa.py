import io

import pytest

from hostmetrics.meminfo_numa import (
    MeminfoMetric,
    MeminfoNumaCollector,
    get_meminfo_numa,
    parse_meminfo_numa,
    parse_meminfo_numa_stat,
)
from hostmetrics.prom import Paths, ValueType

NODE0_MEMINFO = """\
Node 0 MemTotal:       33503420 kB
Node 0 MemFree:        17977248 kB
Node 0 MemUsed:        15526172 kB
Node 0 Active:          8346780 kB
Node 0 Inactive:        6839796 kB
Node 0 Active(anon):     691324 kB
Node 0 Inactive(anon):   235044 kB
Node 0 Active(file):    7655456 kB
Node 0 Inactive(file):  6604752 kB
Node 0 Unevictable:           0 kB
Node 0 Mlocked:               0 kB
Node 0 Dirty:                20 kB
Node 0 Writeback:             0 kB
Node 0 FilePages:      14260884 kB
Node 0 Mapped:            52268 kB
Node 0 AnonPages:        926468 kB
Node 0 Shmem:             74224 kB
Node 0 KernelStack:        6608 kB
Node 0 PageTables:        15104 kB
Node 0 NFS_Unstable:          0 kB
Node 0 Bounce:                0 kB
Node 0 WritebackTmp:          0 kB
Node 0 Slab:             640932 kB
Node 0 SReclaimable:     597704 kB
Node 0 SUnreclaim:        43228 kB
Node 0 AnonHugePages:    147456 kB
Node 0 HugePages_Total:     0
Node 0 HugePages_Free:      0
Node 0 HugePages_Surp:      0
"""

NODE1_MEMINFO = """\
Node 1 MemTotal:       132132000 kB
Node 1 MemFree:         41372552 kB
Node 1 MemUsed:         90759448 kB
Node 1 Active:           5623240 kB
Node 1 Inactive:        83580480 kB
Node 1 Active(anon):      300776 kB
Node 1 Inactive(anon):    285088 kB
Node 1 Active(file):     5322464 kB
Node 1 Inactive(file):  83295392 kB
Node 1 Unevictable:            0 kB
Node 1 Mlocked:                0 kB
Node 1 Dirty:                 12 kB
Node 1 Writeback:              0 kB
Node 1 FilePages:       83579188 kB

Node 1 HugePages_Total:     0
"""

NODE0_NUMASTAT = """\
numa_hit 193460335812
numa_miss 12624528
numa_foreign 59858623300
interleave_hit 57146
local_node 193454780853
other_node 18179487
"""

NODE1_NUMASTAT = """\
numa_hit 326720946761
numa_miss 59858626709
numa_foreign 12624528
interleave_hit 57286
local_node 326719046550
other_node 59860526920
"""


def test_meminfo_numa_node0():
    mem_info = parse_meminfo_numa(io.StringIO(NODE0_MEMINFO))
    assert mem_info[5].value == 707915776.0
    assert mem_info[5].metric_name == "Active_anon"
    assert mem_info[25].value == 150994944.0


def test_meminfo_numa_node1():
    mem_info = parse_meminfo_numa(io.StringIO(NODE1_MEMINFO))
    assert mem_info[6].value == 291930112.0
    assert mem_info[13].value == 85585088512.0


def test_meminfo_numa_fields():
    mem_info = parse_meminfo_numa(io.StringIO(NODE0_MEMINFO))
    assert mem_info[0] == MeminfoMetric("MemTotal", ValueType.GAUGE, "0", 33503420.0 * 1024)
    assert mem_info[-1] == MeminfoMetric("HugePages_Surp", ValueType.GAUGE, "0", 0.0)


def test_meminfo_numa_skips_blank_lines():
    mem_info = parse_meminfo_numa(io.StringIO(NODE1_MEMINFO))
    assert len(mem_info) == 15


@pytest.mark.parametrize(
    "line",
    ["Node 0 MemTotal: abc kB\n", "Node 0 MemTotal: 10 MB\n", "Node 0\n", "Node 0 X: 1 kB extra\n"],
)
def test_meminfo_numa_invalid(line):
    with pytest.raises(ValueError):
        parse_meminfo_numa(io.StringIO(line))


def test_meminfo_numa_stat_node0():
    numa_stat = parse_meminfo_numa_stat(io.StringIO(NODE0_NUMASTAT), "0")
    assert numa_stat[0].value == 193460335812.0
    assert numa_stat[0].metric_name == "numa_hit_total"
    assert numa_stat[4].value == 193454780853.0
    assert numa_stat[0].metric_type is ValueType.COUNTER
    assert numa_stat[0].numa_node == "0"


def test_meminfo_numa_stat_node1():
    numa_stat = parse_meminfo_numa_stat(io.StringIO(NODE1_NUMASTAT), "1")
    assert numa_stat[1].value == 59858626709.0
    assert numa_stat[5].value == 59860526920.0


@pytest.mark.parametrize("text", ["numa_hit\n", "numa_hit 1 2\n", "numa_hit x\n"])
def test_meminfo_numa_stat_invalid(text):
    with pytest.raises(ValueError):
        parse_meminfo_numa_stat(io.StringIO(text), "0")


def _make_sys(root, nodes):
    for number, (meminfo, numastat) in nodes.items():
        node_dir = root / "devices" / "system" / "node" / f"node{number}"
        node_dir.mkdir(parents=True)
        (node_dir / "meminfo").write_text(meminfo)
        if numastat is not None:
            (node_dir / "numastat").write_text(numastat)
    return Paths(sys_path=str(root))


def test_get_meminfo_numa(tmp_path):
    paths = _make_sys(
        tmp_path, {0: (NODE0_MEMINFO, NODE0_NUMASTAT), 1: (NODE1_MEMINFO, NODE1_NUMASTAT)}
    )
    metrics = get_meminfo_numa(paths)
    assert len(metrics) == 29 + 6 + 15 + 6
    assert metrics[29].metric_name == "numa_hit_total"
    assert metrics[29].numa_node == "0"
    assert metrics[-1] == MeminfoMetric("other_node_total", ValueType.COUNTER, "1", 59860526920.0)


def test_get_meminfo_numa_missing_numastat(tmp_path):
    paths = _make_sys(tmp_path, {0: (NODE0_MEMINFO, None)})
    with pytest.raises(FileNotFoundError):
        get_meminfo_numa(paths)


def test_get_meminfo_numa_no_nodes(tmp_path):
    assert get_meminfo_numa(Paths(sys_path=str(tmp_path))) == []


def test_collector_collect(tmp_path):
    paths = _make_sys(tmp_path, {0: (NODE0_MEMINFO, NODE0_NUMASTAT)})
    collector = MeminfoNumaCollector(paths)
    metrics = collector.collect()
    assert len(metrics) == 35
    first = metrics[0]
    assert first.desc.fq_name == "node_memory_numa_MemTotal"
    assert first.desc.help == "Memory information field MemTotal."
    assert first.labels == {"node": "0"}
    hit = metrics[29]
    assert hit.desc.fq_name == "node_memory_numa_numa_hit_total"
    assert hit.value_type is ValueType.COUNTER
    assert "Active_anon" in collector.metric_descs


def test_collector_describe_does_not_cache(tmp_path):
    paths = _make_sys(tmp_path, {0: (NODE0_MEMINFO, NODE0_NUMASTAT)})
    collector = MeminfoNumaCollector(paths)
    descs = collector.describe()
    assert len(descs) == 35
    assert descs[5].fq_name == "node_memory_numa_Active_anon"
    assert descs[5].variable_labels == ("node",)
    assert collector.metric_descs == {}


def test_collector_error_yields_nothing(tmp_path):
    paths = _make_sys(tmp_path, {0: ("Node 0 Bad: x kB\n", NODE0_NUMASTAT)})
    collector = MeminfoNumaCollector(paths)
    assert collector.collect() == []
    assert collector.describe() == []