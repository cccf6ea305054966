import pytest

from hostmetrics.prom import Paths, ValueType
from hostmetrics.sockstat import SockStatCollector, parse_sockstat

SOCKSTAT = (
    "sockets: used 1602\n"
    "TCP: inuse 35 orphan 0 tw 4 alloc 59 mem 22\n"
    "UDP: inuse 12 mem 62\n"
    "UDPLITE: inuse 0\n"
    "RAW: inuse 0\n"
    "FRAG: inuse 0 memory 0\n"
)

SOCKSTAT6 = (
    "TCP6: inuse 17\n"
    "UDP6: inuse 9\n"
    "UDPLITE6: inuse 0\n"
    "RAW6: inuse 1\n"
    "FRAG6: inuse 0 memory 0\n"
)


def _write(tmp_path, sockstat=SOCKSTAT, sockstat6=SOCKSTAT6):
    net = tmp_path / "net"
    net.mkdir()
    if sockstat is not None:
        (net / "sockstat").write_text(sockstat)
    if sockstat6 is not None:
        (net / "sockstat6").write_text(sockstat6)
    return Paths(proc_path=str(tmp_path))


def test_parse_sockstat_ipv4():
    stat = parse_sockstat(SOCKSTAT.splitlines(keepends=True))
    assert stat.used == 1602
    assert [p.protocol for p in stat.protocols] == ["TCP", "UDP", "UDPLITE", "RAW", "FRAG"]
    tcp = stat.protocols[0]
    assert (tcp.in_use, tcp.orphan, tcp.tw, tcp.alloc, tcp.mem, tcp.memory) == (35, 0, 4, 59, 22, None)
    udp = stat.protocols[1]
    assert udp.orphan is None
    assert udp.mem == 62
    assert stat.protocols[4].memory == 0


def test_parse_sockstat_ipv6_has_no_used():
    stat = parse_sockstat(SOCKSTAT6.splitlines(), True)
    assert stat.used is None
    assert stat.is_ipv6
    assert stat.protocols[3].in_use == 1


@pytest.mark.parametrize(
    "line",
    ["TCP: inuse\n", "TCP: inuse 1 orphan\n", "TCP: inuse x\n", "TCP:  inuse 1\n"],
)
def test_parse_sockstat_errors(line):
    with pytest.raises(ValueError):
        parse_sockstat([line])


def test_collect_values(tmp_path):
    collector = SockStatCollector(_write(tmp_path), page_size=1)
    metrics = {m.desc.fq_name: m for m in collector.collect()}
    assert metrics["node_sockstat_sockets_used"].value == 1602.0
    assert metrics["node_sockstat_TCP_inuse"].value == 35.0
    assert metrics["node_sockstat_TCP_mem_bytes"].value == metrics["node_sockstat_TCP_mem"].value
    assert metrics["node_sockstat_RAW6_inuse"].value == 1.0
    assert "node_sockstat_UDP_orphan" not in metrics
    assert all(m.value_type is ValueType.GAUGE for m in metrics.values())


def test_mem_bytes_scales_with_page_size(tmp_path):
    paths = _write(tmp_path)
    small = {m.desc.fq_name: m.value for m in SockStatCollector(paths, page_size=1).collect()}
    large = {m.desc.fq_name: m.value for m in SockStatCollector(paths, page_size=2).collect()}
    assert large["node_sockstat_UDP_mem_bytes"] == 2 * small["node_sockstat_UDP_mem_bytes"]
    assert large["node_sockstat_UDP_mem"] == small["node_sockstat_UDP_mem"]


def test_missing_ipv6_file_is_tolerated(tmp_path):
    collector = SockStatCollector(_write(tmp_path, sockstat6=None), page_size=1)
    names = [m.desc.fq_name for m in collector.collect()]
    assert "node_sockstat_TCP_inuse" in names
    assert not any(name.endswith("6_inuse") for name in names)


def test_malformed_file_gives_nothing(tmp_path):
    collector = SockStatCollector(_write(tmp_path, sockstat="TCP: inuse\n"), page_size=1)
    assert collector.collect() == []
    assert collector.describe() == []


def test_missing_files_give_nothing(tmp_path):
    collector = SockStatCollector(Paths(proc_path=str(tmp_path / "absent")))
    assert collector.collect() == []


def test_describe_matches_collect(tmp_path):
    collector = SockStatCollector(_write(tmp_path), page_size=1)
    assert collector.describe() == [m.desc for m in collector.collect()]