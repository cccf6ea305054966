import os
from types import SimpleNamespace
from unittest import mock

from hostmetrics.prom import ValueType
from hostmetrics.uname import UnameCollector, get_uname

FAKE = SimpleNamespace(
    sysname="FakeOS", nodename="box", release="1.2.3", version="#7 build", machine="arm64"
)


def test_get_uname_matches_os():
    info = get_uname()
    expected = os.uname()
    assert (info.sys_name, info.release, info.machine, info.node_name) == (
        expected.sysname,
        expected.release,
        expected.machine,
        expected.nodename,
    )


@mock.patch("os.uname", return_value=FAKE)
def test_get_uname_fields(_uname):
    info = get_uname()
    assert info.sys_name == "FakeOS"
    assert info.node_name == "box"
    assert info.version == "#7 build"


@mock.patch("os.uname", return_value=FAKE)
def test_collect_labels(_uname):
    metrics = UnameCollector().collect()
    assert len(metrics) == 1
    metric = metrics[0]
    assert metric.value == 1.0
    assert metric.value_type is ValueType.GAUGE
    assert metric.labels["sysname"] == "FakeOS"
    assert metric.labels["release"] == "1.2.3"
    assert metric.labels["machine"] == "arm64"
    assert metric.labels["nodename"] == "box"


@mock.patch("os.uname", side_effect=OSError("boom"))
def test_collect_error_gives_nothing(_uname):
    assert UnameCollector().collect() == []


def test_describe():
    descs = UnameCollector().describe()
    assert [d.fq_name for d in descs] == ["node_uname_info"]
    assert descs[0] == UnameCollector().collect()[0].desc