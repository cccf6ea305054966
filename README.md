# hostmetrics

Collectors for Linux host metrics read from the proc and sys filesystems,
and a parser for the Prometheus text exposition format.

## Installation

    pip install hostmetrics

For running the tests:

    pip install "hostmetrics[test]"
    pytest

## Metrics model

`hostmetrics.prom` holds the shared building blocks:

- `Desc` describes a metric: fully qualified name, help text and label names.
- `Metric` binds a `Desc` to a `ValueType` (counter, gauge, untyped, summary,
  histogram), a value and label values. A `ValueError` is raised when the
  number of label values does not match the descriptor's label names.
- `build_fq_name(namespace, subsystem, name)` joins the non-empty parts with
  underscores; collectors use the namespace `node`.
- `Paths` holds the mount points of proc (`/proc`), sys (`/sys`) and the root
  filesystem (`/`). Pass a `Paths` pointing at fixture directories to read
  from somewhere other than the live system.

## Collectors

Each collector has two methods:

- `collect()` returns a list of `Metric` values;
- `describe()` returns the list of `Desc` values for those metrics.

When the files a collector reads are missing or malformed, both methods
return an empty list rather than raising.

| Module                      | Collector              | Reads                                  |
|-----------------------------|------------------------|----------------------------------------|
| `hostmetrics.meminfo`       | `MeminfoCollector`     | `/proc/meminfo`                        |
| `hostmetrics.meminfo_numa`  | `MeminfoNumaCollector` | `/sys/devices/system/node/node*`       |
| `hostmetrics.vmstat`        | `VmstatCollector`      | `/proc/vmstat`                         |
| `hostmetrics.netdev`        | `NetDevCollector`      | `/proc/net/dev`, interface addresses   |
| `hostmetrics.netstat`       | `NetStatCollector`     | `/proc/net/netstat`, `snmp`, `snmp6`   |
| `hostmetrics.netclass`      | `NetClassCollector`    | `/sys/class/net`                       |
| `hostmetrics.sockstat`      | `SockStatCollector`    | `/proc/net/sockstat`, `sockstat6`      |
| `hostmetrics.stat`          | `StatCollector`        | `/proc/stat`                           |
| `hostmetrics.uname`         | `UnameCollector`       | `os.uname()`, kernel domain name       |
| `hostmetrics.textfile`      | `TextFileCollector`    | `*.prom` files in a directory or glob  |
| `hostmetrics.timecollector` | `TimeCollector`        | system clock, clocksource devices      |

Notes on options:

- `VmstatCollector` and `NetStatCollector` take a `fields` regular
  expression selecting which fields are exposed.
- `NetDevCollector` takes `device_include` / `device_exclude` patterns (and
  the older `old_device_include` / `old_device_exclude` spellings); giving
  conflicting options raises `ValueError`. `address_info=True` adds a
  `node_network_address_info` metric per IP address, gathered with psutil.
- `NetClassCollector` takes `ignored_devices` and `ignore_invalid_speed`.
- `SockStatCollector` takes a `page_size` used for the `*_mem_bytes` metrics.
- `StatCollector` raises `FileNotFoundError` if the proc mount point is not a
  directory; `softirq=True` adds per-vector softirq counters.
- `TextFileCollector(path, mtime)` reads `*.prom` files, adds
  `node_textfile_mtime_seconds` per file read and
  `node_textfile_scrape_error` (1 when any file failed). Files carrying
  client-side timestamps are skipped. `mtime` fixes the reported mtime value.

Example:

```python
from hostmetrics.prom import Paths
from hostmetrics.meminfo import MeminfoCollector

for metric in MeminfoCollector(Paths()).collect():
    print(metric.desc.fq_name, metric.value)
```

The parsing functions can be used on their own, for example
`hostmetrics.loadavg.parse_load("0.21 0.37 0.39 1/719 19737")` returns
`[0.21, 0.37, 0.39]`, and `parse_meminfo`, `parse_net_dev_stats`,
`parse_net_stats`, `parse_snmp6_stats`, `parse_sockstat` and `parse_stat`
accept an iterable of lines.

## Prometheus text format

`hostmetrics.expfmt.parse_text` turns exposition-format text into
`MetricFamily` objects keyed by name. `parse_pef` reads a stream, string or
bytes and returns a list of families, optionally restricted by a matcher
such as `PEFFilter`:

```python
import io
from hostmetrics.expfmt import PEFFilter, parse_pef

families = parse_pef(io.StringIO(text), PEFFilter(["http_requests_total"]))
```

Malformed input raises `ParseError`, a subclass of `ValueError`.

## What the package does not do

- It has no command-line program and no HTTP endpoint; collected metrics are
  returned as Python objects for the caller to expose or store.
- It does not synchronise with or track clock drift against an NTP server
  or any upstream service; `TimeCollector` only reports the local clock.