"""Linux host metric collectors and a Prometheus text-format parser."""

__version__ = "0.1.0"