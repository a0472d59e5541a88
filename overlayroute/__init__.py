"""Overlay network routing: packet headers, shortest paths, outlier detection, flow path search and load balancing."""

__version__ = "0.1.0"