"""Prometheus exporter for Barman Cloud backup and WAL archiving results.

The exporter reads the tab-separated status lines appended by the
barman-cloud hook scripts and turns the most recent state of each log
into gauges on every scrape.
"""

__version__ = "0.1.0"
