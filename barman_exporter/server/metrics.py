"""Metrics about the exporter process itself."""

from prometheus_client import Counter, Info

from barman_exporter import __version__


class ExporterMetrics:
    """Prometheus metrics for the exporter.

    The metrics are not bound to a registry; each request registers them
    next to the scrape results in a per-request registry.
    """

    def __init__(self):
        self.build_info = Info(
            'barman_cloud_exporter_build',
            'Barman Cloud exporter build information',
            registry=None,
        )
        self.build_info.info({"version": __version__})
        self.scrapes_total = Counter(
            'barman_cloud_exporter_scrapes',
            'Total scrapes served',
            ['result'],
            registry=None,
        )

    def record_scrape(self, up: float):
        """Count a scrape by whether every source succeeded."""
        self.scrapes_total.labels(result="success" if up else "failure").inc()

    def record_scrape_error(self):
        """Count a scrape that could not be served."""
        self.scrapes_total.labels(result="error").inc()

    def collectors(self):
        return [self.build_info, self.scrapes_total]
