"""HTTP surface of the exporter: metrics endpoint, landing page, health."""
