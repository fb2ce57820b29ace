"""Prometheus metrics for the orphan sweeper."""

from __future__ import annotations

from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    Info,
    start_http_server,
    REGISTRY,
    CollectorRegistry,
)


class MetricsRegistry:
    """Registry of all reconciliation metrics."""

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        """Initialize metrics registry."""
        self._registry = registry or REGISTRY

        # Run metrics
        self.runs_total = Counter(
            "orphan_sweeper_runs_total",
            "Total number of reconciliation passes",
            ["status"],  # success, failed, cancelled
            registry=self._registry,
        )

        self.run_duration_seconds = Histogram(
            "orphan_sweeper_run_duration_seconds",
            "Duration of a reconciliation pass in seconds",
            buckets=(1.0, 5.0, 15.0, 60.0, 300.0, 900.0, 3600.0, 14400.0),
            registry=self._registry,
        )

        # Scan metrics
        self.buckets_scanned_total = Counter(
            "orphan_sweeper_buckets_scanned_total",
            "Total buckets walked during the mark phase",
            registry=self._registry,
        )

        self.objects_scanned_total = Counter(
            "orphan_sweeper_objects_scanned_total",
            "Total object records walked during the mark phase",
            ["kind"],  # live, deleted
            registry=self._registry,
        )

        self.multipart_records_scanned_total = Counter(
            "orphan_sweeper_multipart_records_scanned_total",
            "Total multipart records walked during the sweep phase",
            registry=self._registry,
        )

        self.undecodable_records_total = Counter(
            "orphan_sweeper_undecodable_records_total",
            "Total records skipped because their value did not decode",
            ["kind"],  # live, deleted, multipart
            registry=self._registry,
        )

        # Result of the last pass
        self.reachable_fragments = Gauge(
            "orphan_sweeper_reachable_fragments",
            "Fragment keys referenced by live or tombstoned objects",
            registry=self._registry,
        )

        self.orphan_fragments = Gauge(
            "orphan_sweeper_orphan_fragments",
            "Fragment records referenced by no object",
            registry=self._registry,
        )

        self.orphan_bytes = Gauge(
            "orphan_sweeper_orphan_bytes",
            "Declared size of orphaned fragments in bytes",
            registry=self._registry,
        )

        self.last_success_timestamp = Gauge(
            "orphan_sweeper_last_success_timestamp_seconds",
            "Unix time of the last successful pass",
            registry=self._registry,
        )

        # Store metrics
        self.store_errors_total = Counter(
            "orphan_sweeper_store_errors_total",
            "Total metadata store failures that aborted a pass",
            ["error_type"],
            registry=self._registry,
        )

        # Build info
        self.info = Info(
            "orphan_sweeper",
            "Orphan sweeper information",
            registry=self._registry,
        )


# Global metrics registry
_metrics: MetricsRegistry | None = None


def setup_metrics(port: int = 0, registry: CollectorRegistry | None = None) -> MetricsRegistry:
    """
    Set up the metrics registry and, if a port is given, the scrape endpoint.

    Args:
        port: Port for the metrics HTTP server (0 disables the server)
        registry: Optional custom registry

    Returns:
        The metrics registry
    """
    global _metrics
    # Collectors can be registered on the default registry only once.
    if _metrics is None or registry is not None:
        _metrics = MetricsRegistry(registry)

    from orphan_sweeper import __version__
    _metrics.info.info({
        "version": __version__,
    })

    # Start HTTP server for Prometheus scraping
    if port:
        start_http_server(port, registry=registry or REGISTRY)

    return _metrics

