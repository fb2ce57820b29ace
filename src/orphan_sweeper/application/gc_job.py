"""Garbage collection job - one reconciliation pass with its bookkeeping.

Usage:
    with Container.create(config) as container:
        report = GarbageCollectionJob(container).run()
        print(report.summary_line())
"""

from __future__ import annotations

import threading
import time

from orphan_sweeper.domain.services.reconciliation import (
    ReconciliationCancelled,
    ReconciliationReport,
)
from orphan_sweeper.infrastructure.container import Container
from orphan_sweeper.ports.inbound import MetadataError
from orphan_sweeper.ports.outbound.kv_store import StoreError


class GarbageCollectionJob:
    """Runs the reconciliation engine and records the outcome.

    Failures are logged and counted, then re-raised unchanged; a failed or
    cancelled pass never yields a report.
    """

    def __init__(self, container: Container) -> None:
        self._container = container
        self._metrics = container.metrics
        self._logger = container.logger.bind(component="gc_job")

    def run(self, cancel: threading.Event | None = None) -> ReconciliationReport:
        """Run one pass.

        Raises:
            StoreError: If the metadata store fails.
            MetadataError: If a listed record cannot be decoded.
            ReconciliationCancelled: If ``cancel`` was set during the pass.
        """
        engine = self._container.engine()
        started = time.monotonic()
        try:
            report = engine.run(cancel)
        except ReconciliationCancelled as e:
            self._metrics.runs_total.labels(status="cancelled").inc()
            self._logger.warning("reconciliation_cancelled", phase=e.phase)
            raise
        except (StoreError, MetadataError) as e:
            self._metrics.runs_total.labels(status="failed").inc()
            self._metrics.store_errors_total.labels(error_type=type(e).__name__).inc()
            self._logger.error(
                "reconciliation_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise

        self._metrics.runs_total.labels(status="success").inc()
        self._metrics.run_duration_seconds.observe(time.monotonic() - started)
        self._metrics.last_success_timestamp.set_to_current_time()
        return report
