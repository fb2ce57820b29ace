"""Dependency container for the orphan sweeper.

The container owns the store handle and every component built on it. It
is constructed explicitly by the entry point (or a test) and passed on;
there is no process-wide instance.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import structlog
from opentelemetry import trace

from orphan_sweeper.adapters.outbound import create_store
from orphan_sweeper.domain.services.bucket_repository import BucketRepository
from orphan_sweeper.domain.services.multipart_repository import MultipartRepository
from orphan_sweeper.domain.services.object_repository import ObjectRepository
from orphan_sweeper.domain.services.reconciliation import ReconciliationEngine
from orphan_sweeper.domain.value_objects.keys import KeyCodec
from orphan_sweeper.infrastructure.config import Config, get_config
from orphan_sweeper.infrastructure.logging import get_logger, setup_logging
from orphan_sweeper.infrastructure.metrics import MetricsRegistry, setup_metrics
from orphan_sweeper.infrastructure.tracing import setup_tracing
from orphan_sweeper.ports.outbound.kv_store import KVStore


@dataclass
class Container:
    """Components of one sweeper process, wired around a single store handle."""

    config: Config
    logger: structlog.BoundLogger
    tracer: trace.Tracer
    metrics: MetricsRegistry
    store: KVStore
    codec: KeyCodec = field(default_factory=KeyCodec)

    def __post_init__(self) -> None:
        self.buckets = BucketRepository(self.store, self.codec)
        self.objects = ObjectRepository(self.store, self.codec)
        self.multiparts = MultipartRepository(self.store, self.codec)

    @classmethod
    def create(
        cls,
        config: Config | None = None,
        store: KVStore | None = None,
        metrics: MetricsRegistry | None = None,
        tracer: trace.Tracer | None = None,
    ) -> Container:
        """Configure logging, metrics and tracing and open the store.

        Args:
            config: Configuration (environment-derived if not provided)
            store: Store handle to use instead of the configured backend
            metrics: Metrics registry to use instead of the global one
            tracer: Tracer to use instead of configuring a provider

        Raises:
            StoreError: If the configured store cannot be reached.
        """
        config = config or get_config()
        obs = config.observability

        setup_logging(obs.log_level, obs.log_format)
        logger = get_logger("orphan_sweeper", environment=obs.environment)

        if metrics is None:
            metrics = setup_metrics(obs.metrics_port)
        if tracer is None:
            tracer = setup_tracing(
                otlp_endpoint=obs.otlp_endpoint or None,
                console_export=obs.trace_console,
                environment=obs.environment,
            )
        if store is None:
            store = create_store(config.metadata)

        container = cls(
            config=config,
            logger=logger,
            tracer=tracer,
            metrics=metrics,
            store=store,
            codec=KeyCodec(namespace=config.metadata.key_namespace),
        )

        logger.info(
            "orphan_sweeper_container_initialized",
            backend=config.metadata.backend,
            key_namespace=config.metadata.key_namespace,
            metrics_port=obs.metrics_port,
        )
        return container

    def engine(self) -> ReconciliationEngine:
        """Build a reconciliation engine over this container's repositories."""
        return ReconciliationEngine(
            self.buckets,
            self.objects,
            self.multiparts,
            self.codec,
            metrics=self.metrics,
            tracer=self.tracer,
        )

    def close(self) -> None:
        """Release the store handle."""
        self.store.close()
        self.logger.debug("orphan_sweeper_container_closed")

    def __enter__(self) -> Container:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()
