"""Infrastructure layer - cross-cutting concerns.

The container is imported from ``orphan_sweeper.infrastructure.container``
directly; it depends on the adapters, which depend on this package.
"""

from orphan_sweeper.infrastructure.config import Config, get_config
from orphan_sweeper.infrastructure.logging import setup_logging, get_logger
from orphan_sweeper.infrastructure.metrics import setup_metrics, MetricsRegistry
from orphan_sweeper.infrastructure.tracing import setup_tracing, get_tracer, trace_span

__all__ = [
    "Config",
    "get_config",
    "setup_logging",
    "get_logger",
    "setup_metrics",
    "MetricsRegistry",
    "setup_tracing",
    "get_tracer",
    "trace_span",
]
