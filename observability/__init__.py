"""Logging, metrics and timing shared by the scribeguard packages."""

from .logging_config import configure_logging, get_logger
from .metrics import InMemoryMetricsClient, MetricsClient, get_metrics_client, reset_metrics_client, set_metrics_client
from .phi_metrics import PHIMetrics
from .timing import TimingContext, timed

__all__ = [
    "InMemoryMetricsClient",
    "MetricsClient",
    "PHIMetrics",
    "TimingContext",
    "configure_logging",
    "get_logger",
    "get_metrics_client",
    "reset_metrics_client",
    "set_metrics_client",
    "timed",
]
