"""Observability layer - logging and metrics."""

from alertflow.observability.logging import setup_logging
from alertflow.observability.metrics import MetricsCollector, get_metrics

__all__ = ["setup_logging", "MetricsCollector", "get_metrics"]
