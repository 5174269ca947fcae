"""Observability helpers for the config client."""

from maji_config.observability.metrics import MetricsCollector

__all__ = ["MetricsCollector"]
