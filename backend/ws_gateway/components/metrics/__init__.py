"""
Metrics components.

In-process counters exposed through /ws/health.
"""

from ws_gateway.components.metrics.collector import MetricsCollector

__all__ = ["MetricsCollector"]
