"""
Monitoring Module

Prometheus metrics and dependency health checks.
"""

from .health_checker import HealthChecker, HealthStatus
from .metrics_collector import MetricsCollector

__all__ = ["HealthChecker", "HealthStatus", "MetricsCollector"]
