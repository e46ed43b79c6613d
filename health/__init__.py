"""
Health check module for the SafeButton Tracker backend.

Provides liveness and readiness checks; readiness probes the reading store.
"""

from health.service import (
    DependencyHealth,
    HealthCheckService,
    HealthStatus,
)

__all__ = [
    "DependencyHealth",
    "HealthCheckService",
    "HealthStatus",
]
