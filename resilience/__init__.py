"""
Resilience patterns for the SafeButton Tracker backend.

Provides the circuit breaker placed in front of the reading store.
"""

from resilience.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitOpenException,
    CircuitState,
)

__all__ = [
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitOpenException",
    "CircuitState",
]
