"""
Circuit breaker guarding calls to the reading store.

States:
- CLOSED: Normal operation, calls pass through
- OPEN: The store has failed repeatedly; calls are rejected immediately
- HALF_OPEN: A limited number of probe calls decide whether to close again

The breaker never retries a call itself. A rejected or failed write is
reported to the caller, who is responsible for re-sending.
"""

import asyncio
import time
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Any, Callable, Optional


class CircuitState(Enum):
    """
    Circuit breaker states.

    - CLOSED -> OPEN: After failure_threshold consecutive failures
    - OPEN -> HALF_OPEN: After recovery_timeout has elapsed
    - HALF_OPEN -> CLOSED: On a successful probe
    - HALF_OPEN -> OPEN: On a failed probe
    """
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreakerConfig:
    """
    Configuration for a circuit breaker.

    Attributes:
        failure_threshold: Consecutive failures before the circuit opens
        recovery_timeout: How long the circuit stays open before probing
        half_open_max_calls: Probe calls allowed while half-open
    """
    failure_threshold: int = 3
    recovery_timeout: timedelta = timedelta(seconds=30)
    half_open_max_calls: int = 1


class CircuitOpenException(Exception):
    """Raised instead of calling through while the circuit is open."""

    def __init__(self, circuit_name: str, time_until_retry: Optional[timedelta] = None):
        self.circuit_name = circuit_name
        self.time_until_retry = time_until_retry

        message = f"Circuit breaker '{circuit_name}' is open"
        if time_until_retry is not None:
            message += f", retry in {int(time_until_retry.total_seconds())} seconds"

        super().__init__(message)


class CircuitBreaker:
    """
    Async circuit breaker.

    Example:
        breaker = CircuitBreaker("elasticsearch")
        try:
            result = await breaker.execute(do_search)
        except CircuitOpenException:
            ...  # report the store as unavailable
    """

    def __init__(
        self,
        name: str,
        config: Optional[CircuitBreakerConfig] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Args:
            name: Descriptive name, reported in CircuitOpenException
            config: Thresholds; defaults if not provided
            clock: Monotonic seconds source, replaceable in tests
        """
        self.name = name
        self.config = config or CircuitBreakerConfig()
        self._clock = clock
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_at: Optional[float] = None
        self._half_open_calls = 0
        self._lock = asyncio.Lock()

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    def _time_until_retry(self) -> Optional[timedelta]:
        if self._opened_at is None:
            return None
        elapsed = self._clock() - self._opened_at
        remaining = self.config.recovery_timeout.total_seconds() - elapsed
        if remaining <= 0:
            return None
        return timedelta(seconds=remaining)

    def _on_success(self) -> None:
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._half_open_calls = 0
        self._opened_at = None

    def _on_failure(self) -> None:
        if self._state == CircuitState.HALF_OPEN:
            self._trip()
            return
        self._failure_count += 1
        if self._failure_count >= self.config.failure_threshold:
            self._trip()

    def _release_probe(self) -> None:
        if self._state == CircuitState.HALF_OPEN and self._half_open_calls > 0:
            self._half_open_calls -= 1

    def _trip(self) -> None:
        self._state = CircuitState.OPEN
        self._opened_at = self._clock()
        self._half_open_calls = 0

    async def execute(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """
        Await ``func(*args, **kwargs)`` under circuit breaker protection.

        Raises:
            CircuitOpenException: If the circuit is open, or half-open with
                its probe budget already in use
            Exception: Whatever the wrapped call raises
        """
        async with self._lock:
            if self._state == CircuitState.OPEN:
                if self._time_until_retry() is not None:
                    raise CircuitOpenException(self.name, self._time_until_retry())
                self._state = CircuitState.HALF_OPEN
                self._half_open_calls = 0

            if self._state == CircuitState.HALF_OPEN:
                if self._half_open_calls >= self.config.half_open_max_calls:
                    raise CircuitOpenException(self.name, self._time_until_retry())
                self._half_open_calls += 1

        try:
            result = await func(*args, **kwargs)
        except asyncio.CancelledError:
            # A cancelled call says nothing about the store; free its half-open slot
            self._release_probe()
            raise
        except Exception:
            self._on_failure()
            raise

        self._on_success()
        return result

    def reset(self) -> None:
        """Force the circuit closed."""
        self._on_success()

    def __repr__(self) -> str:
        return (
            f"CircuitBreaker(name={self.name!r}, state={self._state.value}, "
            f"failure_count={self._failure_count})"
        )
