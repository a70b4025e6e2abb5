# g2a_integration/resilience/circuit_breaker.py
"""
Circuit breaker guarding a single logical partner endpoint.

State transitions are evaluated lazily on each call from clock deltas:
OPEN becomes HALF_OPEN the first time the breaker is consulted after
``reset_timeout_ms`` has elapsed. No background timer is involved.
"""

import threading
import time
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from g2a_integration.config import CircuitBreakerSettings
from g2a_integration.exceptions import CircuitOpenError
from g2a_integration.utils.enhanced_logging import get_logger

logger = get_logger(__name__)

T = TypeVar('T')


class CircuitState(Enum):
    """Circuit breaker states."""
    CLOSED = "closed"      # Normal operation
    OPEN = "open"          # Failing fast
    HALF_OPEN = "half_open"  # Probing recovery


@dataclass
class CircuitBreakerStats:
    """Point-in-time view of a breaker."""
    name: str
    state: CircuitState
    failure_count: int
    success_count: int
    total_requests: int
    rejected_requests: int
    last_failure_time: Optional[float]
    state_changed_time: float
    next_attempt_time: Optional[float]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "state": self.state.value,
            "failure_count": self.failure_count,
            "success_count": self.success_count,
            "total_requests": self.total_requests,
            "rejected_requests": self.rejected_requests,
            "last_failure_time": self.last_failure_time,
            "state_changed_time": self.state_changed_time,
            "next_attempt_time": self.next_attempt_time,
        }


def _always_failure(exception: BaseException) -> bool:
    return True


class CircuitBreaker:
    """
    Three-state breaker with a rolling failure window.

    - CLOSED: calls pass; failures inside ``failure_window_ms`` are counted and
      the breaker opens when they reach ``failure_threshold``.
    - OPEN: calls fail fast with ``CircuitOpenError``.
    - HALF_OPEN: up to ``half_open_success_threshold`` trial calls may be in flight;
      that many consecutive successes close the breaker, any failure reopens it.

    ``is_failure`` decides whether an exception counts against the breaker.
    Exceptions it rejects still propagate but are recorded as successes,
    since the downstream did answer.
    """

    def __init__(self, name: str, settings: CircuitBreakerSettings,
                 clock: Callable[[], float] = time.monotonic,
                 is_failure: Optional[Callable[[BaseException], bool]] = None,
                 metrics=None):
        self.name = name
        self.settings = settings
        self._clock = clock
        self._is_failure = is_failure or _always_failure
        self.metrics = metrics
        self._lock = threading.Lock()
        self.logger = get_logger(f"circuit_breaker.{name}")
        self._reset_state()

    def _reset_state(self):
        self.state = CircuitState.CLOSED
        self._failures = deque()
        self.success_count = 0
        self.total_requests = 0
        self.rejected_requests = 0
        self.last_failure_time: Optional[float] = None
        self.opened_at: Optional[float] = None
        self.state_changed_time = self._clock()
        self._half_open_in_flight = 0

    # state helpers, caller holds the lock

    def _prune_failures(self, now: float):
        window = self.settings.failure_window_ms / 1000
        while self._failures and now - self._failures[0] > window:
            self._failures.popleft()

    def _refresh_state(self, now: float):
        if self.state == CircuitState.OPEN and self.opened_at is not None:
            if now - self.opened_at >= self.settings.reset_timeout_ms / 1000:
                self._transition(CircuitState.HALF_OPEN, now)

    def _transition(self, new_state: CircuitState, now: float):
        old_state = self.state
        self.state = new_state
        self.state_changed_time = now
        self.success_count = 0
        self._half_open_in_flight = 0

        if new_state == CircuitState.OPEN:
            self.opened_at = now
            if self.metrics is not None:
                self.metrics.circuit_breaker_opened.increment()
            self.logger.error(
                "Circuit breaker opened",
                circuit=self.name,
                previous_state=old_state.value,
                failure_count=len(self._failures),
                failure_threshold=self.settings.failure_threshold
            )
        elif new_state == CircuitState.HALF_OPEN:
            self.logger.info("Circuit breaker half-open, probing", circuit=self.name)
        else:
            self.opened_at = None
            self._failures.clear()
            self.logger.info(
                "Circuit breaker closed",
                circuit=self.name,
                previous_state=old_state.value
            )

    def _retry_after_ms(self, now: float) -> int:
        if self.opened_at is None:
            return 0
        remaining = self.settings.reset_timeout_ms / 1000 - (now - self.opened_at)
        return max(0, int(remaining * 1000))

    # public API

    def get_state(self) -> CircuitState:
        with self._lock:
            self._refresh_state(self._clock())
            return self.state

    def is_open(self) -> bool:
        return self.get_state() == CircuitState.OPEN

    def allow_request(self) -> bool:
        """Gate a call. Returns False when the caller must fail fast."""
        if not self.settings.enabled:
            return True
        with self._lock:
            now = self._clock()
            self._refresh_state(now)
            if self.state == CircuitState.OPEN:
                self.rejected_requests += 1
                return False
            if self.state == CircuitState.HALF_OPEN:
                if self._half_open_in_flight >= self.settings.half_open_success_threshold:
                    self.rejected_requests += 1
                    return False
                self._half_open_in_flight += 1
            return True

    def record_success(self):
        if not self.settings.enabled:
            return
        with self._lock:
            now = self._clock()
            self.total_requests += 1
            if self.state == CircuitState.HALF_OPEN:
                self._half_open_in_flight = max(0, self._half_open_in_flight - 1)
                self.success_count += 1
                if self.success_count >= self.settings.half_open_success_threshold:
                    self._transition(CircuitState.CLOSED, now)

    def release_half_open_slot(self):
        """Free a HALF_OPEN slot held by a call that was cancelled."""
        if not self.settings.enabled:
            return
        with self._lock:
            if self.state == CircuitState.HALF_OPEN:
                self._half_open_in_flight = max(0, self._half_open_in_flight - 1)

    def record_failure(self, exception: Optional[BaseException] = None):
        if not self.settings.enabled:
            return
        with self._lock:
            now = self._clock()
            self.total_requests += 1
            self.last_failure_time = now

            self.logger.warning(
                "Request failed",
                circuit=self.name,
                exception=str(exception) if exception else None,
                state=self.state.value
            )

            if self.state == CircuitState.HALF_OPEN:
                self._transition(CircuitState.OPEN, now)
                return

            if self.state == CircuitState.CLOSED:
                self._failures.append(now)
                self._prune_failures(now)
                if len(self._failures) >= self.settings.failure_threshold:
                    self._transition(CircuitState.OPEN, now)

    def open_error(self) -> CircuitOpenError:
        with self._lock:
            retry_after = self._retry_after_ms(self._clock())
        return CircuitOpenError(self.name, retry_after=retry_after)

    async def call(self, func: Callable[[], Awaitable[T]]) -> T:
        """
        Run ``func`` through the breaker.

        Raises:
            CircuitOpenError: if the breaker is open, without calling ``func``
        """
        if not self.allow_request():
            raise self.open_error()

        try:
            result = await func()
        except Exception as e:
            if self._is_failure(e):
                self.record_failure(e)
            else:
                self.record_success()
            raise
        except BaseException:
            self.release_half_open_slot()
            raise

        self.record_success()
        return result

    def get_stats(self) -> CircuitBreakerStats:
        with self._lock:
            now = self._clock()
            self._refresh_state(now)
            self._prune_failures(now)
            next_attempt_time = None
            if self.state == CircuitState.OPEN and self.opened_at is not None:
                next_attempt_time = self.opened_at + self.settings.reset_timeout_ms / 1000
            return CircuitBreakerStats(
                name=self.name,
                state=self.state,
                failure_count=len(self._failures),
                success_count=self.success_count,
                total_requests=self.total_requests,
                rejected_requests=self.rejected_requests,
                last_failure_time=self.last_failure_time,
                state_changed_time=self.state_changed_time,
                next_attempt_time=next_attempt_time,
            )

    def reset(self):
        """Force the breaker back to CLOSED with clean counters."""
        with self._lock:
            self._reset_state()
        self.logger.info("Circuit breaker reset", circuit=self.name)


class CircuitBreakerRegistry:
    """Lazily creates one breaker per scope, all sharing the same settings."""

    def __init__(self, settings: CircuitBreakerSettings,
                 clock: Callable[[], float] = time.monotonic,
                 is_failure: Optional[Callable[[BaseException], bool]] = None,
                 metrics=None):
        self.settings = settings
        self._clock = clock
        self._is_failure = is_failure
        self.metrics = metrics
        self._breakers: Dict[str, CircuitBreaker] = {}
        self._lock = threading.Lock()

    def get(self, name: str) -> CircuitBreaker:
        with self._lock:
            breaker = self._breakers.get(name)
            if breaker is None:
                breaker = CircuitBreaker(
                    name, self.settings, clock=self._clock,
                    is_failure=self._is_failure, metrics=self.metrics
                )
                self._breakers[name] = breaker
            return breaker

    def get_all_stats(self) -> Dict[str, Dict[str, Any]]:
        with self._lock:
            breakers = list(self._breakers.values())
        return {breaker.name: breaker.get_stats().to_dict() for breaker in breakers}

    def reset_all(self):
        with self._lock:
            breakers = list(self._breakers.values())
        for breaker in breakers:
            breaker.reset()
