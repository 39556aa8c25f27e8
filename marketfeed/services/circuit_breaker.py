"""
CircuitBreaker - Stops calling a provider that keeps failing.

States:
- CLOSED: Normal operation, requests pass through
- OPEN: Provider is failing, requests are blocked
- HALF_OPEN: Testing if provider has recovered

Transitions:
- CLOSED → OPEN: When failure_threshold is reached
- OPEN → HALF_OPEN: After reset_timeout expires (evaluated on read, no timer)
- HALF_OPEN → CLOSED: On successful trial request
- HALF_OPEN → OPEN: On failed trial request
"""

import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Awaitable, Callable, TypeVar

from loguru import logger

from marketfeed.services.errors import CircuitOpenError

T = TypeVar("T")

StateChangeCallback = Callable[["CircuitState", "CircuitState"], None]


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "CLOSED"  # Normal operation
    OPEN = "OPEN"  # Blocking requests
    HALF_OPEN = "HALF_OPEN"  # Testing recovery


@dataclass
class CircuitBreakerConfig:
    """Configuration for circuit breaker."""

    failure_threshold: int = 5  # Consecutive failures before opening
    reset_timeout: timedelta = timedelta(minutes=5)  # Time before half-open
    half_open_max_requests: int = 1  # Trial requests allowed in half-open state


@dataclass(frozen=True)
class CircuitBreakerSnapshot:
    """Read-only view of a breaker at one point in time."""

    provider: str
    state: CircuitState
    failures: int
    last_failure: datetime | None
    opened_at: datetime | None
    next_attempt_at: datetime | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider": self.provider,
            "state": self.state.value,
            "failures": self.failures,
            "last_failure": (
                self.last_failure.isoformat() if self.last_failure else None
            ),
            "opened_at": self.opened_at.isoformat() if self.opened_at else None,
            "next_attempt_at": (
                self.next_attempt_at.isoformat() if self.next_attempt_at else None
            ),
        }


class CircuitBreaker:
    """
    Circuit breaker for a single provider.

    Usage:
        cb = CircuitBreaker("gemini-api")
        prices = await cb.execute(lambda: provider.fetch_prices(symbols))

    All state changes happen under one lock, so concurrent callers sharing
    a breaker always see a consistent failure count.
    """

    def __init__(
        self,
        provider: str,
        config: CircuitBreakerConfig | None = None,
        on_state_change: StateChangeCallback | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.provider = provider
        self.config = config or CircuitBreakerConfig()
        self._on_state_change = on_state_change
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._failures = 0
        self._last_failure: datetime | None = None
        self._opened_at: datetime | None = None
        self._half_open_requests = 0
        self._lock = threading.RLock()

    @property
    def state(self) -> CircuitState:
        """Get current state, checking for the OPEN → HALF_OPEN transition."""
        with self._lock:
            if (
                self._state == CircuitState.OPEN
                and self._opened_at
                and self._clock() >= self._opened_at + self.config.reset_timeout
            ):
                self._half_open_requests = 0
                self._transition_to(CircuitState.HALF_OPEN)
                logger.info(
                    f"Circuit breaker '{self.provider}' transitioned to HALF_OPEN"
                )
            return self._state

    @property
    def failures(self) -> int:
        return self._failures

    def is_open(self) -> bool:
        return self.state == CircuitState.OPEN

    def is_closed(self) -> bool:
        return self.state == CircuitState.CLOSED

    def is_half_open(self) -> bool:
        return self.state == CircuitState.HALF_OPEN

    def can_request(self) -> bool:
        """Check if a request would be allowed, without reserving a trial slot."""
        with self._lock:
            current_state = self.state
            if current_state == CircuitState.CLOSED:
                return True
            if current_state == CircuitState.HALF_OPEN:
                return self._half_open_requests < self.config.half_open_max_requests
            return False

    def check_request(self) -> None:
        """
        Admit a request or raise CircuitOpenError.

        In HALF_OPEN this reserves one of the trial slots.
        """
        with self._lock:
            current_state = self.state

            if current_state == CircuitState.CLOSED:
                return

            if (
                current_state == CircuitState.HALF_OPEN
                and self._half_open_requests < self.config.half_open_max_requests
            ):
                self._half_open_requests += 1
                return

            raise CircuitOpenError(
                self.provider,
                self.get_time_until_reset() or 0,
                details={
                    "state": current_state.value,
                    "opened_at": (
                        self._opened_at.isoformat() if self._opened_at else None
                    ),
                    "consecutive_failures": self._failures,
                },
            )

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run operation through the breaker, recording its outcome."""
        self.check_request()

        try:
            result = await operation()
        except Exception:
            self.record_failure()
            raise
        except BaseException:
            # Cancelled before an outcome: hand the trial slot back
            self._release_trial_slot()
            raise

        self.record_success()
        return result

    def _release_trial_slot(self) -> None:
        with self._lock:
            if self._state == CircuitState.HALF_OPEN and self._half_open_requests > 0:
                self._half_open_requests -= 1

    def record_success(self) -> None:
        """Record a successful request."""
        with self._lock:
            if self.state == CircuitState.HALF_OPEN:
                self._close()
            else:
                # Reset failure count on success
                self._failures = 0

    def record_failure(self) -> None:
        """Record a failed request."""
        with self._lock:
            current_state = self.state
            self._failures += 1
            self._last_failure = self._clock()

            if current_state == CircuitState.HALF_OPEN:
                # Any failure in half-open reopens the circuit
                self._open()
                logger.warning(
                    f"Circuit breaker '{self.provider}' reopened after failed trial request"
                )
            elif (
                current_state == CircuitState.CLOSED
                and self._failures >= self.config.failure_threshold
            ):
                self._open()
                logger.warning(
                    f"Circuit breaker '{self.provider}' OPENED after "
                    f"{self._failures} consecutive failures"
                )
            elif current_state == CircuitState.CLOSED:
                logger.warning(
                    f"Provider '{self.provider}' failure recorded "
                    f"({self._failures}/{self.config.failure_threshold})"
                )

    def reset(self) -> None:
        """Manually reset the circuit breaker."""
        with self._lock:
            previous = self._state
            self._state = CircuitState.CLOSED
            self._failures = 0
            self._opened_at = None
            self._half_open_requests = 0
            self._last_failure = None

            if previous != CircuitState.CLOSED:
                logger.info(f"Circuit breaker '{self.provider}' manually reset")
                self._notify(previous, CircuitState.CLOSED)

    def get_time_until_reset(self) -> float | None:
        """Get seconds until circuit transitions to half-open."""
        if self._state != CircuitState.OPEN or not self._opened_at:
            return None

        reset_at = self._opened_at + self.config.reset_timeout
        remaining = (reset_at - self._clock()).total_seconds()
        return max(0, remaining)

    def get_state(self) -> CircuitBreakerSnapshot:
        """Get a read-only snapshot of the breaker."""
        with self._lock:
            state = self.state
            next_attempt_at = (
                self._opened_at + self.config.reset_timeout
                if state == CircuitState.OPEN and self._opened_at
                else None
            )
            return CircuitBreakerSnapshot(
                provider=self.provider,
                state=state,
                failures=self._failures,
                last_failure=self._last_failure,
                opened_at=self._opened_at,
                next_attempt_at=next_attempt_at,
            )

    def _open(self) -> None:
        self._opened_at = self._clock()
        self._half_open_requests = 0
        self._transition_to(CircuitState.OPEN)

    def _close(self) -> None:
        self._failures = 0
        self._opened_at = None
        self._half_open_requests = 0
        self._transition_to(CircuitState.CLOSED)
        logger.info(f"Circuit breaker '{self.provider}' CLOSED (recovered)")

    def _transition_to(self, new_state: CircuitState) -> None:
        old_state = self._state
        self._state = new_state
        if old_state != new_state:
            self._notify(old_state, new_state)

    def _notify(self, old_state: CircuitState, new_state: CircuitState) -> None:
        if self._on_state_change is None:
            return
        try:
            self._on_state_change(old_state, new_state)
        except Exception as e:
            logger.error(
                f"Circuit breaker '{self.provider}' state callback failed: {e}"
            )


class CircuitBreakerRegistry:
    """
    Registry holding one circuit breaker per provider name.

    Usage:
        registry = CircuitBreakerRegistry()
        cb = registry.get_breaker("gemini-api")
    """

    def __init__(
        self,
        default_config: CircuitBreakerConfig | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._breakers: dict[str, CircuitBreaker] = {}
        self._default_config = default_config or CircuitBreakerConfig()
        self._clock = clock
        self._lock = threading.Lock()

    def get_breaker(
        self,
        provider: str,
        config: CircuitBreakerConfig | None = None,
    ) -> CircuitBreaker:
        """Get or create the circuit breaker for a provider."""
        with self._lock:
            if provider not in self._breakers:
                self._breakers[provider] = CircuitBreaker(
                    provider,
                    config or self._default_config,
                    clock=self._clock,
                )
            return self._breakers[provider]

    def get_all_states(self) -> list[CircuitBreakerSnapshot]:
        """Get snapshots of all circuit breakers."""
        with self._lock:
            breakers = list(self._breakers.values())
        return [cb.get_state() for cb in breakers]

    def reset_all(self) -> None:
        """Reset all circuit breakers."""
        with self._lock:
            breakers = list(self._breakers.values())
        for cb in breakers:
            cb.reset()
        logger.info(f"Reset {len(breakers)} circuit breakers")

    def reset(self, provider: str) -> bool:
        """Reset a specific circuit breaker."""
        cb = self._breakers.get(provider)
        if cb is None:
            return False
        cb.reset()
        return True

    def get_open_circuits(self) -> list[str]:
        """Get list of providers with open circuits."""
        with self._lock:
            breakers = list(self._breakers.items())
        return [name for name, cb in breakers if cb.is_open()]


# Process-wide registry shared by every service unless one is injected
circuit_breaker_registry = CircuitBreakerRegistry()
