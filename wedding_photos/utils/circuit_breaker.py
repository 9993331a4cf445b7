"""
Circuit breaker for the Media Library Service.

When the provider keeps failing, album creation, batch finalize and gallery
reads should fail fast with a 503 instead of each waiting out a timeout.

    CLOSED --(N consecutive outages)--> OPEN --(timeout)--> HALF_OPEN
    HALF_OPEN --(M successes)--> CLOSED
    HALF_OPEN --(one failure)--> OPEN

Reference: https://martinfowler.com/bliki/CircuitBreaker.html
"""
import asyncio
import logging
import time
from enum import Enum
from typing import Awaitable, Callable, Optional, TypeVar

from wedding_photos.utils.prometheus_metrics import (
    REGISTRY,
    Gauge,
    circuit_breaker_requests_total,
    circuit_breaker_failures_total,
    circuit_breaker_state_transitions_total,
    circuit_breaker_call_duration_seconds,
)

logger = logging.getLogger("wedding_photos.circuit_breaker")

breaker_state_gauge = Gauge(
    "wedding_photos_circuit_breaker_state",
    "Breaker state per upstream (0=CLOSED, 1=OPEN, 2=HALF_OPEN)",
    ["service"],
    registry=REGISTRY,
)

breaker_failure_streak_gauge = Gauge(
    "wedding_photos_circuit_breaker_consecutive_failures",
    "Consecutive upstream outages seen by the breaker",
    ["service"],
    registry=REGISTRY,
)

T = TypeVar("T")


class CircuitState(str, Enum):
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"

    @property
    def gauge_value(self) -> int:
        return {"CLOSED": 0, "OPEN": 1, "HALF_OPEN": 2}[self.value]


class CircuitBreakerOpenError(Exception):
    """The breaker is OPEN; the upstream was not called."""

    def __init__(self, service_name: str):
        super().__init__(f"Circuit breaker is OPEN for {service_name}")
        self.service_name = service_name


class CircuitBreaker:
    """
    Async breaker wrapped around calls to one upstream.

        breaker = CircuitBreaker("google_photos", failure_threshold=5, timeout=60)
        created = await breaker.call(send_create_album, title)

    Every exception raised by the wrapped call counts as an outage. The media
    library client returns 4xx responses from the wrapped call and raises for
    them afterwards, so a 404 for a deleted item is not an outage.
    """

    def __init__(
        self,
        service_name: str,
        failure_threshold: int = 5,
        success_threshold: int = 2,
        timeout: float = 60.0,
    ):
        self.service_name = service_name
        self.failure_threshold = failure_threshold
        self.success_threshold = success_threshold
        self.timeout = timeout

        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.success_count = 0
        self.opened_at: Optional[float] = None
        self._lock = asyncio.Lock()

        self._publish()

    def _publish(self) -> None:
        breaker_state_gauge.labels(service=self.service_name).set(self.state.gauge_value)
        breaker_failure_streak_gauge.labels(service=self.service_name).set(self.failure_count)

    def _move_to(self, new_state: CircuitState, reason: str) -> None:
        circuit_breaker_state_transitions_total.labels(
            service=self.service_name,
            from_state=self.state.value,
            to_state=new_state.value,
        ).inc()
        level = logging.WARNING if new_state == CircuitState.OPEN else logging.INFO
        logger.log(
            level,
            f"{self.service_name} breaker {self.state.value} -> {new_state.value}",
            extra={
                "event": "circuit_breaker",
                "service": self.service_name,
                "reason": reason,
                "failure_count": self.failure_count,
            },
        )
        self.state = new_state
        if new_state == CircuitState.OPEN:
            self.opened_at = time.monotonic()
        else:
            self.failure_count = 0
            self.success_count = 0
        self._publish()

    async def _admit(self) -> None:
        async with self._lock:
            if (
                self.state == CircuitState.OPEN
                and self.opened_at is not None
                and time.monotonic() - self.opened_at >= self.timeout
            ):
                self._move_to(CircuitState.HALF_OPEN, "cooldown elapsed")

            if self.state == CircuitState.OPEN:
                circuit_breaker_requests_total.labels(
                    service=self.service_name, status="rejected"
                ).inc()
                logger.warning(
                    "Upstream call rejected by open breaker",
                    extra={"event": "circuit_breaker", "service": self.service_name},
                )
                raise CircuitBreakerOpenError(self.service_name)

    async def _settle(self, error: Optional[BaseException], started: float) -> None:
        outcome = "success" if error is None else "failure"
        circuit_breaker_requests_total.labels(service=self.service_name, status=outcome).inc()
        circuit_breaker_call_duration_seconds.labels(service=self.service_name).observe(
            time.perf_counter() - started
        )

        async with self._lock:
            if error is None:
                if self.state == CircuitState.HALF_OPEN:
                    self.success_count += 1
                    if self.success_count >= self.success_threshold:
                        self._move_to(CircuitState.CLOSED, "probe succeeded")
                elif self.failure_count:
                    self.failure_count = 0
                    self._publish()
                return

            self.failure_count += 1
            circuit_breaker_failures_total.labels(
                service=self.service_name, exception_type=type(error).__name__
            ).inc()
            if self.state == CircuitState.HALF_OPEN:
                self._move_to(CircuitState.OPEN, "probe failed")
            elif self.failure_count >= self.failure_threshold:
                self._move_to(CircuitState.OPEN, "failure threshold reached")
            else:
                self._publish()

    async def call(self, func: Callable[..., Awaitable[T]], *args, **kwargs) -> T:
        """
        Await `func(*args, **kwargs)` unless the breaker is OPEN.

        Raises:
            CircuitBreakerOpenError: breaker is OPEN
            Whatever `func` raises
        """
        await self._admit()

        started = time.perf_counter()
        try:
            result = await func(*args, **kwargs)
        except Exception as e:
            await self._settle(e, started)
            raise

        await self._settle(None, started)
        return result
