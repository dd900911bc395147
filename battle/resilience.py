"""
Retry and circuit breaking for calls to the Shopify Admin API.

Shopify redelivers failed webhooks on its own schedule, so retries here are
kept short: they smooth over a throttled or dropped request inside one
delivery, and the breaker stops hammering Shopify when it is down.
"""
import asyncio
import random
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, Type

from battle.observability import get_logger

logger = get_logger(__name__)


class CircuitState(Enum):
    CLOSED = "closed"        # Requests pass
    OPEN = "open"            # Requests are rejected until recovery_timeout passes
    HALF_OPEN = "half_open"  # A limited number of probe requests pass


@dataclass
class RetryConfig:
    """Backoff schedule: base_delay * exponential_base ** n, capped at max_delay."""
    max_attempts: int = 3
    base_delay: float = 0.25
    max_delay: float = 2.0
    exponential_base: float = 2.0
    jitter: float = 0.1

    def delay_for(self, attempt: int, retry_after: Optional[float] = None) -> float:
        """
        Seconds to wait after failed ``attempt`` (1-based).

        A server-provided ``retry_after`` replaces the computed delay but is
        still capped at ``max_delay``.
        """
        if retry_after:
            return min(float(retry_after), self.max_delay)
        delay = min(self.base_delay * self.exponential_base ** (attempt - 1), self.max_delay)
        return delay + delay * self.jitter * random.random()


@dataclass
class CircuitBreakerConfig:
    failure_threshold: int = 5
    recovery_timeout: float = 30.0
    half_open_requests: int = 1


@dataclass
class CircuitBreaker:
    """
    Consecutive-failure circuit breaker.

    CLOSED opens after ``failure_threshold`` failures in a row. OPEN lets a
    probe through once ``recovery_timeout`` has passed (HALF_OPEN); the probe's
    result closes or re-opens the circuit.
    """
    name: str = "shopify"
    config: CircuitBreakerConfig = field(default_factory=CircuitBreakerConfig)
    state: CircuitState = CircuitState.CLOSED
    failure_count: int = 0
    last_failure_time: float = 0.0
    half_open_attempts: int = 0

    def __post_init__(self):
        self._lock = asyncio.Lock()

    def _recovery_due(self) -> bool:
        return time.time() - self.last_failure_time >= self.config.recovery_timeout

    async def can_execute(self) -> bool:
        async with self._lock:
            if self.state == CircuitState.OPEN:
                if not self._recovery_due():
                    return False
                logger.info(f"Circuit {self.name} half-open, probing")
                self.state = CircuitState.HALF_OPEN
                self.half_open_attempts = 0

            if self.state == CircuitState.HALF_OPEN:
                if self.half_open_attempts >= self.config.half_open_requests:
                    return False
                self.half_open_attempts += 1
            return True

    async def record_success(self) -> None:
        async with self._lock:
            if self.state == CircuitState.HALF_OPEN:
                logger.info(f"Circuit {self.name} closed after successful probe")
            self.state = CircuitState.CLOSED
            self.failure_count = 0

    async def record_failure(self) -> None:
        async with self._lock:
            self.failure_count += 1
            self.last_failure_time = time.time()

            if self.state == CircuitState.HALF_OPEN:
                logger.warning(f"Circuit {self.name} re-opened, probe failed")
                self.state = CircuitState.OPEN
            elif self.state == CircuitState.CLOSED and self.failure_count >= self.config.failure_threshold:
                logger.warning(
                    f"Circuit {self.name} opened after {self.failure_count} consecutive failures",
                    extra={"circuit": self.name, "failures": self.failure_count}
                )
                self.state = CircuitState.OPEN

    @property
    def is_open(self) -> bool:
        return self.state == CircuitState.OPEN

    def snapshot(self) -> Dict[str, Any]:
        """State for the health endpoint."""
        return {"state": self.state.value, "failures": self.failure_count}


async def retry_with_backoff(
    func: Callable[..., Awaitable[Any]],
    *args,
    config: Optional[RetryConfig] = None,
    retryable_exceptions: Tuple[Type[BaseException], ...] = (Exception,),
    **kwargs
) -> Any:
    """
    Await ``func(*args, **kwargs)``, retrying on ``retryable_exceptions``.

    Exceptions carrying a ``retry_after`` attribute (Shopify 429s) wait that
    long instead of the computed backoff.

    Raises:
        The last exception once ``config.max_attempts`` is reached
    """
    config = config or RetryConfig()

    attempt = 1
    while True:
        try:
            return await func(*args, **kwargs)
        except retryable_exceptions as e:
            if attempt >= config.max_attempts:
                logger.error(
                    f"Giving up after {attempt} attempts: {e}",
                    extra={"attempts": attempt, "error": str(e)}
                )
                raise

            delay = config.delay_for(attempt, getattr(e, "retry_after", None))
            logger.warning(
                f"Attempt {attempt} failed, retrying in {delay:.2f}s",
                extra={"attempt": attempt, "delay": round(delay, 3), "error": str(e)}
            )
            await asyncio.sleep(delay)
            attempt += 1
