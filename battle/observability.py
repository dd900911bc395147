"""
Observability for webhook processing: structured logging, correlation IDs
and in-process metrics.

Every log line written while a webhook is handled carries the delivery's
correlation ID and, when known, its topic and shop domain.

Usage:
    from battle.observability import setup_logging, get_logger, correlation_context

    setup_logging(level="INFO", json_format=True)
    logger = get_logger(__name__)

    with correlation_context(webhook_id, topic="orders/paid", shop_domain=shop):
        logger.info("Order recorded", extra={"order_id": "1001"})
"""
import logging
import json
import time
import uuid
from contextvars import ContextVar
from typing import Optional, Any, Dict, List
from datetime import datetime, timezone

_correlation_id: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)
_topic: ContextVar[Optional[str]] = ContextVar("webhook_topic", default=None)
_shop_domain: ContextVar[Optional[str]] = ContextVar("shop_domain", default=None)

# Set on every LogRecord by the logging module; anything else came from ``extra``
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}

_NOISY_LOGGERS = ("httpx", "httpcore", "uvicorn.access", "redis")


def get_correlation_id() -> Optional[str]:
    return _correlation_id.get()


def set_correlation_id(correlation_id: str) -> None:
    _correlation_id.set(correlation_id)


def generate_correlation_id() -> str:
    """Short random id for requests that arrive without one."""
    return uuid.uuid4().hex[:12]


def get_log_context() -> Dict[str, str]:
    """Delivery fields currently in scope, skipping unset ones."""
    context = {
        "correlation_id": _correlation_id.get(),
        "topic": _topic.get(),
        "shop": _shop_domain.get(),
    }
    return {key: value for key, value in context.items() if value}


class correlation_context:
    """
    Scope a correlation ID (and optionally topic and shop) to a block.

    The previous values are restored on exit, so nested scopes are safe.
    """

    def __init__(
        self,
        correlation_id: Optional[str] = None,
        topic: Optional[str] = None,
        shop_domain: Optional[str] = None,
    ):
        self.correlation_id = correlation_id or generate_correlation_id()
        self.topic = topic
        self.shop_domain = shop_domain
        self._tokens = []

    def __enter__(self) -> str:
        self._tokens = [
            (_correlation_id, _correlation_id.set(self.correlation_id)),
            (_topic, _topic.set(self.topic)),
            (_shop_domain, _shop_domain.set(self.shop_domain)),
        ]
        return self.correlation_id

    def __exit__(self, *args) -> None:
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens = []


def _extra_fields(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        key: value for key, value in vars(record).items()
        if key not in _RECORD_ATTRS and not key.startswith("_")
    }


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class StructuredFormatter(logging.Formatter):
    """One JSON object per line, for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": _utc_timestamp(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **get_log_context(),
            **_extra_fields(record),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class HumanReadableFormatter(logging.Formatter):
    """
    Console format:

        2026-10-18 09:00:00 - INFO     - battle.handlers [3f2a9c1b0d4e orders/paid] - Order 1001 recorded | {...}
    """

    def format(self, record: logging.LogRecord) -> str:
        context = get_log_context()
        scope = " ".join(context[key] for key in ("correlation_id", "topic") if key in context)
        scope = f" [{scope}]" if scope else ""

        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
        line = f"{timestamp} - {record.levelname:8} - {record.name}{scope} - {record.getMessage()}"

        extras = _extra_fields(record)
        if extras:
            line += f" | {extras}"
        if record.exc_info:
            line += f"\n{self.formatException(record.exc_info)}"
        return line


def setup_logging(
    level: str = "INFO",
    json_format: bool = False,
    include_libs: bool = False
) -> None:
    """
    Configure the root logger once at startup.

    Args:
        level: Log level name (LOG_LEVEL)
        json_format: JSON lines instead of console format (LOG_FORMAT=json)
        include_libs: Keep INFO logs from httpx, redis and uvicorn access
    """
    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter() if json_format else HumanReadableFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    if not include_libs:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


# ═══════════════════════════════════════════════════════════════════════════════
# TIMING
# ═══════════════════════════════════════════════════════════════════════════════

class Timer:
    """
    Measure a block in milliseconds.

    With a logger the duration is logged (WARNING above ``slow_ms``); with a
    collector it is also added to the timing samples.

    Usage:
        with Timer("shopify_graphql", logger) as t:
            response = await client.request(...)
        t.elapsed_ms
    """

    def __init__(
        self,
        name: str,
        logger: Optional[logging.Logger] = None,
        collector: Optional["MetricsCollector"] = None,
        slow_ms: float = 1000.0,
    ):
        self.name = name
        self.logger = logger
        self.collector = collector
        self.slow_ms = slow_ms
        self.elapsed_ms: float = 0.0
        self._start: float = 0.0

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, *args) -> None:
        self.elapsed_ms = (time.perf_counter() - self._start) * 1000

        if self.collector is not None:
            self.collector.record_timing(self.name, self.elapsed_ms)

        if self.logger:
            level = logging.WARNING if self.elapsed_ms > self.slow_ms else logging.DEBUG
            self.logger.log(
                level,
                f"{self.name} took {self.elapsed_ms:.1f}ms",
                extra={"operation": self.name, "duration_ms": round(self.elapsed_ms, 2)}
            )


# ═══════════════════════════════════════════════════════════════════════════════
# METRICS
# ═══════════════════════════════════════════════════════════════════════════════

def _summarize(samples: List[float]) -> Dict[str, float]:
    ordered = sorted(samples)
    return {
        "count": len(ordered),
        "avg_ms": round(sum(ordered) / len(ordered), 2),
        "min_ms": round(ordered[0], 2),
        "max_ms": round(ordered[-1], 2),
        "p50_ms": round(ordered[len(ordered) // 2], 2),
    }


class MetricsCollector:
    """
    In-process counters served by ``GET /api/metrics``.

    Counts are per worker and reset on restart. Outcomes are keyed
    ``"{topic}:{status}"``, e.g. ``"orders/paid:duplicate"``.
    """

    max_samples = 100

    def __init__(self):
        self._requests: Dict[str, int] = {}
        self._outcomes: Dict[str, int] = {}
        self._errors: Dict[str, int] = {}
        self._timings: Dict[str, List[float]] = {}

    @staticmethod
    def _bump(counter: Dict[str, int], key: str) -> None:
        counter[key] = counter.get(key, 0) + 1

    def record_request(self, endpoint: str) -> None:
        self._bump(self._requests, endpoint)

    def record_outcome(self, topic: str, status: str) -> None:
        self._bump(self._outcomes, f"{topic}:{status}")

    def record_error(self, error_type: str) -> None:
        self._bump(self._errors, error_type)

    def record_timing(self, operation: str, duration_ms: float) -> None:
        samples = self._timings.setdefault(operation, [])
        samples.append(duration_ms)
        del samples[:-self.max_samples]

    def get_stats(self) -> Dict[str, Any]:
        return {
            "requests": dict(self._requests),
            "outcomes": dict(self._outcomes),
            "errors": dict(self._errors),
            "timing": {op: _summarize(s) for op, s in self._timings.items() if s},
        }

    def reset(self) -> None:
        for counter in (self._requests, self._outcomes, self._errors, self._timings):
            counter.clear()


metrics = MetricsCollector()
