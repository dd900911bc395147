"""
FastAPI middleware for observability.

Provides:
- Request correlation ID injection (Shopify webhook id when present)
- Request/response logging
- Timing metrics
"""
import time
from typing import Callable
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from battle.observability import (
    get_logger,
    generate_correlation_id,
    correlation_context,
    metrics,
)

logger = get_logger(__name__)

QUIET_PATHS = ("/api/health", "/health")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware that:
    1. Assigns correlation ID to each request
    2. Logs request start/end with timing
    3. Records metrics
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = (
            request.headers.get("X-Request-ID")
            or request.headers.get("X-Shopify-Webhook-Id")
            or generate_correlation_id()
        )

        with correlation_context(
            correlation_id,
            topic=request.headers.get("X-Shopify-Topic"),
            shop_domain=request.headers.get("X-Shopify-Shop-Domain"),
        ):
            start_time = time.perf_counter()
            method = request.method
            path = request.url.path
            is_quiet = path in QUIET_PATHS

            if not is_quiet:
                logger.info(
                    f"Request started: {method} {path}",
                    extra={"method": method, "path": path}
                )

            try:
                response = await call_next(request)
            except Exception as e:
                duration_ms = (time.perf_counter() - start_time) * 1000
                logger.error(
                    f"Request failed: {method} {path}",
                    extra={
                        "method": method,
                        "path": path,
                        "duration_ms": round(duration_ms, 2),
                        "error": str(e),
                    }
                )
                metrics.record_error(type(e).__name__)
                raise

            duration_ms = (time.perf_counter() - start_time) * 1000

            response.headers["X-Request-ID"] = correlation_id
            response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"

            if not is_quiet:
                level_name = "info" if response.status_code < 400 else "warning"
                getattr(logger, level_name)(
                    f"Request completed: {method} {path}",
                    extra={
                        "method": method,
                        "path": path,
                        "status_code": response.status_code,
                        "duration_ms": round(duration_ms, 2),
                    }
                )

            endpoint = f"{method} {path}"
            metrics.record_request(endpoint)
            metrics.record_timing(endpoint, duration_ms)

            if response.status_code >= 400:
                metrics.record_error(f"HTTP_{response.status_code}")

            return response
