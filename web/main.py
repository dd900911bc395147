"""
FastAPI web application for the Sweet vs Savoury revenue battle.

Run with:
    uvicorn web.main:app --host 0.0.0.0 --port 8080
"""
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import ORJSONResponse, JSONResponse

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from battle.config import AppConfig, load_config, validate_config
from battle.engine import BattleEngine
from battle.exceptions import ConfigurationError, StoreError
from battle.observability import setup_logging, get_logger, get_correlation_id
from web.deps import limiter
from web.middleware import RequestLoggingMiddleware
from web.routes import router as api_router

logger = get_logger(__name__)


def create_app(
    config: Optional[AppConfig] = None,
    engine: Optional[BattleEngine] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        config: Configuration (defaults to load_config())
        engine: Pre-built engine; tests pass one backed by fakeredis
    """
    config = config or load_config()
    engine = engine or BattleEngine.from_config(config)

    app = FastAPI(
        title="Sweet vs Savoury Battle",
        description="Attributes Shopify order revenue to sweet or savoury products",
        version=config.version,
        default_response_class=ORJSONResponse
    )

    app.state.config = config
    app.state.engine = engine
    app.state.limiter = limiter

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        logger.warning(f"Rate limit exceeded for {get_remote_address(request)}")
        return _rate_limit_exceeded_handler(request, exc)

    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError):
        logger.error(f"Store unavailable: {exc}", extra={"path": request.url.path})
        return JSONResponse(
            status_code=503,
            content={
                "error": "Service Unavailable",
                "detail": "Storage backend unavailable",
                "correlation_id": get_correlation_id(),
            }
        )

    # Adds correlation IDs and timing
    app.add_middleware(RequestLoggingMiddleware)

    app.include_router(api_router, prefix="/api")

    @app.on_event("startup")
    async def startup_event():
        logger.info("Battle service starting...")

        try:
            validate_config(config)
            logger.info("Configuration validated")
        except ConfigurationError as e:
            logger.critical(f"Configuration error: {e}")
            raise SystemExit(1)

        await engine.start()
        logger.info("Battle service ready")

    @app.on_event("shutdown")
    async def shutdown_event():
        try:
            await engine.stop()
        except StoreError as e:
            logger.warning(f"Error closing store: {e}")
        logger.info("Battle service stopped")

    return app


_config = load_config()
setup_logging(level=_config.web.log_level, json_format=(_config.web.log_format == "json"))

app = create_app(_config)
