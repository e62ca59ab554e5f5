"""
Application entry point.

Creates the FastAPI application and wires together:
- Routers (trading ledger, market data, recommendations, realtime, health)
- Error handlers (centralized domain-to-HTTP mapping)
- Security middleware (headers, rate limiting)
- Logging configuration
- Market data refresh scheduler

No business logic belongs here.

Run with:
    uvicorn papertrade.main:app
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from papertrade.core.config import settings
from papertrade.infrastructure.trading.database import get_engine
from papertrade.interfaces.health import router as health_router
from papertrade.interfaces.market.router import router as market_router
from papertrade.interfaces.realtime import router as realtime_router
from papertrade.interfaces.recommendations.router import router as recommendations_router
from papertrade.interfaces.trading.dependencies import (
    get_ledger_bus,
    get_market_refresh_scheduler,
    get_quote_bus,
)
from papertrade.interfaces.trading.router import router as trading_router
from papertrade.shared.errors.handlers import register_error_handlers
from papertrade.shared.logging import configure_logging
from papertrade.shared.security.headers import SecurityHeadersMiddleware
from papertrade.shared.security.rate_limiting import limiter, rate_limit_exceeded_handler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: prepare storage, start/stop the refresh job."""
    get_engine()
    # Subscribe read-side caches and stream feed before the first request.
    get_ledger_bus()
    get_quote_bus()

    scheduler = None
    if settings.market_refresh_enabled:
        if settings.polygon_api_key:
            scheduler = get_market_refresh_scheduler()
            scheduler.start()
        else:
            logger.warning("Market refresh enabled but POLYGON_API_KEY is not set; not starting.")

    yield

    if scheduler is not None:
        scheduler.stop()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Registers routers, error handlers, and security middleware.

    Returns:
        A fully configured FastAPI application instance.
    """
    configure_logging(level=settings.log_level)

    app = FastAPI(
        title=settings.project_name,
        version=settings.version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    # --- Rate Limiting ---
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    # --- Security Middleware ---
    app.add_middleware(SecurityHeadersMiddleware)

    # --- Error Handlers ---
    register_error_handlers(app)

    # --- Routers ---
    app.include_router(health_router, prefix="/api/v1")
    app.include_router(trading_router, prefix="/api/v1")
    app.include_router(market_router, prefix="/api/v1")
    app.include_router(recommendations_router, prefix="/api/v1")
    app.include_router(realtime_router, prefix="/api/v1")

    return app


app = create_app()
