"""FastAPI application factory"""

from typing import Optional

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from treasury_engine.api.errors import domain_exception_handler, unexpected_exception_handler
from treasury_engine.api.middleware import RequestIDMiddleware, MetricsMiddleware
from treasury_engine.api.rate_limit import RateLimiter
from treasury_engine.api.v1 import cards, cashflow, parents, reconciliation, settlements
from treasury_engine.domain.exceptions import DomainException
from treasury_engine.infrastructure.observability.logging import setup_logging
from treasury_engine.config import settings

# Setup structured logging
setup_logging(settings.log_level)


def create_app(rate_limiter: Optional[RateLimiter] = None) -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Treasury Engine",
        description="Schedule generation, cash-flow aggregation and bank reconciliation",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # One limiter per app instance, shared by every write endpoint
    app.state.rate_limiter = rate_limiter or RateLimiter(
        settings.rate_limit_max_requests,
        settings.rate_limit_window_seconds,
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    app.add_exception_handler(DomainException, domain_exception_handler)
    app.add_exception_handler(Exception, unexpected_exception_handler)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(parents.router, prefix="/v1", tags=["plans"])
    app.include_router(cards.router, prefix="/v1", tags=["cards"])
    app.include_router(settlements.router, prefix="/v1", tags=["settlements"])
    app.include_router(cashflow.router, prefix="/v1", tags=["cashflow"])
    app.include_router(reconciliation.router, prefix="/v1", tags=["reconciliation"])

    return app


app = create_app()
