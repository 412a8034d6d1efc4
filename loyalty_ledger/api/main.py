"""FastAPI application factory"""

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from loyalty_ledger.api.middleware import RequestIDMiddleware, MetricsMiddleware
from loyalty_ledger.api.v1 import accounts, adjustments, audit, duplicates, stats
from loyalty_ledger.infrastructure.observability.logging import setup_logging
from loyalty_ledger.config import settings

# Setup structured logging
setup_logging(settings.log_level)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Loyalty Points Ledger",
        description="Point adjustments, balance audits and ledger reconciliation",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(accounts.router, prefix="/v1", tags=["accounts"])
    app.include_router(adjustments.router, prefix="/v1", tags=["adjustments"])
    app.include_router(audit.router, prefix="/v1", tags=["audit"])
    app.include_router(duplicates.router, prefix="/v1", tags=["duplicates"])
    app.include_router(stats.router, prefix="/v1", tags=["stats"])

    return app


app = create_app()
