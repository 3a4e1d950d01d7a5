"""FastAPI application factory"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from billing_ledger.api.middleware import MetricsMiddleware, RequestIDMiddleware
from billing_ledger.api.v1 import accounts, aggregator, credit_cards, installments, summaries, transactions
from billing_ledger.config import settings
from billing_ledger.domain.exceptions import (
    ConflictError,
    DomainException,
    IntegrationError,
    NotFoundError,
    PaymentError,
)
from billing_ledger.infrastructure.observability.logging import setup_logging

# Setup structured logging
setup_logging(settings.log_level)

logger = logging.getLogger(__name__)


def status_for(exc: DomainException) -> int:
    """HTTP status for a domain error; order matters for subclasses"""
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, ConflictError):
        return 409
    if isinstance(exc, IntegrationError):
        return 502
    if isinstance(exc, PaymentError):
        return 500
    return 400


async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    status = status_for(exc)
    log = logger.error if status >= 500 else logger.info
    log(
        "Request rejected",
        extra={
            "request_id": getattr(request.state, "request_id", None),
            "code": exc.code,
            "status": status,
            "path": request.url.path,
        },
    )
    # Integration detail stays in the logs
    detail = "Upstream service unavailable" if isinstance(exc, IntegrationError) else str(exc)
    return JSONResponse(status_code=status, content={"code": exc.code, "detail": detail})


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Billing Ledger",
        description="Accounts, installment schedules, payments and monthly summaries",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    app.add_exception_handler(DomainException, domain_exception_handler)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(accounts.router, prefix="/v1", tags=["accounts"])
    app.include_router(installments.router, prefix="/v1", tags=["installments"])
    app.include_router(transactions.router, prefix="/v1", tags=["transactions"])
    app.include_router(summaries.router, prefix="/v1", tags=["summaries"])
    app.include_router(credit_cards.router, prefix="/v1", tags=["credit-cards"])
    app.include_router(aggregator.router, prefix="/v1", tags=["aggregator"])

    return app


app = create_app()
