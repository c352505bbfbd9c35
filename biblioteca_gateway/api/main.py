"""FastAPI application factory"""

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from biblioteca_gateway.api.middleware import RequestIDMiddleware, MetricsMiddleware
from biblioteca_gateway.api.v1 import loans, policy
from biblioteca_gateway.config import settings
from biblioteca_gateway.domain.policy import policy_from_settings
from biblioteca_gateway.domain.registry import LoanRegistry
from biblioteca_gateway.infrastructure.clients.notifier import LoggingNotifier, WebhookNotifier
from biblioteca_gateway.infrastructure.database.repositories import (
    SqlBookCatalog,
    SqlLoanStore,
    SqlUserDirectory,
)
from biblioteca_gateway.infrastructure.database.session import default_session_factory
from biblioteca_gateway.infrastructure.observability.logging import setup_logging

# Setup structured logging
setup_logging(settings.log_level)


def build_registry() -> LoanRegistry:
    """Registry over the configured database, with the policy from settings"""
    session_factory = default_session_factory()
    notifier = WebhookNotifier() if settings.notify_webhook_url else LoggingNotifier()
    return LoanRegistry(
        store=SqlLoanStore(session_factory),
        catalog=SqlBookCatalog(session_factory),
        directory=SqlUserDirectory(session_factory),
        policy=policy_from_settings(settings),
        notifier=notifier,
    )


def create_app(registry: LoanRegistry | None = None) -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Biblioteca Loan Gateway",
        description="Loan lifecycle, overdue tracking and penalty service",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.registry = registry or build_registry()

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(loans.router, prefix="/v1", tags=["loans"])
    app.include_router(policy.router, prefix="/v1", tags=["policy"])

    return app
