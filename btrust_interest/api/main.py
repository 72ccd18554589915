"""FastAPI application factory - hosts the interest schedulers"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from btrust_interest.api.middleware import RequestIDMiddleware, MetricsMiddleware
from btrust_interest.api.v1 import interest
from btrust_interest.infrastructure.observability.logging import setup_logging
from btrust_interest.scheduler.interest_scheduler import RunGuard, start_interest_schedulers
from btrust_interest.config import settings

# Setup structured logging
setup_logging(settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the interest schedulers with the app and stop them on shutdown"""
    app.state.scheduler = None
    if settings.scheduler_enabled:
        # ConfigurationError here aborts startup
        app.state.scheduler = start_interest_schedulers(settings, guard=app.state.run_guard)
    else:
        logging.warning("Interest schedulers disabled (SCHEDULER_ENABLED=false)")

    yield

    if app.state.scheduler is not None:
        app.state.scheduler.stop(wait=True)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="B-Trust Interest Service",
        description="Automated FD and savings interest crediting",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.run_guard = RunGuard()
    app.state.scheduler = None

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    @app.get("/health")
    def health_check():
        handle = app.state.scheduler
        return {
            "status": "ok",
            "service": settings.service_name,
            "scheduler_running": bool(handle and handle.running),
        }

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    app.include_router(interest.router, prefix="/v1", tags=["interest"])

    return app


app = create_app()
