"""FastAPI application factory"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from charge_mgmt.api.errors import register_exception_handlers
from charge_mgmt.api.middleware import MetricsMiddleware, RequestIDMiddleware
from charge_mgmt.api.v1 import charges, rules, settlements, system, users
from charge_mgmt.config import settings
from charge_mgmt.infrastructure.database.seed import init_db
from charge_mgmt.infrastructure.database.session import engine
from charge_mgmt.infrastructure.observability.logging import setup_logging
from charge_mgmt.infrastructure.observability.statistics import ChargeStatistics

# Setup structured logging
setup_logging(settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.auto_create_schema:
        init_db(engine, seed=settings.seed_reference_data)
    logging.info(
        "Service started",
        extra={"api_prefix": settings.api_prefix, "database_url": engine.url.render_as_string()},
    )
    yield


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Charge Management Service",
        description="Charge rule lifecycle, charge calculation and settlement requests",
        version=settings.service_version,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.charge_statistics = ChargeStatistics()

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    # Prometheus metrics endpoint
    @app.get("/metrics", include_in_schema=False)
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    prefix = settings.api_prefix
    app.include_router(system.router, prefix=prefix, tags=["system"])
    app.include_router(rules.router, prefix=prefix, tags=["rules"])
    app.include_router(charges.router, prefix=prefix, tags=["charges"])
    app.include_router(settlements.router, prefix=prefix, tags=["settlements"])
    app.include_router(users.router, prefix=prefix, tags=["users"])

    return app


app = create_app()


def run() -> None:
    """Run the service."""
    import uvicorn

    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        log_config=None,
    )


if __name__ == "__main__":
    run()
