"""
Application factory.
Builds the FastAPI app that serves the generic CRUD routers.
"""

from contextlib import asynccontextmanager
from typing import Iterable

from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import Response
from sqlalchemy import text

from crud_api.models import Base
from crud_shared.config.logging import crud_logger as logger, setup_logging
from crud_shared.config.settings import settings
from crud_shared.infrastructure.correlation import CorrelationIdMiddleware, get_request_id
from crud_shared.infrastructure.db import get_engine, get_session_factory
from crud_shared.utils.exceptions import AppException


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.
    Runs on startup and shutdown.
    """
    setup_logging()

    config_errors = settings.validate_production_settings()
    if config_errors:
        for error in config_errors:
            logger.error("Configuration error", error=error)
        if settings.environment == "production":
            raise RuntimeError(f"Production configuration errors: {'; '.join(config_errors)}")

    logger.info("Starting CRUD API", env=settings.environment, timezone=settings.timezone)

    Base.metadata.create_all(bind=get_engine())
    logger.info("Database tables created/verified")

    yield

    logger.info("Shutting down CRUD API")
    get_engine().dispose()


async def app_exception_handler(request: Request, exc: AppException) -> Response:
    """FastAPI's HTTPException response, tagged with the request ID."""
    response = await http_exception_handler(request, exc)
    request_id = get_request_id()
    if request_id:
        response.headers[CorrelationIdMiddleware.HEADER_NAME] = request_id
    return response


def create_app(routers: Iterable = (), *, title: str = "CRUD API", with_lifespan: bool = True) -> FastAPI:
    """
    Create the application and mount ``routers`` under ``settings.api_prefix``.

    Usage:
        app = create_app([article_router, category_router])
    """
    app = FastAPI(
        title=title,
        version="0.1.0",
        lifespan=lifespan if with_lifespan else None,
    )

    app.add_exception_handler(AppException, app_exception_handler)
    app.add_middleware(CorrelationIdMiddleware)

    @app.get(f"{settings.api_prefix}/health")
    def health_check():
        """Health check that verifies database connectivity."""
        checks = {"service": "crud-api", "environment": settings.environment}
        try:
            with get_session_factory()() as db:
                db.execute(text("SELECT 1"))
            checks["database"] = "healthy"
            checks["status"] = "healthy"
        except Exception as e:
            logger.warning("Health check failed", error=str(e))
            checks["database"] = "unhealthy"
            checks["status"] = "degraded"
        return checks

    for router in routers:
        app.include_router(router, prefix=settings.api_prefix)

    return app


app = create_app()


def run() -> None:
    """Development entry point."""
    import uvicorn

    uvicorn.run("crud_api.main:app", host="0.0.0.0", port=8000, reload=settings.debug)


if __name__ == "__main__":
    run()
