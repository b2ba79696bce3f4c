"""
EA Builder API

Application factory: logging, lifespan, error rendering, probes and routers.
Run with `eabuilder` (console script) or `uvicorn eabuilder.app:app`.
"""

import logging
import sys
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncGenerator

import structlog
from fastapi import APIRouter, FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config.settings import settings
from .database.connection import check_database_health, close_database, init_database
from .exceptions import EABuilderError
from .middleware.logging import (
    QUIET_PATHS,
    ErrorLoggingMiddleware,
    RequestLoggingMiddleware,
    StructuredLoggingMiddleware,
)
from .routers import admin_router, backtest_router, marketplace_router, models_router
from .services.cache import close_model_cache, get_model_cache


def setup_logging() -> None:
    """Route stdlib logging to stdout and configure structlog on top of it."""
    logging.basicConfig(
        stream=sys.stdout,
        level=getattr(logging, settings.logging.level.upper(), logging.INFO),
        format=settings.logging.format,
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if settings.logging.json_format
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


setup_logging()
logger = structlog.get_logger("eabuilder.app")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    logger.info(
        "EA Builder starting",
        version=settings.app_version,
        environment=settings.environment,
        api_prefix=settings.api_prefix or "/",
    )
    try:
        await init_database()
    except Exception as e:
        logger.error("Database initialization failed", error=str(e))
        raise

    cache = get_model_cache()
    if not await cache.ping():
        logger.warning("Model list cache unreachable, lists are served from the database", backend=cache.backend)

    yield

    logger.info("EA Builder stopping")
    try:
        await close_model_cache()
        await close_database()
    except Exception as e:
        logger.error("Shutdown cleanup failed", error=str(e))


# ============================================================================
# Error rendering: every failure becomes {"error": ..., "details": ...}
# ============================================================================

async def domain_exception_handler(request: Request, exc: EABuilderError) -> JSONResponse:
    log = logger.error if exc.status_code >= 500 else logger.info
    log(exc.message, path=request.url.path, error_type=type(exc).__name__, status_code=exc.status_code)
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed or missing request fields are a 400, not FastAPI's 422."""
    errors = jsonable_encoder(exc.errors())
    first_field = ""
    if errors:
        first_field = ".".join(str(part) for part in errors[0].get("loc", ()) if part != "body")
    message = f"Invalid or missing field: {first_field}" if first_field else "Invalid request"

    logger.info("Request validation failed", path=request.url.path, error=message)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": message, "details": errors},
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error", path=request.url.path, error_type=type(exc).__name__)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error", "details": str(exc) if settings.debug else None},
    )


# ============================================================================
# Probes
# ============================================================================

health_router = APIRouter(tags=["Health"])


@health_router.get("/health")
async def health_check() -> dict:
    """Database connectivity and cache occupancy."""
    database = await check_database_health()
    cache = get_model_cache()
    return {
        "status": "healthy" if database["connected"] else "unhealthy",
        "service": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
        "database": database,
        "cache": {
            "backend": cache.backend,
            "enabled": cache.enabled,
            "connected": await cache.ping(),
            "entries": await cache.size(),
        },
    }


@health_router.get("/ready")
async def readiness_check() -> dict:
    return {"ready": True, "timestamp": datetime.utcnow().isoformat()}


@health_router.get("/live")
async def liveness_check() -> dict:
    return {"alive": True, "timestamp": datetime.utcnow().isoformat()}


def create_application() -> FastAPI:
    app = FastAPI(
        title=settings.app_name,
        description="Storage, versioning, ranking and marketplace for EA models",
        version=settings.app_version,
        lifespan=lifespan,
    )

    # Added last runs first: errors -> access log -> correlation id -> CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )
    app.add_middleware(StructuredLoggingMiddleware)
    app.add_middleware(RequestLoggingMiddleware, exclude_paths=QUIET_PATHS, log_request_body=settings.debug)
    app.add_middleware(ErrorLoggingMiddleware, include_traceback=settings.debug)

    app.add_exception_handler(EABuilderError, domain_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    api = APIRouter(prefix=settings.api_prefix)
    for router in (models_router, marketplace_router, backtest_router, admin_router):
        api.include_router(router)

    app.include_router(health_router)
    app.include_router(api)

    @app.get("/", tags=["Root"])
    async def root() -> dict:
        return {
            "name": settings.app_name,
            "version": settings.app_version,
            "docs": "/docs",
            "health": "/health",
        }

    return app


app = create_application()


def main() -> None:
    import uvicorn

    uvicorn.run(
        "eabuilder.app:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        workers=1 if settings.debug else settings.workers,
        log_level=settings.logging.level.lower(),
    )


if __name__ == "__main__":
    main()
