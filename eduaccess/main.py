"""EduAccess API - Main Application."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from eduaccess.access.dependencies import (
    build_access_cache,
    build_access_resolver,
    build_decision_recorder,
)
from eduaccess.access.router import admin_router as access_admin_router
from eduaccess.access.router import router as access_router
from eduaccess.config import get_settings
from eduaccess.config.settings import Settings
from eduaccess.core.context import get_request_id
from eduaccess.core.database import init_cassandra, shutdown_cassandra
from eduaccess.core.logging import configure_structlog, get_logger
from eduaccess.core.middleware import RequestContextMiddleware
from eduaccess.core.redis import init_redis, shutdown_redis
from eduaccess.health import router as health_router


settings = get_settings()
configure_structlog(settings, log_dir=Path(settings.log_dir))

logger = get_logger(__name__)


async def _connect_cache_backend(settings: Settings):
    """Redis client for the decision cache, or None to run uncached."""
    if not settings.access_cache_enabled:
        return None
    try:
        client = await init_redis()
    except Exception as e:
        logger.warning("redis_unavailable_running_uncached", error=str(e))
        return None
    logger.info("redis_initialized")
    return client


def _wire_access(app: FastAPI, settings: Settings, redis_client) -> None:
    session = init_cassandra()
    logger.info("cassandra_initialized")

    resolver = build_access_resolver(session, settings)
    recorder = build_decision_recorder(session, settings)
    app.state.access_resolver = resolver
    app.state.access_cache = build_access_cache(resolver, settings, redis_client)
    app.state.decision_recorder = recorder

    logger.info(
        "access_resolver_initialized",
        cache_enabled=redis_client is not None,
        audit_enabled=recorder is not None,
        teacher_claims_enabled=resolver.subject_lookup is not None,
        timeout=resolver.timeout,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings = get_settings()
    logger.info(
        "starting_application",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
    )

    redis_client = await _connect_cache_backend(settings)

    # Without Cassandra the app still serves /health; access routes answer 503
    try:
        _wire_access(app, settings, redis_client)
    except Exception as e:
        logger.warning("access_components_unavailable", error=str(e))

    yield

    logger.info("shutting_down_application")
    await shutdown_redis()
    shutdown_cassandra()


def _error_response(
    request: Request,
    status_code: int,
    message: str,
    headers: dict[str, str] | None = None,
    **extra: Any,
) -> ORJSONResponse:
    request_id = getattr(request.state, "request_id", None) or get_request_id()
    return ORJSONResponse(
        status_code=status_code,
        content={
            "error": True,
            "message": message,
            "status_code": status_code,
            "request_id": request_id,
            **extra,
        },
        headers=headers,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install handlers that answer with the error envelope, never a traceback."""

    @app.exception_handler(StarletteHTTPException)
    async def on_http_error(
        request: Request, exc: StarletteHTTPException
    ) -> ORJSONResponse:
        logger.warning(
            "http_exception",
            status_code=exc.status_code,
            detail=str(exc.detail),
            path=request.url.path,
            method=request.method,
        )
        # 503 details come from the routers (collaborator name only)
        exposable = (
            exc.status_code < status.HTTP_500_INTERNAL_SERVER_ERROR
            or exc.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
        )
        return _error_response(
            request,
            exc.status_code,
            str(exc.detail) if exposable else "Internal server error",
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def on_validation_error(
        request: Request, exc: RequestValidationError
    ) -> ORJSONResponse:
        errors = exc.errors()
        logger.warning("validation_error", errors=errors, path=request.url.path)
        return _error_response(
            request,
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            "Validation error",
            details=[
                {
                    "field": ".".join(str(part) for part in err.get("loc", [])),
                    "message": err.get("msg", "Invalid value"),
                }
                for err in errors
            ],
        )

    @app.exception_handler(Exception)
    async def on_unhandled_error(request: Request, exc: Exception) -> ORJSONResponse:
        logger.exception(
            "unhandled_exception",
            error_type=type(exc).__name__,
            path=request.url.path,
            method=request.method,
        )
        return _error_response(
            request,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "An unexpected error occurred. Please try again later.",
        )


def create_app() -> FastAPI:
    settings = get_settings()
    expose_docs = settings.is_development

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Content access control for the educational marketplace",
        debug=False,
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
        docs_url="/docs" if expose_docs else None,
        redoc_url="/redoc" if expose_docs else None,
        openapi_url="/openapi.json" if expose_docs else None,
    )

    # Added first so it wraps everything else
    app.add_middleware(
        RequestContextMiddleware,
        log_requests=settings.log_requests,
        exclude_paths=settings.log_exclude_paths,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
        max_age=settings.cors_max_age,
    )

    register_exception_handlers(app)

    for router in (health_router, access_router, access_admin_router):
        app.include_router(router)

    @app.get("/", include_in_schema=False)
    async def root(request: Request) -> dict[str, str]:
        return {
            "message": "EduAccess API",
            "version": settings.app_version,
            "docs": f"{request.url}docs",
        }

    return app


app = create_app()


def run() -> None:
    """Serve the API with uvicorn (``eduaccess`` console script)."""
    import uvicorn

    uvicorn.run(
        "eduaccess.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.is_development,
        log_config=None,
    )
