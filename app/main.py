"""FastAPI application entry point."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator

from app.api.session import router as session_router
from app.api.v1.router import api_router
from app.config import settings
from app.core.firebase import initialize_firebase
from app.core.identity import close_http_client
from app.core.redis_client import check_redis_connection, close_redis_connection
from app.middleware.error_handler import register_exception_handlers
from app.middleware.logging import LoggingMiddleware, configure_logging
from app.middleware.route_guard import RouteGuardMiddleware

configure_logging()
logger = structlog.get_logger()


def _init_firebase() -> None:
    try:
        initialize_firebase(settings.firebase_credentials_path, settings.firebase_config_json)
    except Exception as e:
        logger.warning(
            "firebase_initialization_failed",
            error=str(e),
            note="Profiles and token verification are unavailable until credentials are set.",
        )
        return
    logger.info("firebase_initialized", database=settings.firestore_database_id)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Connect backing services on startup and release them on shutdown."""
    logger.info("application_startup", environment=settings.environment)

    _init_firebase()
    if not settings.firebase_api_key:
        logger.warning("firebase_api_key_missing", note="Sign-in requests will be rejected.")
    if await check_redis_connection():
        logger.info("redis_connected")
    else:
        logger.error("redis_connection_failed", note="Profile reads bypass the cache.")

    yield

    logger.info("application_shutdown")
    await close_http_client()
    close_redis_connection()
    logger.info("connections_closed")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="SideHustlers backend: sign-in, session cookie, profiles and provider jobs",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# Last added runs first: CORS, then logging, then the route guard
app.add_middleware(RouteGuardMiddleware)
app.add_middleware(LoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(session_router, prefix=settings.api_prefix)
app.include_router(api_router, prefix=settings.api_v1_prefix)

Instrumentator(
    should_group_status_codes=True,
    should_ignore_untemplated=True,
    should_instrument_requests_inprogress=True,
    excluded_handlers=["/docs", "/redoc", "/openapi.json", "/metrics"],
    inprogress_name="http_requests_inprogress",
    inprogress_labels=True,
).instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)


@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        log_level=settings.log_level.lower(),
    )
