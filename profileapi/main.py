import logging
from typing import Optional

from dependency_injector import providers
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from mangum import Mangum
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.cors import CORSMiddleware

from profileapi import containers
from profileapi.config import Settings
from profileapi.core.exception_handlers import (
    handle_base_api_exception,
    handle_http_exception,
    handle_unexpected_error,
    handle_validation_error,
)
from profileapi.core.exceptions import BaseAPIException
from profileapi.core.logging_middleware import LoggingMiddleware
from profileapi.core.origins import allows_all, build_origin_regex
from profileapi.logging_config import setup_logging
from profileapi.routers import bridge_router, credits_router, health_router, profile_router
from profileapi.utils.timezone_utils import Clock

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, clock: Optional[Clock] = None) -> FastAPI:
    """Build an application with its own container.

    ``settings`` and ``clock`` replace the environment-loaded settings and the
    wall clock (tests pass both).
    """
    container = containers.Container()
    if settings is not None:
        container.config.config.override(providers.Object(settings))
    if clock is not None:
        container.config.clock.override(providers.Object(clock))
    settings = container.config.config()

    setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)

    app = FastAPI(title=settings.APP_NAME)
    app.container = container  # type: ignore

    if settings.STORAGE_BACKEND == "sql" and settings.DB_AUTO_CREATE_SCHEMA:
        container.repositories.storage().create_schema()

    origins = settings.cors_origins
    cors_origin_options = (
        {"allow_origins": ["*"]}
        if allows_all(origins)
        else {"allow_origin_regex": build_origin_regex(origins)}
    )

    app.add_middleware(LoggingMiddleware, anon_id_header=settings.ANON_ID_HEADER)
    app.add_middleware(
        CORSMiddleware,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", settings.ANON_ID_HEADER],
        expose_headers=[settings.ANON_ID_HEADER],
        max_age=86400,
        **cors_origin_options,
    )

    app.add_exception_handler(BaseAPIException, handle_base_api_exception)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

    app.include_router(profile_router.router)
    app.include_router(credits_router.router)
    app.include_router(bridge_router.router)
    app.include_router(health_router.router)

    logger.info(
        f"{settings.APP_NAME} ready: storage={settings.STORAGE_BACKEND} origins={origins}"
    )
    return app


app = create_app()

handler = Mangum(app)
