from __future__ import annotations

import asyncio
import time
import uuid
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.database import Database
from starlette.exceptions import HTTPException

from src.catalog.config import AppConfig, load_app_config
from src.catalog.data.mongo import connect, ensure_indexes, get_database
from src.catalog.errors import CatalogError
from src.catalog.jobs.auto_verification import AutoVerificationScheduler
from src.catalog.logging_utils import configure_logger
from src.catalog.media import CloudinaryImageStore, ImageStore
from src.catalog.notifications.email import Notifier, build_notifier

from .error_codes import ErrorCode
from .errors import get_request_id, make_error
from .logging_setup import HEALTHCHECK_PATHS, configure_app_logging
from .routes.admin import router as admin_router
from .routes.articles import router as articles_router
from .routes.auth import router as auth_router
from .routes.awards import router as awards_router
from .routes.characters import router as characters_router
from .routes.entities import router as entities_router
from .routes.health import router as health_router
from .routes.people import router as people_router
from .routes.recommendations import router as recommendations_router
from .routes.reviews import router as reviews_router
from .routes.users import router as users_router


configure_app_logging()
logger = configure_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def _start_scheduler(app: FastAPI) -> None:
    config: AppConfig = app.state.config
    if not config.jobs.auto_verification_enabled:
        logger.info(
            "Auto-verification scheduler disabled",
            extra={"event": "verification.scheduler_disabled"},
        )
        return

    scheduler = AutoVerificationScheduler(
        app.state.db,
        app.state.notifier,
        run_at=config.jobs.run_at,
        min_account_age_days=config.jobs.min_account_age_days,
        min_review_count=config.jobs.min_review_count,
    )
    scheduler.start()
    app.state.scheduler = scheduler


def _connect_database(config: AppConfig):
    client = connect(config.mongo)
    db = get_database(client, config.mongo)
    ensure_indexes(db)
    return client, db


async def _bootstrap_in_background(app: FastAPI) -> None:
    """
    Connect to MongoDB outside of startup so the server can accept requests immediately.
    Marks app.state.is_ready=True only after the database is reachable and indexed.
    """
    try:
        logger.info(
            "Background bootstrap started",
            extra={"event": "bootstrap.bg_start"},
        )

        # connect() is synchronous and retries with sleeps
        client, db = await asyncio.to_thread(_connect_database, app.state.config)

        app.state.mongo_client = client
        app.state.db = db
        _start_scheduler(app)
        app.state.is_ready = True

        logger.info(
            "Background bootstrap finished; application marked as ready",
            extra={"event": "bootstrap.bg_ready", "db_name": db.name},
        )
    except Exception:
        app.state.is_ready = False
        logger.exception(
            "Background bootstrap failed; application will remain not ready",
            extra={"event": "bootstrap.bg_failed"},
        )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    - An injected database (tests, scripts) is used as-is and the app is ready at once.
    - Otherwise the server starts quickly and connects to MongoDB in the background.
    """
    app.state.scheduler = None
    app.state.bootstrap_task = None

    if app.state.db is not None:
        ensure_indexes(app.state.db)
        _start_scheduler(app)
        app.state.is_ready = True
    else:
        app.state.is_ready = False
        app.state.bootstrap_task = asyncio.create_task(_bootstrap_in_background(app))

    yield

    scheduler: Optional[AutoVerificationScheduler] = app.state.scheduler
    if scheduler is not None:
        await scheduler.stop()
        app.state.scheduler = None

    task = app.state.bootstrap_task
    if task is not None and not task.done():
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            logger.info(
                "Background bootstrap task cancelled on shutdown",
                extra={"event": "bootstrap.bg_cancelled"},
            )

    client = getattr(app.state, "mongo_client", None)
    if client is not None:
        client.close()
        app.state.mongo_client = None


def _map_http_status_to_error_code(status_code: int) -> ErrorCode:
    """
    Map HTTP status codes to stable API error codes.
    """
    mapping: dict[int, ErrorCode] = {
        400: ErrorCode.BAD_REQUEST,
        401: ErrorCode.UNAUTHORIZED,
        403: ErrorCode.FORBIDDEN,
        404: ErrorCode.NOT_FOUND,
        405: ErrorCode.HTTP_ERROR,
        409: ErrorCode.CONFLICT,
        429: ErrorCode.RATE_LIMITED,
    }
    return mapping.get(status_code, ErrorCode.HTTP_ERROR)


def _error_response(
    *,
    status_code: int,
    code: ErrorCode,
    message: str,
    request_id: str,
    details: Optional[Any] = None,
) -> JSONResponse:
    """
    Build a canonical JSON error response.
    """
    payload = make_error(
        code=code.value,
        message=message,
        request_id=request_id,
        details=details,
    ).model_dump()

    return JSONResponse(
        status_code=status_code,
        content=payload,
        headers={REQUEST_ID_HEADER: request_id},
    )


async def request_context_middleware(request: Request, call_next):
    """
    Attach a request id to every request and emit structured request lifecycle logs.
    """
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    request.state.request_id = request_id

    start = time.perf_counter()
    response = None
    try:
        response = await call_next(request)
        return response
    finally:
        duration_ms = round((time.perf_counter() - start) * 1000.0, 2)
        status_code = getattr(response, "status_code", None)
        path = request.url.path

        if path not in HEALTHCHECK_PATHS:
            logger.info(
                "Request completed",
                extra={
                    "event": "request.completed",
                    "request_id": request_id,
                    "method": request.method,
                    "path": path,
                    "status_code": status_code,
                    "duration_ms": duration_ms,
                },
            )

        if response is not None:
            response.headers[REQUEST_ID_HEADER] = request_id


async def readiness_gate_middleware(request: Request, call_next):
    """
    Before the database is connected, allow ONLY /v1/health and /v1/ready
    (and the API docs). Every other route returns 503 with the error envelope.
    """
    path = request.url.path

    if path in HEALTHCHECK_PATHS or path in ("/docs", "/openapi.json"):
        return await call_next(request)

    is_ready = bool(getattr(request.app.state, "is_ready", False))
    if not is_ready:
        request_id = (
            request.headers.get(REQUEST_ID_HEADER)
            or getattr(request.state, "request_id", None)
            or uuid.uuid4().hex
        )
        return _error_response(
            status_code=503,
            code=ErrorCode.SERVICE_UNAVAILABLE,
            message="Service is warming up. Please retry shortly.",
            request_id=request_id,
        )

    return await call_next(request)


async def catalog_exception_handler(request: Request, exc: CatalogError):
    request_id = get_request_id(request)
    code = ErrorCode(exc.code)

    logger.info(
        "Catalog error raised",
        extra={
            "event": "request.catalog_error",
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "status_code": exc.status_code,
            "code": code.value,
        },
    )

    return _error_response(
        status_code=exc.status_code,
        code=code,
        message=exc.message,
        request_id=request_id,
        details=exc.details,
    )


def _jsonable_errors(exc: RequestValidationError):
    # "ctx" may hold exception instances
    return [{k: v for k, v in error.items() if k != "ctx"} for error in exc.errors()]


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    request_id = get_request_id(request)

    logger.warning(
        "Request validation failed",
        extra={
            "event": "request.validation_error",
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "code": ErrorCode.VALIDATION_ERROR.value,
        },
    )

    return _error_response(
        status_code=422,
        code=ErrorCode.VALIDATION_ERROR,
        message="Request validation failed",
        request_id=request_id,
        details={"errors": _jsonable_errors(exc)},
    )


async def http_exception_handler(request: Request, exc: HTTPException):
    request_id = get_request_id(request)
    code = _map_http_status_to_error_code(exc.status_code)

    if isinstance(exc.detail, str):
        message = exc.detail
        details = None
    elif isinstance(exc.detail, dict):
        message = "Request failed"
        details = exc.detail
    else:
        message = "Request failed"
        details = None

    logger.info(
        "HTTP exception raised",
        extra={
            "event": "request.http_exception",
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "status_code": exc.status_code,
            "code": code.value,
        },
    )

    return _error_response(
        status_code=exc.status_code,
        code=code,
        message=message,
        request_id=request_id,
        details=details,
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    request_id = get_request_id(request)

    logger.exception(
        "Unhandled exception",
        extra={
            "event": "error.unhandled_exception",
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "code": ErrorCode.INTERNAL_ERROR.value,
        },
    )

    return _error_response(
        status_code=500,
        code=ErrorCode.INTERNAL_ERROR,
        message="Internal Server Error",
        request_id=request_id,
        details=None,
    )


def create_app(
    config: Optional[AppConfig] = None,
    database: Optional[Database] = None,
    notifier: Optional[Notifier] = None,
    image_store: Optional[ImageStore] = None,
) -> FastAPI:
    """
    Build the API application.

    Passing ``database`` skips the MongoDB bootstrap; ``notifier`` and
    ``image_store`` replace the SMTP and Cloudinary collaborators.

    Served with ``uvicorn apps.api.app.main:create_app --factory`` so that
    configuration is read when the server starts rather than at import.
    """
    config = config or load_app_config()

    app = FastAPI(
        title="Screen Catalog API",
        version="0.1.0",
        description="Movie and TV catalog with reviews, recommendations and auto-verification",
        lifespan=lifespan,
    )

    app.state.config = config
    app.state.db = database
    app.state.is_ready = False
    app.state.scheduler = None
    app.state.notifier = notifier or build_notifier(config.mail)
    app.state.image_store = image_store or CloudinaryImageStore(config.media)

    app.middleware("http")(request_context_middleware)
    app.middleware("http")(readiness_gate_middleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(config.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
    )

    app.add_exception_handler(CatalogError, catalog_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    for router in (
        health_router,
        auth_router,
        users_router,
        entities_router,
        people_router,
        characters_router,
        reviews_router,
        articles_router,
        awards_router,
        recommendations_router,
        admin_router,
    ):
        app.include_router(router, prefix="/v1")

    return app
