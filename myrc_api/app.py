"""
myrc_api.app -- FastAPI application factory.

Responsibility:
    Builds the ASGI app: database engine and tables, CORS, request-id
    logging context, the inactive fiscal-year write guard, typed-exception
    to HTTP mapping, and every resource router.

Error body:
    Every failure is answered with ``{"error": <code>, "message": <text>}``
    where ``code`` is the ``MyRCError.code`` class attribute.

Run:
    uvicorn myrc_api.app:create_app --factory
    python -m myrc_api
"""

from __future__ import annotations

import re
from uuid import UUID

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session, sessionmaker

from myrc_api.bootstrap import bootstrap
from myrc_api.dependencies import new_request_id
from myrc_api.routers import ROUTERS
from myrc_config import AppConfig, get_active_config
from myrc_kernel.db.engine import create_tables, get_session_factory, init_engine_from_url
from myrc_kernel.exceptions import (
    AccessError,
    AuditRecordingError,
    AuthenticationError,
    ConcurrencyError,
    ConflictError,
    FiscalYearInactiveError,
    MyRCError,
    NotFoundError,
)
from myrc_kernel.logging_config import LogContext, configure_logging, get_logger
from myrc_kernel.models.fiscal_year import FiscalYear

logger = get_logger("api")

API_VERSION = "1.0.0"

_STATUS_BY_CATEGORY: tuple[tuple[type[MyRCError], int], ...] = (
    (NotFoundError, 404),
    (AccessError, 403),
    (AuthenticationError, 401),
    (ConflictError, 409),
    (ConcurrencyError, 409),
    (AuditRecordingError, 500),
)

_MUTATING_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})
_FISCAL_YEAR_PATH = re.compile(r"/fiscal-years/([0-9a-fA-F-]{36})(?:/|$)")


def status_for(exc: MyRCError) -> int:
    """HTTP status for a typed exception; anything unlisted is a 400."""
    for category, status in _STATUS_BY_CATEGORY:
        if isinstance(exc, category):
            return status
    return 400


def error_body(code: str, message: str) -> dict[str, str]:
    return {"error": code, "message": message}


async def handle_myrc_error(request: Request, exc: MyRCError) -> JSONResponse:
    status = status_for(exc)
    extra = {"code": exc.code, "status": status, "path": request.url.path}
    if status >= 500:
        logger.error("request_failed", extra=extra, exc_info=exc)
    else:
        logger.info("request_rejected", extra={**extra, "reason": str(exc)})
    headers = {"WWW-Authenticate": "Basic"} if status == 401 else None
    return JSONResponse(status_code=status, content=error_body(exc.code, str(exc)), headers=headers)


async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ())[1:])
        problems.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    message = "; ".join(problems) or "Invalid request"
    logger.info("request_rejected", extra={"code": "VALIDATION_ERROR", "path": request.url.path})
    return JSONResponse(status_code=400, content=error_body("VALIDATION_ERROR", message))


def inactive_fiscal_year(session_factory: sessionmaker[Session], method: str, path: str) -> UUID | None:
    """
    Id of the inactive fiscal year a mutating request targets, if any.

    Toggling the active flag is the one write allowed on an inactive year;
    unknown ids pass through so the route can answer 404.
    """
    if method not in _MUTATING_METHODS or path.endswith("/toggle-active"):
        return None
    match = _FISCAL_YEAR_PATH.search(path)
    if match is None:
        return None
    try:
        fiscal_year_id = UUID(match.group(1))
    except ValueError:
        return None
    with session_factory() as session:
        fy = session.get(FiscalYear, fiscal_year_id)
        if fy is None or fy.active:
            return None
    return fiscal_year_id


def create_app(
    config: AppConfig | None = None,
    session_factory: sessionmaker[Session] | None = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        config: runtime configuration; defaults to ``get_active_config()``.
        session_factory: existing factory (tests); otherwise the engine is
            initialised from ``config.database``, tables are created and
            the bootstrap accounts seeded.
    """
    configure_logging()
    config = config or get_active_config()
    if session_factory is None:
        init_engine_from_url(
            config.database.url,
            echo=config.database.echo,
            pool_size=config.database.pool_size,
            max_overflow=config.database.max_overflow,
        )
        create_tables()
        session_factory = get_session_factory()
        bootstrap(session_factory, config)

    app = FastAPI(
        title="myRC",
        description="Responsibility Centre budget, spending and procurement tracking",
        version=API_VERSION,
    )
    app.state.config = config
    app.state.session_factory = session_factory
    app.state.audit_session_factory = session_factory

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(config.api.cors_origins),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Requested-With", "X-Request-ID"],
    )

    @app.middleware("http")
    async def inactive_fiscal_year_guard(request: Request, call_next):
        if request.method not in _MUTATING_METHODS:
            return await call_next(request)
        # The lookup is a blocking database round trip.
        fiscal_year_id = await run_in_threadpool(
            inactive_fiscal_year,
            request.app.state.session_factory,
            request.method,
            request.url.path,
        )
        if fiscal_year_id is not None:
            exc = FiscalYearInactiveError(fiscal_year_id)
            logger.warning(
                "inactive_fiscal_year_write_blocked",
                extra={
                    "fiscal_year_id": str(fiscal_year_id),
                    "method": request.method,
                    "path": request.url.path,
                },
            )
            return JSONResponse(status_code=403, content=error_body(exc.code, str(exc)))
        return await call_next(request)

    @app.middleware("http")
    async def request_context(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or new_request_id()
        with LogContext.bind(request_id=request_id):
            response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    app.add_exception_handler(MyRCError, handle_myrc_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation)

    for router in ROUTERS:
        app.include_router(router)

    @app.get("/health")
    def health():
        return {"status": "UP", "version": API_VERSION}

    logger.info("app_created", extra={"routers": len(ROUTERS), "config_checksum": config.checksum})
    return app
