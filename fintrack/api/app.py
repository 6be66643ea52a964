"""
FastAPI Application Factory

Builds the app, wires the components onto `app.state`, and maps the
error taxonomy to HTTP status codes:

    ValidationFailure / request validation   -> 400 (with an errors list)
    BusinessRuleViolation                    -> 400
    AuthFailure                              -> 401
    NotFound                                 -> 404
    StorageError / anything unexpected       -> 500
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from fintrack import __version__
from fintrack.api.responses import failure, success
from fintrack.api.routes import auth, bills, expenses, goals
from fintrack.audit import configure_logging
from fintrack.config import get_settings, validate_all_settings
from fintrack.errors import FinanceTrackerError, ValidationFailure
from fintrack.models.common import utcnow
from fintrack.orchestrator import AppComponents, create_app_components
from fintrack.services.storage import StorageError
from fintrack.validation import format_errors


logger = structlog.get_logger(__name__)

VALIDATION_FAILED = "Validation failed"
INTERNAL_ERROR = "Internal server error"


@asynccontextmanager
async def lifespan(app: FastAPI):
    checks = validate_all_settings()
    if not all(checks.get(name) for name in ("mongo", "auth", "app")):
        logger.error("invalid_settings", **checks)

    connection = app.state.components.connection
    try:
        connection.ping()
        connection.ensure_indexes()
        logger.info("database_ready")
    except StorageError as e:
        # Requests will fail individually until the database is reachable
        logger.warning("database_unavailable", error=str(e))
    yield
    connection.close()


def _server_error(request: Request, exc: Exception):
    settings = get_settings().app
    components: AppComponents = request.app.state.components
    components.audit_logger.log_error(
        error_type=type(exc).__name__,
        error_message=str(exc),
        details={"path": request.url.path, "method": request.method},
    )
    return failure(
        500,
        INTERNAL_ERROR,
        error=str(exc) if settings.is_development else None,
    )


def register_exception_handlers(app: FastAPI) -> None:

    @app.exception_handler(FinanceTrackerError)
    async def handle_domain_error(request: Request, exc: FinanceTrackerError):
        errors = exc.errors if isinstance(exc, ValidationFailure) else None
        return failure(exc.status_code, exc.message, errors=errors)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        return failure(400, VALIDATION_FAILED, errors=format_errors(exc.errors()))

    @app.exception_handler(ValidationError)
    async def handle_model_validation(request: Request, exc: ValidationError):
        return failure(400, VALIDATION_FAILED, errors=format_errors(exc.errors()))

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException):
        return failure(exc.status_code, str(exc.detail))

    @app.exception_handler(StorageError)
    async def handle_storage_error(request: Request, exc: StorageError):
        logger.error("storage_error", path=request.url.path, error=str(exc))
        return _server_error(request, exc)

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.exception("unhandled_error", path=request.url.path)
        return _server_error(request, exc)


def create_app(components: Optional[AppComponents] = None) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        components: Prebuilt components (tests pass ones bound to an
                   in-memory database). Built from settings when None.
    """
    settings = get_settings().app
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Finance Tracker API",
        version=__version__,
        debug=settings.debug_mode,
        lifespan=lifespan,
    )
    app.state.components = components or create_app_components()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    app.include_router(auth.router)
    app.include_router(expenses.router)
    app.include_router(bills.router)
    app.include_router(goals.router)

    @app.get("/api/health", tags=["health"])
    def health():
        return success(
            "Finance Tracker API is running",
            version=__version__,
            environment=settings.app_environment,
            timestamp=utcnow(),
        )

    return app
