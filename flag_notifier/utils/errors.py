from fastapi import FastAPI, Request, status
from starlette.exceptions import HTTPException as StarletteHTTPException
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError
from redis.exceptions import RedisError
import traceback
from .logging import get_logger
from .responses import ResponseBuilder

logger = get_logger()


class ConfigurationUnavailableError(Exception):
    """Raised when the notifier settings cannot be read at all."""

    def __init__(
        self,
        message: str = "Notifier configuration is unavailable",
        error_code: str = "CONFIG_UNAVAILABLE",
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code


class QueueUnavailableError(Exception):
    """Raised when the pending-work lock or the work queue cannot be reached."""

    def __init__(
        self,
        message: str = "Work queue is unavailable",
        error_code: str = "QUEUE_UNAVAILABLE",
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code


SYSTEMIC_FAILURES = (
    ConfigurationUnavailableError,
    QueueUnavailableError,
    SQLAlchemyError,
    RedisError,
    OSError,
)


def is_systemic_failure(exc: BaseException) -> bool:
    """
    True when the failure means "delivery could not be attempted at all"
    (storage, broker or network down) rather than a programming or data error.
    """
    return isinstance(exc, SYSTEMIC_FAILURES)


def setup_error_handlers(app: FastAPI):
    """Setup custom error handlers."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        logger.error(f"HTTP Exception: {exc.status_code} - {exc.detail}")
        return ResponseBuilder.error(
            request=request,
            message=str(exc.detail),
            error_code="HTTP_ERROR",
            status_code=exc.status_code,
            meta={"http_status": exc.status_code},
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        logger.error(f"Request Validation Error: {exc.errors()}")

        formatted_errors = []
        for error in exc.errors():
            field_path = " -> ".join(str(loc) for loc in error["loc"])
            formatted_errors.append(
                {
                    "field": field_path,
                    "message": error["msg"],
                    "type": error["type"],
                }
            )

        return ResponseBuilder.error(
            request=request,
            message="Request validation failed",
            errors=formatted_errors,
            error_code="VALIDATION_ERROR",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        )

    @app.exception_handler(SQLAlchemyError)
    async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError):
        logger.error(f"SQLAlchemy Error: {str(exc)}")

        # Don't expose internal database errors to callers
        return ResponseBuilder.error(
            request=request,
            message="A database error occurred",
            error_code="DATABASE_ERROR",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            meta={"error_type": "SQLALCHEMY_ERROR"},
        )

    @app.exception_handler(QueueUnavailableError)
    async def queue_unavailable_exception_handler(
        request: Request, exc: QueueUnavailableError
    ):
        logger.error(f"Queue Unavailable: {exc.message}")

        return ResponseBuilder.error(
            request=request,
            message=exc.message,
            error_code=exc.error_code,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            meta={"error_type": "QUEUE_UNAVAILABLE"},
        )

    @app.exception_handler(ConfigurationUnavailableError)
    async def configuration_unavailable_exception_handler(
        request: Request, exc: ConfigurationUnavailableError
    ):
        logger.error(f"Configuration Unavailable: {exc.message}")

        return ResponseBuilder.error(
            request=request,
            message=exc.message,
            error_code=exc.error_code,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            meta={"error_type": "CONFIG_UNAVAILABLE"},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle all other unhandled exceptions"""
        logger.error(f"Unhandled Exception: {str(exc)}")
        logger.error(f"Traceback: {traceback.format_exc()}")

        return ResponseBuilder.error(
            request=request,
            message="An internal server error occurred",
            error_code="INTERNAL_ERROR",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            meta={"error_type": "INTERNAL_ERROR"},
        )
