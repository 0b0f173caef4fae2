from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from azure.core.exceptions import (
    HttpResponseError,
    ResourceExistsError,
    ResourceModifiedError,
    ResourceNotFoundError,
)
from cosmos_repository.logging.logger import get_logger
from cosmos_repository.response import ResponseModel
from typing import Any
from cosmos_repository.config import settings

logger = get_logger("exception_handler")


class RepositoryException(Exception):
    """Base class for repository errors."""
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class RepositoryDataConfigurationException(RepositoryException):
    """Business/storage entity pair cannot be bound to a table."""


class InvalidFilterExpressionException(RepositoryException, ValueError):
    """Predicate or property selector does not describe a storage property."""


class InvalidTableNameException(RepositoryException, ValueError):
    """Formatted table name breaks the table service naming rules."""


class BusinessException(Exception):
    """Base class for business exceptions."""
    def __init__(self, message: str, status_code: int = 200, code: int = 400, detail: Any = None):
        self.message = message
        self.status_code = status_code
        self.code = code
        self.detail = detail


def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler."""
    trace_id = getattr(request.state, "trace_id", "unknown")

    if isinstance(exc, BusinessException):
        logger.warning(f"Trace[{trace_id}] - BusinessError: {exc.message}")
        return JSONResponse(
            status_code=exc.status_code,
            content=ResponseModel.fail(code=exc.code, message=exc.message, data=exc.detail)
        )

    if isinstance(exc, RequestValidationError):
        logger.error(f"Trace[{trace_id}] - ValidationError: {exc.errors()}")
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=ResponseModel.fail(code=422, message="Invalid request parameters", data=exc.errors())
        )

    if isinstance(exc, ResourceNotFoundError):
        logger.warning(f"Trace[{trace_id}] - EntityNotFound: {exc.message}")
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content=ResponseModel.fail(code=404, message="Entity not found")
        )

    if isinstance(exc, (ResourceExistsError, ResourceModifiedError)):
        logger.warning(f"Trace[{trace_id}] - EntityConflict: {exc.message}")
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content=ResponseModel.fail(code=409, message="Entity was created or modified concurrently")
        )

    if isinstance(exc, HttpResponseError):
        logger.critical(f"Trace[{trace_id}] - TableServiceError: {str(exc)}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ResponseModel.fail(code=500, message="Service temporarily unavailable")
        )

    if isinstance(exc, InvalidTableNameException):
        logger.warning(f"Trace[{trace_id}] - InvalidTableName: {exc.message}")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=ResponseModel.fail(code=400, message=exc.message)
        )

    if isinstance(exc, RepositoryException):
        logger.critical(f"Trace[{trace_id}] - RepositoryError: {exc.message}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ResponseModel.fail(
                code=500,
                message="Repository misconfigured",
                data={"detail": exc.message} if settings.DEBUG else None
            )
        )

    logger.opt(exception=True).error(f"Trace[{trace_id}] - UncaughtException: {str(exc)}")

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ResponseModel.fail(
            code=500,
            message="System busy, please try again later",
            data={"trace_id": trace_id} if settings.DEBUG else None
        )
    )
