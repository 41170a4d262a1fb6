"""
Centralized exception handling for VendorHub API.

This module provides:
- Base APIException class extending FastAPI's HTTPException.
- Custom domain-specific exceptions with appropriate status codes and headers.
- Utility functions for formatting DB errors, logging, and routing exceptions.
- Exception handlers rendering every error in the `{success, error}` envelope.

Usage:
    - Raise specific exceptions in route handlers or services.
    - Use `handle()` to normalize raw exceptions (DB, Redis, Pydantic, HTTP)
      into API-friendly responses.
"""

from traceback import format_exception
from logging import getLogger
from typing import List, Union
from fastapi import status, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy.exc import IntegrityError
from psycopg2.errorcodes import UNIQUE_VIOLATION, FOREIGN_KEY_VIOLATION
from pydantic import ValidationError
from redis.exceptions import RedisError
from requests.exceptions import RequestException
from sqlalchemy import Column


# ---------------------------------------------------------------------------
# Utility functions
# ---------------------------------------------------------------------------
def formatIntegrityError(e: IntegrityError) -> str:
    """
    Format a database integrity error into a user-friendly message.
    """
    errorMessage: str = e.orig.diag.message_detail
    errorMessage = errorMessage.translate({ord(i): None for i in '\\"\\.\\(\\)'})
    errorMessage = errorMessage.replace("Key ", "For ")
    errorMessage = errorMessage.replace("=", " value ")
    return errorMessage


def logException(e: Exception) -> None:
    """Log an exception with traceback using Uvicorn's error logger."""
    detail = "".join(format_exception(type(e), e, e.__traceback__))
    logger = getLogger("uvicorn.error")
    logger.error(detail)


def columnName(column: Union[Column, str]) -> str:
    return column if isinstance(column, str) else column.name


# ---------------------------------------------------------------------------
# Base Exception
# ---------------------------------------------------------------------------
class APIException(HTTPException):
    """
    Base class for all application-specific exceptions.

    Provides default handling of status_code, detail, and headers.
    """

    status_code = status.HTTP_400_BAD_REQUEST
    detail = None
    headers = None

    def __init__(self, *args, **kwargs):
        kwargs.setdefault("status_code", self.status_code)
        kwargs.setdefault("detail", self.detail)
        kwargs.setdefault("headers", self.headers)
        super().__init__(*args, **kwargs)


# ---------------------------------------------------------------------------
# Exception handling entrypoint
# ---------------------------------------------------------------------------
def handle(e: Exception):
    """
    Normalize and re-raise exceptions as API-friendly errors.

    Converts raw exceptions from DB, Pydantic, Redis, HTTP clients etc. into
    corresponding APIException subclasses.
    """
    if isinstance(e, IntegrityError):
        sqlstate = getattr(e.orig, "pgcode", None)
        if sqlstate == UNIQUE_VIOLATION:
            raise UniqueViolation(formatIntegrityError(e))
        if sqlstate == FOREIGN_KEY_VIOLATION:
            raise ForeignKeyViolation(formatIntegrityError(e))
    if isinstance(e, ValidationError):
        raise PydanticError(detail=validationMessage(e.errors()))
    if isinstance(e, APIException):
        raise e
    if isinstance(e, RedisError):
        raise RedisDBError(detail=str(e))
    if isinstance(e, RequestException):
        logException(e)
        raise PaymentGatewayError(detail=str(e))

    logException(e)
    raise e


def validationMessage(errors: List[dict]) -> str:
    """
    Build a human readable message out of pydantic/FastAPI validation errors.

    Missing fields are reported together as `Missing required fields: a, b`,
    any other failure as `Invalid value for a, b`.
    """
    missing, invalid = [], []
    for error in errors:
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path", "header")]
        field = ".".join(location) or "request"
        if error.get("type") == "missing":
            missing.append(field)
        elif field not in invalid:
            invalid.append(field)
    if missing:
        return f"Missing required fields: {', '.join(missing)}"
    return f"Invalid value for {', '.join(invalid)}"


# ---------------------------------------------------------------------------
# Envelope handlers
# ---------------------------------------------------------------------------
async def httpExceptionHandler(request: Request, e: StarletteHTTPException):
    return JSONResponse(
        status_code=e.status_code,
        content={"success": False, "error": e.detail},
        headers=getattr(e, "headers", None),
    )


async def validationExceptionHandler(request: Request, e: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"success": False, "error": validationMessage(e.errors())},
        headers={"X-Error": "ValidationError"},
    )


async def unhandledExceptionHandler(request: Request, e: Exception):
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "error": "Internal server error"},
    )


def registerHandlers(app) -> None:
    """Attach the envelope exception handlers to a FastAPI application."""
    app.add_exception_handler(StarletteHTTPException, httpExceptionHandler)
    app.add_exception_handler(RequestValidationError, validationExceptionHandler)
    app.add_exception_handler(Exception, unhandledExceptionHandler)


# ---------------------------------------------------------------------------
# Exception Classes
# ---------------------------------------------------------------------------
class PydanticError(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    headers = {"X-Error": "PydanticError"}
    detail = "Invalid request data"

    def __init__(self, detail: str = None):
        if detail is None:
            super().__init__()
            return
        super().__init__(detail=detail)


class UniqueViolation(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    headers = {"X-Error": "UniqueViolation"}
    detail = "The value already exists"

    def __init__(self, detail: str = None):
        if detail is None:
            super().__init__()
            return
        super().__init__(detail=detail)


class ForeignKeyViolation(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    headers = {"X-Error": "ForeignKeyViolation"}
    detail = "The value is referenced by another resource"

    def __init__(self, detail: str = None):
        if detail is None:
            super().__init__()
            return
        super().__init__(detail=detail)


class MissingParameter(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    headers = {"X-Error": "MissingParameter"}
    detail = "Missing required fields"

    def __init__(self, *columns: Union[Column, str]):
        if not columns:
            super().__init__()
            return
        names = ", ".join(columnName(c) for c in columns)
        super().__init__(detail=f"Missing required fields: {names}")


class InvalidValue(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    headers = {"X-Error": "InvalidValue"}
    detail = "Invalid value is provided"

    def __init__(self, column: Union[Column, str] = None):
        if column is None:
            super().__init__()
            return
        super().__init__(detail=f"Invalid {columnName(column)} is provided")


class UnknownValue(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    headers = {"X-Error": "UnknownValue"}
    detail = "Unknown value is provided"

    def __init__(self, column: Union[Column, str] = None):
        if column is None:
            super().__init__()
            return
        super().__init__(detail=f"Invalid {columnName(column)} is provided")


class DuplicateValue(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    headers = {"X-Error": "DuplicateValue"}
    detail = "The value already exists"

    def __init__(self, column: Union[Column, str] = None):
        if column is None:
            super().__init__()
            return
        super().__init__(detail=f"The {columnName(column)} already exists")


class InvalidCredentials(APIException):
    status_code = status.HTTP_401_UNAUTHORIZED
    detail = "Invalid username or password"
    headers = {"X-Error": "InvalidCredentials"}


class InactiveAccount(APIException):
    status_code = status.HTTP_403_FORBIDDEN
    detail = "The account is not in active status"
    headers = {"X-Error": "InactiveAccount"}


class InvalidToken(APIException):
    status_code = status.HTTP_401_UNAUTHORIZED
    detail = "Unauthorized"
    headers = {"X-Error": "InvalidToken"}


class NoPermission(APIException):
    status_code = status.HTTP_403_FORBIDDEN
    detail = "This user has no permission to perform this action"
    headers = {"X-Error": "NoPermission"}


class ServiceAccessDenied(APIException):
    status_code = status.HTTP_403_FORBIDDEN
    detail = "Access denied"
    headers = {"X-Error": "ServiceAccessDenied"}

    def __init__(self, serviceType: str = None):
        if serviceType is None:
            super().__init__()
            return
        super().__init__(
            detail=f"Access denied. {serviceType.capitalize()} staff only."
        )


class InvalidIdentifier(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    detail = "Invalid ID provided"
    headers = {"X-Error": "InvalidIdentifier"}


class InvalidStateTransition(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    headers = {"X-Error": "InvalidStateTransition"}
    detail = "The state cannot be set to the provided value"

    def __init__(self, column: Union[Column, str] = None):
        if column is None:
            super().__init__()
            return
        super().__init__(
            detail=f"The {columnName(column)} cannot be set to the provided value"
        )


class InactiveResource(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    headers = {"X-Error": "InactiveResource"}
    detail = "The resource is not in an active or useful state"

    def __init__(self, orm_class=None):
        if orm_class is None:
            super().__init__()
            return
        super().__init__(
            detail=f"The status of {orm_class.__name__} is not in an active or useful state"
        )


class ExceededMaxLimit(APIException):
    status_code = status.HTTP_403_FORBIDDEN
    headers = {"X-Error": "ExceededMaxLimit"}
    detail = "Maximum limit of the subscription plan is exceeded"

    def __init__(self, resource: str = None):
        if resource is None:
            super().__init__()
            return
        super().__init__(detail=f"Maximum limit for {resource} is exceeded")


class LockAcquireTimeout(APIException):
    status_code = status.HTTP_409_CONFLICT
    headers = {"X-Error": "LockAcquireTimeout"}
    detail = "Another request for this resource is in progress"


class PaymentGatewayError(APIException):
    status_code = status.HTTP_502_BAD_GATEWAY
    headers = {"X-Error": "PaymentGatewayError"}
    detail = "Payment gateway request failed"

    def __init__(self, detail: str = None):
        if detail is None:
            super().__init__()
            return
        super().__init__(detail=detail)


class PaymentInitiationFailed(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    headers = {"X-Error": "PaymentInitiationFailed"}
    detail = "Payment initiation failed: no transaction ID received"


class RedisDBError(APIException):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    headers = {"X-Error": "RedisAPIError"}

    def __init__(self, detail: str = "Redis is unavailable"):
        super().__init__(detail=detail)
