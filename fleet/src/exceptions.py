"""
Errors returned by the Fleet API.

Every error is an `APIException`, a FastAPI `HTTPException` carrying a status
code, a `detail` message and an `X-Error` header naming the error.
Endpoints pass whatever they catch to `handle()`, which turns database,
validation and Redis failures into the matching `APIException` and lets
anything unexpected through after logging it.
"""

from traceback import format_exception
from logging import getLogger
from fastapi import status, HTTPException
from sqlalchemy.exc import IntegrityError
from psycopg2.errorcodes import UNIQUE_VIOLATION, FOREIGN_KEY_VIOLATION
from pydantic import ValidationError
from redis.exceptions import RedisError


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
    detail = str(format_exception(type(e), e, e.__traceback__))
    logger = getLogger("uvicorn.error")
    logger.error(detail)


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

    Converts raw exceptions from DB, Pydantic, Redis, etc. into
    corresponding APIException subclasses. Integrity errors raised by
    drivers other than psycopg2 carry no diagnostics and are re-raised as is.
    """
    if isinstance(e, IntegrityError):
        sqlState = getattr(getattr(e.orig, "diag", None), "sqlstate", None)
        if sqlState == UNIQUE_VIOLATION:
            raise UniqueViolation(formatIntegrityError(e))
        if sqlState == FOREIGN_KEY_VIOLATION:
            raise ForeignKeyViolation(formatIntegrityError(e))
    if isinstance(e, ValidationError):
        raise PydanticError(detail=e.errors())
    if isinstance(e, APIException):
        raise e
    if isinstance(e, RedisError):
        raise RedisDBError(detail=str(e))

    logException(e)
    raise e


# ---------------------------------------------------------------------------
# Exception Classes
# ---------------------------------------------------------------------------
class PydanticError(APIException):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    headers = {"X-Error": "PydanticError"}

    def __init__(self, detail: str):
        super().__init__(detail=detail)


class UniqueViolation(APIException):
    status_code = status.HTTP_409_CONFLICT
    headers = {"X-Error": "UniqueViolation"}

    def __init__(self, detail: str):
        super().__init__(detail=detail)


class ForeignKeyViolation(APIException):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    headers = {"X-Error": "ForeignKeyViolation"}

    def __init__(self, detail: str):
        super().__init__(detail=detail)


class InvalidCredentials(APIException):
    status_code = status.HTTP_401_UNAUTHORIZED
    detail = "Invalid email or password"
    headers = {"X-Error": "InvalidCredentials"}


class InactiveAccount(APIException):
    status_code = status.HTTP_412_PRECONDITION_FAILED
    detail = "The account is not in active status"
    headers = {"X-Error": "InactiveAccount"}


class InvalidToken(APIException):
    status_code = status.HTTP_401_UNAUTHORIZED
    detail = "Invalid token"
    headers = {"X-Error": "InvalidToken"}


class NoPermission(APIException):
    status_code = status.HTTP_403_FORBIDDEN
    detail = "This user has no permission to perform this action"
    headers = {"X-Error": "NoPermission"}


class InvalidIdentifier(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    detail = "Invalid ID provided"
    headers = {"X-Error": "InvalidIdentifier"}


class UnknownValue(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    headers = {"X-Error": "UnknownValue"}

    def __init__(self, column_name: str):
        detail = f"Invalid {column_name} is provided"
        super().__init__(detail=detail)


class InvalidWKTStringOrType(APIException):
    status_code = status.HTTP_406_NOT_ACCEPTABLE
    detail = "Invalid WKT string or type"
    headers = {"X-Error": "InvalidWKTStringOrType"}


class InvalidSRID4326(APIException):
    status_code = status.HTTP_406_NOT_ACCEPTABLE
    detail = "The SRID of the geometry is not 4326"
    headers = {"X-Error": "InvalidSRID4326"}


class InvalidStateTransition(APIException):
    status_code = status.HTTP_406_NOT_ACCEPTABLE
    headers = {"X-Error": "InvalidStateTransition"}

    def __init__(self, column_name: str):
        detail = f"The {column_name} cannot be set to the provided value"
        super().__init__(detail=detail)


class InactiveResource(APIException):
    status_code = status.HTTP_412_PRECONDITION_FAILED
    headers = {"X-Error": "InactiveResource"}

    def __init__(self, orm_class):
        detail = (
            f"The status of {orm_class.__name__} is not in an active or useful state"
        )
        super().__init__(detail=detail)


class MissingParameter(APIException):
    status_code = status.HTTP_406_NOT_ACCEPTABLE
    headers = {"X-Error": "MissingParameter"}

    def __init__(self, column_name: str):
        detail = f"The {column_name} is missing"
        super().__init__(detail=detail)


class InvalidImageFile(APIException):
    status_code = status.HTTP_406_NOT_ACCEPTABLE
    headers = {"X-Error": "InvalidImage"}
    detail = "Invalid image provided"


class FileTooLarge(APIException):
    status_code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
    headers = {"X-Error": "FileTooLarge"}

    def __init__(self, max_size: int):
        detail = f"The file exceeds the size limit of {max_size} bytes"
        super().__init__(detail=detail)


class LockAcquireTimeout(APIException):
    status_code = status.HTTP_406_NOT_ACCEPTABLE
    headers = {"X-Error": "LockAcquireTimeout"}
    detail = "Lock acquisition timed out"


class RedisDBError(APIException):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    headers = {"X-Error": "RedisAPIError"}

    def __init__(self, detail: str):
        super().__init__(detail=detail)


# ---------------------------------------------------------------------------
# Account provisioning
# ---------------------------------------------------------------------------
class MissingField(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    headers = {"X-Error": "MissingField"}

    def __init__(self, *field_names: str):
        detail = f"{', '.join(field_names)} are required"
        super().__init__(detail=detail)


class InvalidEmail(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    detail = "Invalid email format"
    headers = {"X-Error": "InvalidEmail"}


class ShortPassword(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    headers = {"X-Error": "ShortPassword"}

    def __init__(self, min_length: int):
        detail = f"Password must be at least {min_length} characters"
        super().__init__(detail=detail)


class InvalidRole(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    detail = "Invalid role"
    headers = {"X-Error": "InvalidRole"}


class EmailInUse(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    detail = "An account with this email already exists"
    headers = {"X-Error": "EmailInUse"}


class AdminExists(APIException):
    status_code = status.HTTP_403_FORBIDDEN
    detail = "Admin already exists. Bootstrap is disabled."
    headers = {"X-Error": "AdminExists"}


class TooManyRequests(APIException):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    detail = "Too many requests. Please try again later."
    headers = {"X-Error": "TooManyRequests"}


# ---------------------------------------------------------------------------
# External services
# ---------------------------------------------------------------------------
class ExternalDBNotConfigured(APIException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    detail = "External database credentials not configured"
    headers = {"X-Error": "ExternalDBNotConfigured"}


class MapTokenNotConfigured(APIException):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    detail = "Map token not configured"
    headers = {"X-Error": "MapTokenNotConfigured"}
