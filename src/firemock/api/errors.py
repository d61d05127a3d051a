from __future__ import annotations

from dataclasses import dataclass
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from firemock.auth.users import UserDirectoryError, UserNotFoundError
from firemock.firestore.errors import AlreadyExists, FirestoreError, NotFound

logger = logging.getLogger(__name__)

CANONICAL_STATUS = {
    400: "INVALID_ARGUMENT",
    401: "UNAUTHENTICATED",
    403: "PERMISSION_DENIED",
    404: "NOT_FOUND",
    405: "UNIMPLEMENTED",
    409: "ALREADY_EXISTS",
    412: "FAILED_PRECONDITION",
    422: "INVALID_ARGUMENT",
    500: "INTERNAL",
}


class ErrorDetail(BaseModel):
    code: int = Field(description="HTTP status code")
    message: str = Field(description="Error message")
    status: str = Field(description="Canonical error status")


class ErrorResponse(BaseModel):
    error: ErrorDetail


@dataclass(frozen=True)
class APIError(Exception):
    status_code: int
    status: str
    message: str


class InvalidArgumentError(APIError):
    def __init__(self, message: str) -> None:
        super().__init__(400, "INVALID_ARGUMENT", message)


class NotFoundError(APIError):
    def __init__(self, message: str) -> None:
        super().__init__(404, "NOT_FOUND", message)


class AlreadyExistsError(APIError):
    def __init__(self, message: str) -> None:
        super().__init__(409, "ALREADY_EXISTS", message)


def to_api_error(exc: FirestoreError) -> APIError:
    """Path and codec failures are client errors, reported as INVALID_ARGUMENT."""

    if isinstance(exc, NotFound):
        return NotFoundError(str(exc))
    if isinstance(exc, AlreadyExists):
        return AlreadyExistsError(str(exc))
    return InvalidArgumentError(str(exc))


def user_api_error(exc: UserDirectoryError) -> APIError:
    """Identity Toolkit errors carry the machine-readable code as the message."""

    if isinstance(exc, UserNotFoundError):
        return APIError(400, "NOT_FOUND", exc.code)
    return APIError(400, "INVALID_ARGUMENT", exc.code)


def build_error_response(
    *,
    status_code: int,
    status: str,
    message: str,
) -> JSONResponse:
    payload = ErrorResponse(error=ErrorDetail(code=status_code, message=message, status=status))
    return JSONResponse(status_code=status_code, content=payload.model_dump(mode="json"))


def install_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(APIError)
    async def _handle_api_error(_: Request, exc: APIError) -> JSONResponse:
        return build_error_response(
            status_code=exc.status_code,
            status=exc.status,
            message=exc.message,
        )

    @app.exception_handler(RequestValidationError)
    async def _handle_validation_error(_: Request, exc: RequestValidationError) -> JSONResponse:
        problems = [
            f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg', '')}"
            for error in exc.errors()
        ]
        return build_error_response(
            status_code=400,
            status="INVALID_ARGUMENT",
            message="Invalid request: " + "; ".join(problems),
        )

    @app.exception_handler(StarletteHTTPException)
    async def _handle_http_exception(_: Request, exc: StarletteHTTPException) -> JSONResponse:
        status_code = exc.status_code
        status = CANONICAL_STATUS.get(status_code, "UNKNOWN")
        message = str(exc.detail) if exc.detail else "HTTP error."
        return build_error_response(status_code=status_code, status=status, message=message)

    @app.exception_handler(Exception)
    async def _handle_unexpected_error(_: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled exception", exc_info=exc)
        return build_error_response(
            status_code=500,
            status="INTERNAL",
            message="Internal error encountered.",
        )
