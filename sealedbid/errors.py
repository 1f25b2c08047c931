"""API error body and the exception handlers that render it."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    UNAUTHORIZED = "UNAUTHORIZED"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    AUCTION_ENDED = "AUCTION_ENDED"
    INVALID_BID = "INVALID_BID"


class ApiError(Exception):
    def __init__(
        self,
        status_code: int,
        message: str,
        code: ErrorCode | None = None,
        details: Any = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.code = code
        self.details = details

    def to_body(self) -> dict[str, Any]:
        body: dict[str, Any] = {"message": self.message}
        if self.code:
            body["code"] = self.code.value
        if self.details:
            body["details"] = self.details
        return body


def unauthorized(message: str = "You must be logged in") -> ApiError:
    return ApiError(status.HTTP_401_UNAUTHORIZED, message, ErrorCode.UNAUTHORIZED)


def not_found(message: str) -> ApiError:
    return ApiError(status.HTTP_404_NOT_FOUND, message, ErrorCode.NOT_FOUND)


def validation_error(message: str, details: Any = None) -> ApiError:
    return ApiError(status.HTTP_400_BAD_REQUEST, message, ErrorCode.VALIDATION_ERROR, details)


def bad_request(message: str, code: ErrorCode) -> ApiError:
    return ApiError(status.HTTP_400_BAD_REQUEST, message, code)


async def _api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


async def _request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    details = [
        {"field": ".".join(str(part) for part in error.get("loc", ())), "message": error.get("msg")}
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=validation_error("Invalid request", details).to_body(),
    )


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "unhandled error on %s %s: %s", request.method, request.url.path, exc, exc_info=exc
    )
    error = ApiError(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Internal server error",
        ErrorCode.INTERNAL_ERROR,
    )
    return JSONResponse(status_code=error.status_code, content=error.to_body())


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, _api_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
