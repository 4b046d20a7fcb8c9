from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.services.uploads import InvalidUpload

logger = logging.getLogger(__name__)

_STATUS_CODES = {
    400: "bad_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    409: "conflict",
    413: "payload_too_large",
    422: "unprocessable_entity",
    429: "rate_limited",
    502: "bad_gateway",
    503: "service_unavailable",
}


class ApiError(Exception):
    """An error the API reports with its own code instead of the status default."""

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message
        self.details = details or {}


def _default_message(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Request failed"


def _as_details(details: Any) -> dict:
    if details is None:
        return {}
    if isinstance(details, dict):
        return details
    if isinstance(details, list):
        return {"errors": details}
    return {"detail": str(details)}


def error_response(
    status_code: int,
    code: str | None = None,
    message: str | None = None,
    details: Any = None,
) -> JSONResponse:
    payload = {
        "code": code or _STATUS_CODES.get(status_code, "http_error"),
        "message": message or _default_message(status_code),
        "data": None,
        "details": _as_details(details),
    }
    return JSONResponse(status_code=status_code, content=jsonable_encoder(payload))


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    return error_response(exc.status_code, exc.code, exc.message, exc.details)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    detail = exc.detail
    if isinstance(detail, str):
        response = error_response(exc.status_code, message=detail, details={"detail": detail})
    else:
        response = error_response(exc.status_code, details=detail)
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    message = "Validation failed"
    if errors:
        first = errors[0] or {}
        # Drop the request section (body/query/path) from the location
        loc = [str(part) for part in first.get("loc") or [] if part not in {"body", "query", "path"}]
        msg = first.get("msg") or message
        message = f"{'.'.join(loc)}: {msg}" if loc else str(msg)
    return error_response(422, "validation_error", message, {"errors": errors})


async def invalid_upload_handler(request: Request, exc: InvalidUpload) -> JSONResponse:
    return error_response(400, message=str(exc), details={"detail": str(exc)})


async def rate_limit_exception_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    response = error_response(429, details=getattr(exc, "detail", None))
    headers = getattr(exc, "headers", None)
    if isinstance(headers, dict):
        response.headers.update(headers)
    return response


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return error_response(500, "internal_server_error", "Internal server error")


def register_exception_handlers(app) -> None:
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(InvalidUpload, invalid_upload_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
