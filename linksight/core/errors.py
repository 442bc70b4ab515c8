"""
Error types and the JSON error contract.

Every error response has the shape

    {"error": {"code": ..., "message": ..., "request_id": ...}, "detail": message}

and echoes the request id in the x-request-id header. Access-gate denials
are not errors: /api/premium/check answers 200 with allowed=false.
"""

import logging
from typing import Dict, Mapping, Optional
from uuid import uuid4

from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException
from starlette.requests import Request

from linksight.core.logging import LOGGER_NAME, get_request_id

logger = logging.getLogger(LOGGER_NAME)

_HTTP_STATUS_CODES = {
    400: "validation_error",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
}


class AppError(Exception):
    code = "app_error"
    status_code = 500

    def __init__(self, message: str, *, code: Optional[str] = None, status_code: Optional[int] = None, request_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        self.request_id = request_id


class ValidationError(AppError, ValueError):
    code = "validation_error"
    status_code = 400


class AuthError(AppError):
    code = "unauthorized"
    status_code = 401


class NotFoundError(AppError, ValueError):
    code = "not_found"
    status_code = 404


class ConflictError(AppError):
    code = "conflict"
    status_code = 409


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or get_request_id() or str(uuid4())


def error_response(
    request: Request,
    status_code: int,
    code: str,
    message: str,
    *,
    request_id: Optional[str] = None,
    headers: Optional[Mapping[str, str]] = None,
) -> JSONResponse:
    rid = request_id or _request_id(request)
    level = logging.ERROR if status_code >= 500 else logging.WARNING
    logger.log(level, "request.error", extra={"request_id": rid, "error_code": code, "status": status_code})

    response_headers: Dict[str, str] = dict(headers or {})
    response_headers["x-request-id"] = rid
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code, "message": message, "request_id": rid}, "detail": message},
        headers=response_headers,
    )


async def app_error_handler(request: Request, exc: AppError):
    return error_response(request, exc.status_code, exc.code, exc.message, request_id=exc.request_id)


async def http_error_handler(request: Request, exc: HTTPException):
    code = _HTTP_STATUS_CODES.get(exc.status_code, "http_error")
    return error_response(request, exc.status_code, code, str(exc.detail or "HTTP error"), headers=exc.headers)


def _first_validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    field = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path"))
    return f"{field}: {first.get('msg')}" if field else str(first.get("msg"))


async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies and parameters are 400s, like ValidationError."""
    return error_response(request, 400, "validation_error", _first_validation_message(exc))


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error("unhandled.exception", exc_info=exc, extra={"request_id": _request_id(request)})
    return error_response(request, 500, "internal_error", "Unexpected error")
