"""Response envelopes and the FastAPI exception handlers that produce them.

Success: {"data": ...}
Error:   {"error": {"code": "E_...", "message": "...", "details": {...}, "request_id": "..."}}

details is present only for errors that carry structured context (quota
dimension and threshold, attempt count); request_id whenever the request-id
middleware bound one.
"""

from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from llmgate.errors import ApiError, ApiErrorCode, api_error_from_gateway
from llmgate.logging import get_logger, get_request_id

logger = get_logger(__name__)

# Framework-raised HTTP errors (unknown route, wrong method, ...)
_HTTP_STATUS_TO_CODE: dict[int, ApiErrorCode] = {
    403: ApiErrorCode.E_FORBIDDEN,
    500: ApiErrorCode.E_INTERNAL,
}


def success_response(data: Any) -> dict[str, Any]:
    return {"data": data}


def error_response(
    code: ApiErrorCode,
    message: str,
    request_id: str | None = None,
    details: dict | None = None,
) -> dict[str, Any]:
    """Build the error envelope; request_id defaults to the bound logging context."""
    error: dict[str, Any] = {"code": code.value, "message": message}
    if details:
        error["details"] = details

    request_id = request_id or get_request_id()
    if request_id:
        error["request_id"] = request_id
    return {"error": error}


def api_error_json(exc: ApiError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(exc.code, exc.message, details=exc.details),
    )


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    return api_error_json(exc)


async def gateway_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Gateway exceptions that escape a route (quota, exhaustion, no provider)."""
    return api_error_json(api_error_from_gateway(exc))


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    code = _HTTP_STATUS_TO_CODE.get(exc.status_code, ApiErrorCode.E_INVALID_REQUEST)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(code, str(exc.detail) if exc.detail else "Request failed"),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """500 with E_INTERNAL; the exception is logged, never rendered."""
    logger.exception("unhandled_exception", error_type=type(exc).__name__)
    return JSONResponse(
        status_code=500,
        content=error_response(ApiErrorCode.E_INTERNAL, "Internal server error"),
    )
