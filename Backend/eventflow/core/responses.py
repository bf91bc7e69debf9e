"""
Standardized API Response Module

RESPONSE FORMAT:
    Success bodies are the resource itself (or a small object such as
    {"success": true}).

    Error bodies are always:
        {
            "error": "Human-readable message"
        }

STATUS CODES:
    - 400: InvalidInput (missing/out-of-range fields, bad JSON)
           Bad JSON on a guarded route without a session is still a 401.
    - 401: Unauthenticated (no or invalid session)
    - 404: NotFound (planner, event or resource; never says which level failed)
    - 409: Conflict
    - 422: Unprocessable (file type/size rejected)
    - 502: UpstreamFailure (provider rejected the call)
    - 500: Internal or unexpected; detail is logged, never returned
           (OperationFailed carries a message written for the client)
"""

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .errors import ApiError, Unauthenticated

logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "Internal server error"


def success_response(**fields: Any) -> dict:
    """Create a success body, e.g. success_response() -> {"success": True}."""
    return {"success": True, **fields}


def error_response(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _first_validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request body"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid value")
    return f"{location}: {message}" if location else message


async def _api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    message = exc.message if exc.expose else INTERNAL_ERROR_MESSAGE
    return error_response(message, exc.status_code)


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    from .request_context import missing_required_session  # deferred: request_context imports ..auth

    malformed_body = any(error.get("type") == "json_invalid" for error in exc.errors())
    if malformed_body and missing_required_session(request):
        return error_response(Unauthenticated.default_message, 401)
    return error_response(_first_validation_message(exc), 400)


async def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    detail = exc.detail if isinstance(exc.detail, str) else INTERNAL_ERROR_MESSAGE
    return JSONResponse(status_code=exc.status_code, content={"error": detail}, headers=exc.headers)


async def _catch_unhandled_errors(request: Request, call_next):
    try:
        return await call_next(request)
    except Exception as e:
        logger.exception(f"Unhandled error on {request.method} {request.url.path}: {e}")
        return error_response(INTERNAL_ERROR_MESSAGE, 500)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, _api_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.middleware("http")(_catch_unhandled_errors)
