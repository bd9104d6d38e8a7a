"""
api/boundary.py -- The terminal error boundary.

Every failure leaves the server through one of the handlers registered here,
and every one of them produces the same body:

    {"message": "<client-safe text>"}

  AppError                -- raised by our own code; status and message come
                             from its ErrorKind.
  StarletteHTTPException  -- raised by the router itself. A 404 or 405 here
                             means no route matched ("Route not found").
  RequestValidationError  -- malformed body or query params (422).
  RateLimitExceeded       -- slowapi (429 + Retry-After).
  Exception               -- anything else. The traceback goes to the log,
                             the client gets a generic 500.

Unexpected exceptions are caught by catch_unhandled(), a middleware that
sits inside CORSMiddleware so the 500 still carries the CORS headers an
allowed browser origin needs to read it. The Exception handler registered
with the app is the last resort for failures in the outer middleware.

Security note: exception text is never copied into a response body. Raw
messages can leak file paths, SQL, or library internals.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.models import ErrorResponse
from core.errors import AppError, ErrorKind, kind_for_status

logger = logging.getLogger("studyshala.api")


def error_response(error: AppError, status_code: int | None = None) -> JSONResponse:
    """Render an AppError as the uniform JSON error body."""
    return JSONResponse(
        status_code=status_code or error.status_code,
        content=ErrorResponse(message=error.message).model_dump(),
    )


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.kind.value, request.method, request.url.path, exc.message)
    return error_response(exc)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle exceptions raised by the framework's router.

    Our own handlers raise AppError, so a 404 arriving here can only be an
    unmatched path. A route is its method plus its path, so a known path
    requested with another method (405 from the router) is unmatched too.
    Other statuses keep their standard reason phrase.
    """
    if exc.status_code in (404, 405):
        request.state.unmatched = True
        return error_response(AppError(ErrorKind.NOT_FOUND))
    kind = kind_for_status(exc.status_code)
    response = error_response(AppError(kind, str(exc.detail)), status_code=exc.status_code)
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 naming the offending fields, without echoing submitted values."""
    fields = sorted({".".join(str(p) for p in err.get("loc", ()) if p != "body") for err in exc.errors()})
    message = "Request validation failed."
    if fields and any(fields):
        message = f"Request validation failed: {', '.join(f for f in fields if f)}."
    return error_response(AppError(ErrorKind.VALIDATION, message))


async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with Retry-After when a rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = error_response(AppError(ErrorKind.RATE_LIMITED))
    response.headers["Retry-After"] = str(retry_after)
    return response


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unexpected server errors.

    The full traceback is logged; the client receives only a generic message.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return error_response(AppError(ErrorKind.INTERNAL))


async def catch_unhandled(request: Request, call_next) -> Response:
    """Middleware form of unhandled_exception_handler, run inside CORSMiddleware."""
    try:
        return await call_next(request)
    except Exception as exc:
        return await unhandled_exception_handler(request, exc)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
