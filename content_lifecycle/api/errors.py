"""
HTTP error mapping.

Lifecycle errors become `{"error": {...}}` bodies with a fixed status per
error class. Anything unexpected becomes a 500 carrying only a request id;
driver errors and tracebacks stay in the server log.
"""

import logging
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from content_lifecycle.domain.errors import (
    ConcurrentModification,
    Forbidden,
    InternalError,
    InvalidTransition,
    LifecycleError,
    NotFound,
    QualityGateFailed,
    Unauthorized,
    ValidationError,
)

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

STATUS_CODES: dict[type[LifecycleError], int] = {
    ValidationError: 400,
    QualityGateFailed: 400,
    InvalidTransition: 409,
    ConcurrentModification: 409,
    NotFound: 404,
    Unauthorized: 401,
    Forbidden: 403,
}


def status_for(error: LifecycleError) -> int:
    for error_type, status_code in STATUS_CODES.items():
        if isinstance(error, error_type):
            return status_code
    return 500


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or uuid4().hex


def _error_response(request: Request, error: LifecycleError, status_code: int) -> JSONResponse:
    headers = {REQUEST_ID_HEADER: _request_id(request)}
    if status_code == 401:
        headers["WWW-Authenticate"] = "Bearer"
    return JSONResponse(status_code=status_code, content={"error": error.to_dict()}, headers=headers)


async def lifecycle_error_handler(request: Request, exc: LifecycleError) -> JSONResponse:
    status_code = status_for(exc)
    if status_code == 500:
        return await unhandled_error_handler(request, exc)
    return _error_response(request, exc, status_code)


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    problems = exc.errors()
    first = problems[0] if problems else {}
    field = ".".join(str(p) for p in first.get("loc", ())[1:]) or None
    error = ValidationError(first.get("msg", "Invalid request"), field=field)
    return _error_response(request, error, 400)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    request_id = _request_id(request)
    logger.exception("Unhandled error (request %s)", request_id, exc_info=exc)
    return _error_response(request, InternalError(request_id), 500)


def install_error_handling(app: FastAPI) -> None:
    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        request.state.request_id = request.headers.get(REQUEST_ID_HEADER) or uuid4().hex
        response = await call_next(request)
        response.headers.setdefault(REQUEST_ID_HEADER, request.state.request_id)
        return response

    app.add_exception_handler(LifecycleError, lifecycle_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
