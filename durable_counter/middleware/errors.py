from __future__ import annotations

"""
problem+json (RFC 7807) exception handlers.

The counter dispatcher answers routing and body problems in plain text, so
in practice these fire for store faults (``StorageFault`` -> 503), for
methods the catch-all route does not accept (405) and for genuine bugs (500).
Bodies carry the request and trace ids from ``request.state``; tracebacks go
to the log, never to the client.
"""

from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from durable_counter.errors import ApiError
from durable_counter.logging import get_logger

PROBLEM_CT = "application/problem+json"

log = get_logger(__name__)

_STATUS_TITLES = {
    404: "Not Found",
    405: "Method Not Allowed",
    422: "Unprocessable Entity",
    500: "Internal Server Error",
    503: "Service Unavailable",
}


def problem_response(
    request: Request,
    status: int,
    *,
    detail: str = "",
    title: Optional[str] = None,
    type_uri: str = "about:blank",
    extra: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    body: Dict[str, Any] = {
        "type": type_uri,
        "title": title or _STATUS_TITLES.get(status, "Error"),
        "status": status,
        "detail": detail,
        "instance": request.url.path,
        "request_id": getattr(request.state, "request_id", "") or "",
        "trace_id": getattr(request.state, "trace_id", "") or "",
    }
    for key, value in (extra or {}).items():
        body.setdefault(key, value)
    return JSONResponse(status_code=status, content=body, media_type=PROBLEM_CT, headers=headers)


async def _on_api_error(request: Request, exc: ApiError) -> JSONResponse:
    problem = exc.to_problem()
    extra: Dict[str, Any] = {"code": exc.code}
    if "details" in problem:
        extra["details"] = problem["details"]

    emit = log.error if exc.status_code >= 500 else log.warning
    emit("api_error", path=request.url.path, status=exc.status_code, **extra)
    return problem_response(
        request,
        exc.status_code,
        detail=problem["detail"],
        title=problem["title"],
        type_uri=problem["type"],
        extra=extra,
    )


async def _on_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    status = int(exc.status_code)
    log.warning("http_exception", path=request.url.path, status=status, detail=exc.detail)
    return problem_response(
        request,
        status,
        detail=str(exc.detail or ""),
        headers=getattr(exc, "headers", None),
    )


async def _on_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    log.warning("validation_error", path=request.url.path, errors=exc.errors())
    return problem_response(
        request, 422, detail="Request validation failed.", extra={"errors": exc.errors()}
    )


async def _on_unexpected(request: Request, exc: Exception) -> JSONResponse:
    log.exception("unhandled_exception", path=request.url.path, exc_info=exc)
    return problem_response(
        request, 500, detail="Unexpected error; quote the request_id when reporting it."
    )


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, _on_api_error)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, _on_http_exception)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _on_validation_error)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _on_unexpected)


__all__ = ["PROBLEM_CT", "install_error_handlers", "problem_response"]
