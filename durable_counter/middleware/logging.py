from __future__ import annotations

"""
Access log: one ``access`` event per HTTP request.

Fields: method, path, query, status, latency_ms, bytes_in, bytes_out,
client, user_agent. The request/trace ids arrive through the structlog
context bound by the request id middleware. 5xx logs at error, 4xx at
warning, the rest at info.

The query string carries the counter name and is cut to MAX_QUERY_LOGGED
characters.
"""

import time
from typing import Any, Dict

from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from durable_counter.logging import get_logger

log = get_logger("durable_counter.access")

MAX_QUERY_LOGGED = 256


def _content_length(headers) -> int:
    raw = headers.get("content-length") or "0"
    return int(raw) if raw.isdigit() else 0


def _client(request: Request) -> str:
    # first X-Forwarded-For hop, else the socket peer
    forwarded = request.headers.get("x-forwarded-for", "")
    if forwarded:
        return forwarded.split(",", 1)[0].strip()
    return request.client.host if request.client else ""


class AccessLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        started = time.perf_counter()
        fields: Dict[str, Any] = {
            "method": request.method,
            "path": request.url.path,
            "query": request.url.query[:MAX_QUERY_LOGGED],
            "bytes_in": _content_length(request.headers),
            "client": _client(request),
            "user_agent": request.headers.get("user-agent", ""),
        }

        def elapsed_ms() -> float:
            return round((time.perf_counter() - started) * 1000, 3)

        try:
            response = await call_next(request)
        except Exception:
            log.exception("access", status=500, latency_ms=elapsed_ms(), **fields)
            raise

        status = response.status_code
        emit = log.error if status >= 500 else log.warning if status >= 400 else log.info
        emit(
            "access",
            status=status,
            latency_ms=elapsed_ms(),
            bytes_out=_content_length(response.headers),
            **fields,
        )
        return response


def install_access_log_middleware(app: FastAPI) -> None:
    app.add_middleware(AccessLogMiddleware)


__all__ = ["AccessLogMiddleware", "install_access_log_middleware"]
