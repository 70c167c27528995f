from __future__ import annotations

"""
Request correlation middleware.

Every request gets an ``X-Request-Id`` (the caller's, or a fresh uuid4 hex)
and a W3C ``traceparent``: a valid incoming header keeps its trace id and gets
a new span id, anything else starts a new trace. Both are

- stored on ``request.state`` (``request_id``, ``trace_id``, ``span_id``),
- bound into the structlog context for the life of the request, so the
  ``counter_op`` and ``access`` events carry them,
- echoed back as response headers.
"""

import re
import secrets
import uuid
from dataclasses import dataclass
from typing import Mapping, Optional

from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from durable_counter.logging import bind_request_context, clear_request_context

# version-traceid-parentid-flags, lowercase hex
_TRACEPARENT = re.compile(r"^00-([0-9a-f]{32})-([0-9a-f]{16})-([0-9a-f]{2})$")


@dataclass(frozen=True)
class RequestIdConfig:
    request_id_header: str = "X-Request-Id"
    traceparent_header: str = "traceparent"


@dataclass(frozen=True)
class Correlation:
    request_id: str
    trace_id: str
    span_id: str
    parent_span_id: str = ""
    flags: str = "01"

    @classmethod
    def from_headers(cls, headers: Mapping[str, str], cfg: RequestIdConfig) -> "Correlation":
        request_id = headers.get(cfg.request_id_header) or uuid.uuid4().hex
        span_id = secrets.token_hex(8)

        m = _TRACEPARENT.match((headers.get(cfg.traceparent_header) or "").strip())
        if m and m.group(1) != "0" * 32 and m.group(2) != "0" * 16:
            return cls(request_id, m.group(1), span_id, parent_span_id=m.group(2), flags=m.group(3))
        return cls(request_id, secrets.token_hex(16), span_id)

    @property
    def traceparent(self) -> str:
        return f"00-{self.trace_id}-{self.span_id}-{self.flags}"

    def log_fields(self) -> dict:
        return {
            "request_id": self.request_id,
            "trace_id": self.trace_id,
            "span_id": self.span_id,
            "parent_span_id": self.parent_span_id,
        }


class RequestIdMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, config: Optional[RequestIdConfig] = None):
        super().__init__(app)
        self.cfg = config or RequestIdConfig()

    async def dispatch(self, request: Request, call_next) -> Response:
        ids = Correlation.from_headers(request.headers, self.cfg)
        request.state.request_id = ids.request_id
        request.state.trace_id = ids.trace_id
        request.state.span_id = ids.span_id

        fields = ids.log_fields()
        bind_request_context(**fields)
        try:
            response = await call_next(request)
        finally:
            clear_request_context(*fields)

        response.headers[self.cfg.request_id_header] = ids.request_id
        response.headers[self.cfg.traceparent_header] = ids.traceparent
        return response


def install_request_id_middleware(app: FastAPI, config: Optional[RequestIdConfig] = None) -> RequestIdConfig:
    """Add :class:`RequestIdMiddleware` to ``app`` and return the header config in effect."""
    cfg = config or RequestIdConfig()
    app.add_middleware(RequestIdMiddleware, config=cfg)
    return cfg


__all__ = [
    "Correlation",
    "RequestIdConfig",
    "RequestIdMiddleware",
    "install_request_id_middleware",
]
