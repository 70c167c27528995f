"""ASGI middleware: request ids, access logging, and problem+json error mapping."""

from __future__ import annotations

from .errors import PROBLEM_CT, install_error_handlers
from .logging import AccessLogMiddleware, install_access_log_middleware
from .request_id import (RequestIdConfig, RequestIdMiddleware,
                         install_request_id_middleware)

__all__ = [
    "PROBLEM_CT",
    "install_error_handlers",
    "AccessLogMiddleware",
    "install_access_log_middleware",
    "RequestIdConfig",
    "RequestIdMiddleware",
    "install_request_id_middleware",
]
