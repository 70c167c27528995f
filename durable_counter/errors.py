from __future__ import annotations

"""
Error hierarchy and helpers for durable-counter.

A small set of API exceptions that serialize as RFC 7807 "problem+json"
responses. The middleware in :mod:`durable_counter.middleware.errors` catches
them and returns JSON automatically.

Usage
-----
    from durable_counter.errors import StorageFault

    raise StorageFault("write", instance="A", key="value")

Fields
------
status_code   HTTP status of the problem response
code          machine-readable, stable across releases ("storage_error")
message       becomes the problem "detail"
details       extra diagnostics copied into the body (operation, instance, key)

Routing and amount-parsing problems are *not* errors here: the dispatcher
answers those with plain text (or a defaulted amount) and never raises.
"""

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional


DEFAULT_ERROR_TYPE_BASE = "about:blank"


@dataclass
class ApiError(Exception):
    message: str
    status_code: int = 400
    code: str = "bad_request"
    details: Optional[Mapping[str, Any]] = None

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def type_uri(self) -> str:
        return f"{DEFAULT_ERROR_TYPE_BASE}#{self.code}"

    def title(self) -> str:
        return {
            "storage_error": "Storage Unavailable",
        }.get(self.code, self.message or "Error")

    def to_problem(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "type": self.type_uri(),
            "title": self.title(),
            "status": self.status_code,
            "code": self.code,
            "detail": self.message,
        }
        if self.details:
            body["details"] = dict(self.details)
        return body


# ------------------------------ Concrete types ------------------------------- #


class StorageFault(ApiError):
    """
    The durable store failed to read or write a key.

    Raised by store backends and passed through the counter layer as-is, so
    the caller sees exactly which operation failed. The persisted
    value is whatever the store last committed.
    """

    def __init__(
        self,
        operation: str,
        *,
        instance: Optional[str] = None,
        key: Optional[str] = None,
        reason: Optional[str] = None,
    ):
        details: Dict[str, Any] = {"operation": operation}
        if instance is not None:
            details["instance"] = instance
        if key is not None:
            details["key"] = key
        if reason:
            details["reason"] = reason
        super().__init__(
            message=f"Durable store {operation} failed",
            status_code=503,
            code="storage_error",
            details=details,
        )
        self.operation = operation


__all__ = [
    "ApiError",
    "StorageFault",
]
