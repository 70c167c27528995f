from __future__ import annotations

"""
Operational endpoints: liveness, readiness and build metadata.

These are registered before the counter dispatcher; a ``?name=`` on them is
ignored.
"""

import platform
import time
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Request, Response, status

from durable_counter.logging import get_logger
from durable_counter.version import __version__, git_describe

log = get_logger(__name__)
router = APIRouter(tags=["health"])

STARTED_AT = datetime.now(timezone.utc)
_STARTED_MONOTONIC = time.monotonic()


def _clock() -> Dict[str, Any]:
    return {
        "now": datetime.now(timezone.utc).isoformat(),
        "uptime_seconds": round(time.monotonic() - _STARTED_MONOTONIC, 3),
    }


def _build_info() -> Dict[str, Any]:
    return {
        "service": "durable-counter",
        "version": __version__,
        "git": git_describe(),
        "python": {
            "version": platform.python_version(),
            "impl": platform.python_implementation(),
        },
        "started_at": STARTED_AT.isoformat(),
    }


@router.get("/healthz", summary="Liveness check", response_model=None)
def healthz() -> Dict[str, Any]:
    """200 for as long as the process can answer HTTP at all."""
    return {"status": "ok", **_build_info(), **_clock()}


@router.get("/version", summary="Build metadata", response_model=None)
def version(request: Request) -> Dict[str, Any]:
    info = {**_build_info(), **_clock()}
    cfg = request.app.state.config
    info["env"] = cfg.ENV
    info["store"] = cfg.storage.backend
    return info


@router.get("/readyz", summary="Readiness check", response_model=None)
async def readyz(request: Request, response: Response) -> Dict[str, Any]:
    """
    Ready means the durable store answers a trivial query. Counters cannot be
    served without it, so a failed ping turns into 503.
    """
    store = request.app.state.store
    store_ok = await store.ping()
    if not store_ok:
        log.warning("readiness_degraded", check="store", backend=type(store).__name__)
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return {
        "status": "ok" if store_ok else "degraded",
        "checks": {"store": {"ok": store_ok, "backend": type(store).__name__}},
        **_clock(),
    }
