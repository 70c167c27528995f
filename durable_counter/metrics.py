from __future__ import annotations

"""
Prometheus instrumentation for durable-counter.

``setup_metrics(app)`` gives the app its own ``CollectorRegistry`` (so several
apps in one process, as in the test suite, never collide on metric names),
wraps it in a small ASGI middleware and mounts the text exporter.

Series
------
http_requests_total{method,path,status}
http_request_duration_seconds{method,path,status}     histogram
http_inprogress_requests{method}                      gauge
counter_operations_total{op,outcome}                  op: get|increment|decrement
                                                      outcome: ok|storage_error
service_info{name,version}

``path`` is the route template for fixed routes and the literal path for the
three counter paths. Everything else the catch-all dispatcher sees is folded
into ``other`` so that arbitrary request paths cannot explode the label set.
Counter names are never used as labels.
"""

import time
from typing import Optional

from fastapi import APIRouter, FastAPI
from prometheus_client import (CONTENT_TYPE_LATEST, CollectorRegistry, Counter,
                               Gauge, Histogram, Info, PlatformCollector,
                               ProcessCollector, generate_latest)
from starlette.responses import Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send

COUNTER_PATHS = ("/", "/incr", "/decr")

# Counter operations are a single-row read plus a single-row write.
LATENCY_BUCKETS = (0.0005, 0.001, 0.0025, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 1.0, 5.0)


class Metrics:
    """Registry plus metric handles; stored on ``app.state.metrics``."""

    def __init__(self, service_name: str, service_version: Optional[str] = None) -> None:
        self.registry = CollectorRegistry()
        ProcessCollector(registry=self.registry)
        PlatformCollector(registry=self.registry)

        labels = ["method", "path", "status"]
        self.requests = Counter(
            "http_requests_total", "HTTP requests served", labels, registry=self.registry
        )
        self.latency = Histogram(
            "http_request_duration_seconds",
            "HTTP request latency",
            labels,
            buckets=LATENCY_BUCKETS,
            registry=self.registry,
        )
        self.inprogress = Gauge(
            "http_inprogress_requests", "HTTP requests in flight", ["method"], registry=self.registry
        )
        self.operations = Counter(
            "counter_operations_total",
            "Counter operations by kind and outcome",
            ["op", "outcome"],
            registry=self.registry,
        )

        info = {"name": service_name}
        if service_version:
            info["version"] = service_version
        Info("service", "Service metadata", registry=self.registry).info(info)

    def record_operation(self, op: str, outcome: str) -> None:
        self.operations.labels(op, outcome).inc()

    def render_latest(self) -> bytes:
        return generate_latest(self.registry)


def path_label(scope: Scope) -> str:
    """Label for the route that served ``scope``; call after the app has run."""
    route = scope.get("route")
    template = getattr(route, "path", None)
    if not template:
        return "other"
    if "{" in template:
        path = scope.get("path", "")
        return path if path in COUNTER_PATHS else "other"
    return template


class PrometheusMiddleware:
    def __init__(self, app: ASGIApp, metrics: Metrics):
        self.app = app
        self.metrics = metrics

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        method = scope.get("method", "GET")
        status = 500
        gauge = self.metrics.inprogress.labels(method)

        async def capture_status(message: Message) -> None:
            nonlocal status
            if message["type"] == "http.response.start":
                status = int(message["status"])
            await send(message)

        gauge.inc()
        started = time.perf_counter()
        try:
            await self.app(scope, receive, capture_status)
        finally:
            elapsed = time.perf_counter() - started
            gauge.dec()
            # the router records the matched route in scope as it dispatches
            labels = (method, path_label(scope), str(status))
            self.metrics.requests.labels(*labels).inc()
            self.metrics.latency.labels(*labels).observe(elapsed)


def create_metrics_router(metrics: Metrics, path: str = "/metrics") -> APIRouter:
    router = APIRouter()

    @router.get(path, include_in_schema=False)
    async def export() -> Response:
        return Response(content=metrics.render_latest(), media_type=CONTENT_TYPE_LATEST)

    return router


def setup_metrics(
    app: FastAPI,
    *,
    service_name: str = "durable-counter",
    service_version: Optional[str] = None,
    path: str = "/metrics",
) -> Metrics:
    """
    Install the middleware and exporter on ``app`` and set ``app.state.metrics``.

    Call before including the counter router: the exporter route has to be
    registered ahead of the catch-all.
    """
    metrics = Metrics(service_name, service_version)
    app.add_middleware(PrometheusMiddleware, metrics=metrics)
    app.include_router(create_metrics_router(metrics, path))
    app.state.metrics = metrics
    return metrics


__all__ = [
    "COUNTER_PATHS",
    "Metrics",
    "PrometheusMiddleware",
    "create_metrics_router",
    "path_label",
    "setup_metrics",
]
