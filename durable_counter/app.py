from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI

from .config import Config, load_config
from .logging import get_logger, setup_logging
from .metrics import setup_metrics
from .middleware.errors import install_error_handlers
from .middleware.logging import install_access_log_middleware
from .middleware.request_id import install_request_id_middleware
from .routers import counter_router, health_router
from .services.counter import CounterRegistry
from .storage import StoreBackend, build_store
from .version import __version__

log = get_logger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    App lifespan: make sure the store schema exists, then close the store on shutdown.
    """
    store: StoreBackend = app.state.store
    store.migrate()
    log.info("service_started", version=__version__, store=type(store).__name__)
    try:
        yield
    finally:
        await store.close()
        log.info("service_stopped")


def create_app(config: Optional[Config] = None, *, store: Optional[StoreBackend] = None) -> FastAPI:
    """
    FastAPI factory. Builds the store and counter registry, then mounts
    middleware, health, metrics and the counter dispatcher (last, it is a
    catch-all).

    ``store`` overrides the backend chosen by configuration (tests inject
    failing or instrumented stores this way).
    """
    cfg = config or load_config()
    setup_logging(level=cfg.log_level, log_format=cfg.log_format)

    app = FastAPI(
        title="durable-counter",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=_lifespan,
    )
    app.state.config = cfg
    app.state.store = store if store is not None else build_store(cfg)
    app.state.counters = CounterRegistry(app.state.store)
    app.state.metrics = None

    # request ids wrap the access log so its events carry them
    install_access_log_middleware(app)
    install_request_id_middleware(app)
    install_error_handlers(app)

    app.include_router(health_router)
    if cfg.metrics_enabled:
        setup_metrics(app, service_version=__version__, path=cfg.metrics_path)
    app.include_router(counter_router)

    return app
