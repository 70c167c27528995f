"""
Admin CLI for durable-counter.

Utilities:
  - migrate  : create / upgrade the store schema
  - get      : print a counter's value
  - incr     : add to a counter
  - decr     : subtract from a counter

The commands go through the same CounterRegistry as the HTTP service, so they
obey the same read -> apply -> write contract. Do not point them at a database
that a running server is writing: locks are per process.

Usage:
  durable-counter [--db PATH] <command> [options]
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Optional

import typer

from .config import Config, load_config
from .errors import StorageFault
from .logging import get_logger, setup_logging
from .models.counter import DEFAULT_AMOUNT, format_count
from .services.counter import CounterInstance, CounterRegistry
from .storage import build_store

app = typer.Typer(add_completion=False, help="durable-counter : admin CLI")
log = get_logger(__name__)


@dataclass
class AppCtx:
    cfg: Config


_ctx: Optional[AppCtx] = None


def _ctx_or_init() -> AppCtx:
    global _ctx
    if _ctx is None:
        _ctx = AppCtx(cfg=load_config())
    return _ctx


@app.callback()
def main(
    db: Optional[Path] = typer.Option(None, "--db", help="SQLite database path (overrides COUNTER_DB_PATH)"),
):
    """
    Shared options for all subcommands.
    """
    global _ctx
    cfg = load_config().model_copy(deep=True)
    if db is not None:
        cfg.storage.backend = "sqlite"
        cfg.storage.db_path = db
    _ctx = AppCtx(cfg=cfg)
    setup_logging(level=cfg.log_level, log_format="console")


def _run(op: Callable[[CounterInstance], Awaitable[int]], name: str) -> None:
    ctx = _ctx_or_init()

    async def _go() -> int:
        store = build_store(ctx.cfg)
        try:
            return await op(CounterRegistry(store).get(name))
        finally:
            await store.close()

    try:
        value = asyncio.run(_go())
    except StorageFault as e:
        typer.echo(f"error: {e.message} ({dict(e.details or {})})", err=True)
        raise typer.Exit(code=1)
    typer.echo(format_count(name, value))


@app.command("migrate")
def migrate():
    """
    Create or upgrade the store schema.
    """
    ctx = _ctx_or_init()
    store = build_store(ctx.cfg)
    store.migrate()
    asyncio.run(store.close())
    log.info("migrations_applied", store=repr(store))
    typer.echo("Migrations applied.")


@app.command("get")
def get(name: str = typer.Argument(..., help="Counter name")):
    """
    Print the current value of a counter (0 if never written).
    """
    _run(lambda c: c.get(), name)


@app.command("incr")
def incr(
    name: str = typer.Argument(..., help="Counter name"),
    amount: int = typer.Option(DEFAULT_AMOUNT, "--amount", "-a", help="Delta to add (may be negative)"),
):
    """
    Add AMOUNT to a counter and print the new value.
    """
    _run(lambda c: c.increment(amount), name)


@app.command("decr")
def decr(
    name: str = typer.Argument(..., help="Counter name"),
    amount: int = typer.Option(DEFAULT_AMOUNT, "--amount", "-a", help="Delta to subtract (may be negative)"),
):
    """
    Subtract AMOUNT from a counter and print the new value.
    """
    _run(lambda c: c.decrement(amount), name)


if __name__ == "__main__":
    app()
