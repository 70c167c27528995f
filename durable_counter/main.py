"""
Run the durable-counter HTTP service under uvicorn.

    python -m durable_counter.main [--host H] [--port P] [--reload] [--log-level L]
    durable-counter-serve ...            (same, via the console script)

Flag defaults come from the same configuration as the app (HOST, PORT,
LOG_LEVEL, see :mod:`durable_counter.config`); RELOAD=1 turns autoreload on.

Counter instances serialize their operations with in-process locks, so the
service always runs exactly one worker process.
"""

from __future__ import annotations

import argparse
import os
from typing import List, Optional

import uvicorn

from .config import load_config

APP_FACTORY = "durable_counter.app:create_app"


def build_parser() -> argparse.ArgumentParser:
    cfg = load_config()
    reload_default = os.getenv("RELOAD", "").strip().lower() in ("1", "true", "yes", "on")

    p = argparse.ArgumentParser(prog="durable-counter-serve", description="Run the durable-counter service")
    p.add_argument("--host", default=cfg.host, help="bind address (default: %(default)s)")
    p.add_argument("--port", type=int, default=cfg.port, help="bind port (default: %(default)s)")
    p.add_argument("--log-level", default=cfg.log_level.lower(), help="uvicorn log level (default: %(default)s)")
    p.add_argument("--reload", action="store_true", default=reload_default, help="autoreload on code changes (dev)")
    p.add_argument("--forwarded-allow-ips", default="127.0.0.1", help="trusted proxy addresses (default: %(default)s)")
    return p


def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)

    uvicorn.run(
        APP_FACTORY,
        factory=True,
        host=args.host,
        port=args.port,
        log_level=args.log_level,
        reload=args.reload,
        workers=1,
        proxy_headers=True,
        forwarded_allow_ips=args.forwarded_allow_ips,
    )


if __name__ == "__main__":
    main()
