from __future__ import annotations

"""
Configuration loader for durable-counter.

- Reads environment variables (optionally from `.env`) via pydantic-settings.
- Provides a typed storage sub-config and a cached `load_config()` accessor.

Environment variables:
    LOG_LEVEL                     (str, default "INFO")        : Logging level
    LOG_FORMAT                    (str, default "json")        : "json" or "console"
    HOST                          (str, default "0.0.0.0")     : Bind address for the launcher
    PORT                          (int, default 8787)          : Bind port for the launcher
    METRICS_ENABLED               (bool, default True)         : Mount the Prometheus exporter
    METRICS_PATH                  (str, default "/metrics")    : Exporter path

Storage:
    STORE_BACKEND                 (str, default "sqlite")      : "sqlite" or "memory"
    COUNTER_DB_PATH               (str, default "./.durable-counter/counters.db")

Notes
-----
- The memory backend loses every counter on restart; use it for tests and demos only.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

STORE_BACKENDS = ("sqlite", "memory")

# ----------------------------- Helpers & Models ------------------------------ #


def _normalize_backend(v: Optional[str]) -> str:
    name = str(v or "sqlite").strip().lower()
    if name not in STORE_BACKENDS:
        raise ValueError(f"STORE_BACKEND must be one of {', '.join(STORE_BACKENDS)}")
    return name


class StorageConfig(BaseModel):
    backend: str = Field("sqlite", description="Durable store backend (sqlite|memory).")
    db_path: Path = Field(
        default_factory=lambda: Path("./.durable-counter/counters.db"),
        description="SQLite database file holding every counter.",
    )

    @field_validator("backend", mode="before")
    @classmethod
    def _check_backend(cls, v):
        return _normalize_backend(v)

    @field_validator("db_path", mode="before")
    @classmethod
    def _coerce_path(cls, v):
        return Path(v).expanduser() if v else Path("./.durable-counter/counters.db")


# --------------------------------- Settings ---------------------------------- #


class Settings(BaseSettings):
    log_level: str = Field("INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR)")
    log_format: str = Field("json", description="Log renderer: json or console")

    host: str = Field("0.0.0.0", description="Launcher bind address")
    port: int = Field(8787, ge=1, le=65535, description="Launcher bind port")

    metrics_enabled: bool = True
    metrics_path: str = "/metrics"

    storage: StorageConfig = Field(default_factory=StorageConfig)

    model_config = SettingsConfigDict(
        env_prefix="", env_file=".env", case_sensitive=False, extra="ignore"
    )

    # --- Env bridges (.env keys -> nested storage model) ---------------------
    STORE_BACKEND: Optional[str] = Field(default=None, alias="STORE_BACKEND")
    COUNTER_DB_PATH: Optional[str] = Field(default=None, alias="COUNTER_DB_PATH")

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_level(cls, v):
        return str(v or "INFO").upper()

    @field_validator("log_format", mode="before")
    @classmethod
    def _lower_format(cls, v):
        fmt = str(v or "json").lower()
        return fmt if fmt in ("json", "console") else "json"

    @model_validator(mode="after")
    def _apply_storage_env(self):
        if self.STORE_BACKEND:
            self.storage.backend = _normalize_backend(self.STORE_BACKEND)
        if self.COUNTER_DB_PATH:
            self.storage.db_path = Path(self.COUNTER_DB_PATH).expanduser()
        return self


class Config(Settings):
    """Settings plus a few accessors used by the health and CLI surfaces."""

    @property
    def ENV(self) -> Optional[str]:
        # Optional deployment marker echoed by /version
        return os.getenv("DURABLE_COUNTER_ENV")

    @property
    def DB_PATH(self) -> Path:
        return self.storage.db_path


@lru_cache(maxsize=1)
def load_config() -> Config:
    """Return the cached process configuration."""
    return Config()  # type: ignore[call-arg]


__all__ = [
    "STORE_BACKENDS",
    "StorageConfig",
    "Settings",
    "Config",
    "load_config",
]
