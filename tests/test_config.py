from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from durable_counter.config import Config, load_config


def test_defaults(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)  # no stray .env
    for var in ("STORE_BACKEND", "COUNTER_DB_PATH", "LOG_LEVEL", "LOG_FORMAT", "PORT"):
        monkeypatch.delenv(var, raising=False)

    cfg = Config()
    assert cfg.storage.backend == "sqlite"
    assert cfg.storage.db_path == Path("./.durable-counter/counters.db")
    assert cfg.port == 8787
    assert cfg.log_level == "INFO"
    assert cfg.log_format == "json"
    assert cfg.metrics_enabled is True


def test_env_overrides(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("STORE_BACKEND", "Memory")
    monkeypatch.setenv("COUNTER_DB_PATH", str(tmp_path / "x.db"))
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("LOG_FORMAT", "CONSOLE")
    monkeypatch.setenv("PORT", "9000")

    cfg = load_config()
    assert cfg.storage.backend == "memory"
    assert cfg.DB_PATH == tmp_path / "x.db"
    assert cfg.log_level == "DEBUG"
    assert cfg.log_format == "console"
    assert cfg.port == 9000
    assert load_config() is cfg


def test_dotenv_file(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("COUNTER_DB_PATH", raising=False)
    (tmp_path / ".env").write_text("COUNTER_DB_PATH=from-dotenv.db\n", encoding="utf-8")
    assert Config().storage.db_path == Path("from-dotenv.db")


def test_unknown_backend_rejected(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("STORE_BACKEND", "redis")
    with pytest.raises(ValidationError):
        Config()


def test_unknown_log_format_falls_back_to_json():
    assert Config(log_format="xml").log_format == "json"
