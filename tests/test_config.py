from __future__ import annotations

import sys
from pathlib import Path

from loguru import logger

from deadline_scheduler.config import Settings, settings
from deadline_scheduler.db.session import build_database_url
from deadline_scheduler.logging_setup import setup_logging


def test_settings_read_environment(monkeypatch) -> None:
    monkeypatch.setenv("TIMEZONE", "UTC")
    monkeypatch.setenv("DAILY_RUN_HOUR", "9")
    monkeypatch.setenv("SCHEDULER_ENABLED", "false")
    cfg = Settings(_env_file=None)
    assert cfg.timezone == "UTC"
    assert cfg.daily_run_hour == 9
    assert cfg.scheduler_enabled is False
    assert cfg.card_deadline_window_min == 10


def test_database_url_prefers_explicit_url(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setattr(settings, "database_url", None)
    monkeypatch.setattr(settings, "sqlite_path", str(tmp_path / "app.db"))
    assert build_database_url() == f"sqlite+pysqlite:///{(tmp_path / 'app.db').resolve().as_posix()}"

    monkeypatch.setattr(settings, "database_url", "postgresql+psycopg://u:p@db/app")
    assert build_database_url() == "postgresql+psycopg://u:p@db/app"


def test_setup_logging_writes_file(monkeypatch, tmp_path: Path) -> None:
    log_path = tmp_path / "logs" / "app.log"
    monkeypatch.setattr(settings, "log_path", str(log_path))
    setup_logging()
    try:
        logger.info("scheduler boot tz={}", "Asia/Ho_Chi_Minh")
    finally:
        logger.remove()
        logger.add(sys.stderr)
    assert "scheduler boot tz=Asia/Ho_Chi_Minh" in log_path.read_text(encoding="utf-8")
