from pathlib import Path

import uvicorn
from dotenv import find_dotenv, load_dotenv
from loguru import logger

from deadline_scheduler.logging_setup import setup_logging


def _load_env() -> None:
    env_path = find_dotenv(usecwd=True)
    if not env_path:
        candidate = Path(__file__).resolve().parents[1] / ".env"
        if candidate.exists():
            env_path = str(candidate)
    if env_path:
        logger.info("Loaded .env from {}", env_path)
        load_dotenv(env_path, override=True)
    else:
        logger.warning("No .env found")


def _ensure_sqlite_dir() -> None:
    from deadline_scheduler.config import settings

    if settings.database_url:
        return
    Path(settings.sqlite_path).parent.mkdir(parents=True, exist_ok=True)


def _run_migrations() -> None:
    from alembic import command
    from alembic.config import Config

    config_path = Path(__file__).resolve().parents[1] / "alembic.ini"
    alembic_cfg = Config(str(config_path))
    command.upgrade(alembic_cfg, "head")


def main() -> None:
    _load_env()
    setup_logging()

    from deadline_scheduler.config import settings

    _ensure_sqlite_dir()
    _run_migrations()
    uvicorn.run("deadline_scheduler.api.app:app", host=settings.host, port=settings.port, reload=False)


if __name__ == "__main__":
    main()
