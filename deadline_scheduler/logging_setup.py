import sys
from pathlib import Path

from loguru import logger


def setup_logging(level: str | None = None) -> None:
    from deadline_scheduler.config import settings

    level = (level or settings.log_level).upper()
    log_path = Path(settings.log_path)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    logger.remove()
    logger.add(sys.stdout, level=level)
    logger.add(log_path, rotation="10 MB", retention="14 days", level=level, encoding="utf-8")
    logger.info("logging ready level={} file={}", level, log_path)
