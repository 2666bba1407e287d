import sys
from pathlib import Path
from typing import Optional

from loguru import logger


CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)


def setup_logging(level: str = "INFO", log_dir: Optional[Path] = None):
    """
    Replaces every loguru sink. Without a log_dir only stderr is used, which is
    what happens at import time, before a configuration file has been read.
    """
    logger.remove()
    logger.add(sys.stderr, level=level, format=CONSOLE_FORMAT)

    if log_dir is not None:
        log_dir = Path(log_dir)
        # rejected deliveries, schema drift, broken targets
        logger.add(
            log_dir / "errors.log",
            rotation="10 MB",
            retention="1 week",
            level="ERROR",
            compression="zip",
        )
        logger.add(
            log_dir / "propwatch.log",
            rotation="1 day",
            retention="1 month",
            level=level,
        )

    return logger


def configure_logging(settings):
    """Applies `log_level` and `log_dir` from loaded settings."""
    setup_logging(settings.log_level, settings.log_dir)
    log.debug(f"Logging at {settings.log_level} into {settings.log_dir}")
    return log


log = setup_logging()
