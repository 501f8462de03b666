import sys

from loguru import logger

from fusionbridge.core.config import settings


def setup_logging(level: str | None = None):
    """
    Configure the loguru logger for the event core.

    Logs go to stdout; the level comes from settings.LOG_LEVEL unless
    overridden.
    """
    logger.remove()

    log_level = (level or settings.LOG_LEVEL).upper()
    log_format = (
        "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
        "<level>{message}</level>"
    )

    logger.add(
        sys.stdout,
        colorize=True,
        format=log_format,
        level=log_level,
        enqueue=True,
        backtrace=False,
        diagnose=False,
    )

    logger.info(f"Logging initialized for {settings.SERVICE_NAME} (level={log_level})")
    return logger
