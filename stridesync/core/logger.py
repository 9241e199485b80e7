"""Loguru setup shared by the API server and the CLI.

Sink options come from Settings (LOG_LEVEL, LOG_FILE, LOG_ROTATION,
LOG_RETENTION, LOG_SERIALIZE). Sync code binds ``athlete_id`` onto its log
records; every other record shows "-" in that column.
"""

import sys
from pathlib import Path

from loguru import logger

from stridesync.config.settings import Settings, settings as default_settings

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<magenta>{extra[athlete_id]}</magenta> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {extra[athlete_id]} | {name}:{function}:{line} - {message}"


def setup_logger(
    level: str | None = None,
    log_file: str | None = None,
    config: Settings | None = None,
) -> None:
    """Replace loguru's default sink with the StrideSync sinks.

    Args:
        level: Overrides the configured level (the CLI passes DEBUG for --debug)
        log_file: Overrides the configured log file
        config: Settings to read from, defaults to the module-level settings
    """
    config = config or default_settings
    level = level or config.log_level
    log_file = log_file or config.log_file

    logger.remove()
    logger.configure(extra={"athlete_id": "-"})

    logger.add(sys.stderr, format=CONSOLE_FORMAT, level=level, colorize=True)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_path,
            format=FILE_FORMAT,
            level=level,
            rotation=config.log_rotation,
            retention=config.log_retention,
            serialize=config.log_serialize,
            backtrace=True,
            diagnose=False,
        )

    logger.debug(f"Logging to stderr{f' and {log_file}' if log_file else ''} at level {level}")
