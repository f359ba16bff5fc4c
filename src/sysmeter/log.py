"""Logging setup for sysmeter.

The terminal belongs to the Textual UI, so console records go to Textual's
devtools console (``textual console``) and, optionally, to a rotating file.
"""

import logging
import logging.handlers

from textual.logging import TextualHandler

DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOGGER_NAME = "sysmeter"


def _get_log_level(level_name: str, default_level: int = logging.INFO) -> int:
    """Convert a level name such as 'DEBUG' to its logging constant."""
    level = logging.getLevelName(str(level_name).upper())
    if isinstance(level, int):
        return level
    logging.getLogger(LOGGER_NAME).warning(
        f"Invalid log level name '{level_name}'. Using {logging.getLevelName(default_level)}."
    )
    return default_level


def setup_logging(
    level_name: str = "INFO",
    log_file: str | None = None,
    max_bytes: int = 5 * 1024 * 1024,
    backup_count: int = 3,
) -> logging.Logger:
    """
    Configure the ``sysmeter`` logger.

    Calling it again replaces the handlers installed by the previous call.

    Args:
        level_name: Minimum level to record.
        log_file: Path of a log file; file logging is disabled when None.
        max_bytes: Size at which the log file is rotated.
        backup_count: Number of rotated files to keep.

    Returns:
        The configured logger.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(_get_log_level(level_name))
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(DEFAULT_LOG_FORMAT)

    console_handler = TextualHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.handlers.RotatingFileHandler(
            log_file, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger
