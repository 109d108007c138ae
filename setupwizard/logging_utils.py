"""
Logging Setup

Configures stdlib logging for the wizard: a rich console handler and an
optional log file.
"""

import logging
from pathlib import Path
from typing import Optional, Union

from rich.console import Console
from rich.logging import RichHandler


def configure_logging(
    level: Union[int, str] = logging.INFO,
    log_file: Optional[Path] = None,
    console: Optional[Console] = None,
) -> logging.Logger:
    """
    Configure the package logger.

    Calling this more than once only adjusts the level; handlers are
    attached a single time.

    Args:
        level: Log level name or number
        log_file: Optional file to also write records to
        console: Rich console used by the console handler

    Returns:
        The configured package logger
    """
    logger = logging.getLogger("setupwizard")
    logger.setLevel(level)

    if getattr(logger, "_setupwizard_configured", False):
        return logger

    console_handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(console_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(
            fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S%z",
        ))
        logger.addHandler(file_handler)

    logger.propagate = False
    setattr(logger, "_setupwizard_configured", True)

    logger.debug("Logging initialized (level=%s, file=%s)", level, log_file)
    return logger
