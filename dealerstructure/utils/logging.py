"""
Logging configuration for DealerStructure.

The package is silent when imported as a library (``logger.disable`` in
``dealerstructure/__init__.py``); an application opts in through
setup_logging(), or with ``logger.enable("dealerstructure")`` on its own sinks.
"""

import sys
from pathlib import Path
from loguru import logger

from dealerstructure.config import Settings

PACKAGE = "dealerstructure"


def setup_logging(settings: Settings, console: bool = True) -> None:
    """
    Configure logging for the application.

    Args:
        settings: Application settings with log configuration. An empty
            ``log_file`` skips the rotating file sink.
        console: Install the colorized stderr sink
    """
    logger.remove()
    logger.enable(PACKAGE)

    if console:
        logger.add(
            sys.stderr,
            format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
                   "<level>{level: <8}</level> | "
                   "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
                   "<level>{message}</level>",
            level=settings.log_level,
            colorize=True
        )

    if settings.log_file:
        Path(settings.log_file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            settings.log_file,
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} | {message}",
            level=settings.log_level,
            rotation="10 MB",
            retention="7 days",
            compression="gz"
        )

    logger.info(f"Logging configured: level={settings.log_level}, file={settings.log_file or 'none'}")
