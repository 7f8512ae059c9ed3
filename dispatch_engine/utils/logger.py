"""
Logging utility with loguru.
Provides a console sink and an optional rotating file sink.
"""

import sys
from pathlib import Path
from typing import Optional

from loguru import logger


def setup_logger(level: str = "INFO", log_dir: Optional[str] = None):
    """
    Configure loguru logger with console and (optionally) file outputs.

    The engine is a library, so nothing is configured on import; host
    applications and backfill jobs call this once at startup.

    Args:
        level: Console log level
        log_dir: Directory for the rotating ``dispatch.log`` file (skipped when empty)
    """
    # Remove default handler
    logger.remove()

    logger.add(
        sys.stdout,
        colorize=True,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        level=level,
    )

    if log_dir:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)

        logger.add(
            log_path / "dispatch.log",
            rotation="10 MB",
            retention="1 week",
            compression="zip",
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
            level="DEBUG",
        )

    logger.info("Logger initialized")
    return logger


def setup_logger_from_settings():
    """Configure logging from the global engine settings."""
    from dispatch_engine.config.settings import settings

    return setup_logger(level=settings.log_level, log_dir=settings.log_dir or None)
