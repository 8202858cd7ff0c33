import sys
import os
from typing import Optional

from loguru import logger

from .config import GeneralSettings

CONSOLE_FORMAT = ("<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
                  "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>")


def setup_logging(settings: Optional[GeneralSettings] = None):
    """
    Configure loguru sinks from the general config section.

    The console sink logs at log_level (DEBUG in debug mode). The optional
    file sink in log_dir always keeps DEBUG and rotates per the settings.
    """
    settings = settings or GeneralSettings()
    logger.remove()

    level = "DEBUG" if settings.debug_mode else settings.log_level.upper()
    logger.add(sys.stderr, level=level, format=CONSOLE_FORMAT)

    if settings.log_to_file:
        os.makedirs(settings.log_dir, exist_ok=True)
        logger.add(os.path.join(settings.log_dir, "toolbox_{time}.log"),
                   rotation=settings.log_rotation, retention=settings.log_retention, level="DEBUG")

    logger.info(f"Logging initialized (console level {level})")
