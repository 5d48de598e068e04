"""
loguru sink configuration.

Library modules only call 'logger'; sinks are installed once by the
composition root. The file sink is the durable application log and keeps
debug detail even when stderr is quieter.
"""

import sys

from loguru import logger

from language_tutor.config import Settings

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}"


def configure_logging(settings: Settings) -> None:
    logger.remove()
    logger.add(sys.stderr, level=settings.log_level.upper(), format=LOG_FORMAT)
    settings.log_dir.mkdir(parents=True, exist_ok=True)
    logger.add(
        settings.log_dir / "language_tutor.log",
        level="DEBUG",
        format=LOG_FORMAT,
        rotation="5 MB",
        retention=5,
        enqueue=True,
    )
