"""
Configuracion de logging (loguru) para el job.
"""
import sys
from typing import Optional

from loguru import logger


LOG_FORMAT = "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>"


def configure_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """
    Reemplaza el sink por defecto de loguru.

    Args:
        level: nivel minimo para stderr y archivo
        log_file: si se indica, agrega un sink rotativo a archivo
    """
    logger.remove()
    logger.add(sys.stderr, level=level, format=LOG_FORMAT)

    if log_file:
        logger.add(
            log_file,
            rotation="50 MB",
            retention="10 days",
            level=level,
        )
