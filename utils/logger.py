"""
Logging Setup
Loguru sinks and structured action logging
"""

import os
import sys
from typing import Dict
from loguru import logger


CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function} - {message} | {extra}"


def setup_logging(config: Dict):
    """
    Configure loguru sinks

    Args:
        config: Bot configuration (uses the 'logging' section)
    """
    settings = config.get('logging', {})

    logger.remove()
    logger.add(
        sys.stderr,
        format=CONSOLE_FORMAT,
        level=settings.get('level', 'INFO')
    )

    log_file = settings.get('file')
    if log_file:
        os.makedirs(os.path.dirname(log_file) or '.', exist_ok=True)
        logger.add(
            log_file,
            rotation=settings.get('rotation', '1 day'),
            retention=settings.get('retention', '7 days'),
            format=FILE_FORMAT,
            level=settings.get('file_level', 'DEBUG')
        )

    errors_file = settings.get('error_file')
    if errors_file:
        logger.add(errors_file, rotation=settings.get('rotation', '1 day'), format=FILE_FORMAT, level='ERROR')


def log_action(action: str, **data):
    """Audit log entry: action name plus context fields"""
    logger.bind(action=action, **data).info(f"[{action}] " + ", ".join(f"{k}={v}" for k, v in data.items()))
