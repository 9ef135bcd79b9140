from __future__ import annotations

import logging
import sys
from typing import Any, Dict, Optional

from loguru import logger

_LOG_FORMAT = "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"


class InterceptHandler(logging.Handler):
    """Route standard logging records (uvicorn, mediapipe, ...) into Loguru."""

    def emit(self, record: logging.LogRecord) -> None:  # pragma: no cover - thin wrapper
        try:
            level_name = logger.level(record.levelname).name
        except ValueError:
            level_name = record.levelno
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1
        logger.opt(depth=depth, exception=record.exc_info).log(level_name, record.getMessage())


def configure_logging(level: str = "INFO", log_file: Optional[str] = None, enqueue: bool = True) -> None:
    """Replace Loguru's default sink and bridge standard logging into it."""
    logger.remove()
    logger.add(sys.stderr, format=_LOG_FORMAT, level=level, enqueue=enqueue, backtrace=True, diagnose=False)
    if log_file:
        logger.add(log_file, format=_LOG_FORMAT, level=level, enqueue=enqueue, rotation="10 MB", retention=5)
    logging.basicConfig(handlers=[InterceptHandler()], level=level, force=True)


def configure_logging_from(settings: Dict[str, Any]) -> None:
    configure_logging(
        level=str(settings.get("level", "INFO")).upper(),
        log_file=settings.get("file"),
        enqueue=bool(settings.get("enqueue", True)),
    )
