import sys
from pathlib import Path
from contextvars import ContextVar
from typing import Optional
from loguru import logger
from fastapi import Request
from cosmos_repository.config import settings

# Store current request in contextvars for async context
_current_request: ContextVar[Optional[Request]] = ContextVar("current_request", default=None)

# Default extra so bound loggers render before setup_logging() runs
logger.configure(extra={"trace_id": "system"})


class LogConfig:
    """Global logging configuration using Loguru."""
    @classmethod
    def setup_logging(cls, level: str = "INFO"):
        log_dir = Path(settings.LOG_DIR)
        log_dir.mkdir(parents=True, exist_ok=True)

        logger.remove()

        logger.add(
            sys.stdout,
            enqueue=True,
            backtrace=True,
            diagnose=settings.DEBUG,
            format=(
                "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
                "<level>{level: <8}</level> | "
                "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
                "<magenta>Trace:{extra[trace_id]}</magenta> - <level>{message}</level>"
            ),
            level=level,
        )

        logger.add(
            log_dir / "app_{time:YYYY-MM-DD}.log",
            rotation="00:00",
            retention="30 days",
            compression="zip",
            enqueue=True,
            format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} | Trace:{extra[trace_id]} - {message}",
            level="DEBUG",
        )

        logger.add(
            log_dir / "error_{time:YYYY-MM-DD}.log",
            level="ERROR",
            rotation="100 MB",
            enqueue=True,
        )

        logger.configure(extra={"trace_id": "system"})


def get_logger(name: str = None, request: Optional[Request] = None):
    """Get logger instance; optionally pass request for trace_id, else from context."""
    current_request = request or _current_request.get()

    bound = logger.bind(name=name) if name else logger
    if current_request is None:
        # trace_id comes from logger.contextualize() or the configured default
        return bound
    return bound.bind(trace_id=getattr(current_request.state, "trace_id", "unknown"))
