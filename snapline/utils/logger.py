"""
Loguru setup for Snapline.

Standard library loggers (uvicorn, SQLAlchemy, aio-pika, httpx) are routed
into loguru so everything ends up in the same sinks. Deploy code binds the
pipeline, stage and instance it works on; bound values are printed after
the source location.
"""

import inspect
import logging
import sys
from typing import TYPE_CHECKING, Any

from loguru import logger as _logger

from ..settings import Settings, settings

if TYPE_CHECKING:
    from loguru import Logger, Record

DEFAULT_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan>"
)

INTERCEPTED_LOGGERS = (
    "uvicorn",
    "uvicorn.error",
    "uvicorn.access",
    "fastapi",
    "sqlalchemy",
    "aio_pika",
    "aiormq",
    "httpx",
)


class InterceptHandler(logging.Handler):
    """Forward standard library records to loguru, keeping the caller's location."""

    def emit(self, record: logging.LogRecord) -> None:
        level: str | int
        try:
            level = _logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = inspect.currentframe(), 0
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        _logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def _formatter(prefix: str):
    def format_record(record: "Record") -> str:
        context = " ".join(
            f"{key}={value}" for key, value in record["extra"].items() if not key.startswith("_")
        )
        record["extra"]["_context"] = f" [{context}]" if context else ""
        return prefix + "{extra[_context]} - <level>{message}</level>\n{exception}"

    return format_record


def setup_logging(config: Settings) -> None:
    """
    Configure sinks from settings.

    Args:
        config: Settings providing level, format, optional file sink and its
            rotation and retention
    """
    format_record = _formatter(config.log_format or DEFAULT_FORMAT)

    _logger.remove()
    _logger.add(sys.stderr, level=config.log_level, format=format_record, colorize=True)

    if config.log_to_file:
        log_dir = config.get_log_dir()
        log_dir.mkdir(parents=True, exist_ok=True)
        _logger.add(
            str(log_dir / "snapline.log"),
            level=config.log_level,
            format=format_record,
            rotation=config.log_rotation,
            retention=config.log_retention,
            compression="zip",
        )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in INTERCEPTED_LOGGERS:
        logging.getLogger(name).handlers = [InterceptHandler()]
        logging.getLogger(name).propagate = False
    # Engine echo is controlled by settings.debug, not by the root level
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def deploy_logger(**context: Any) -> "Logger":
    """Logger bound to a deploy, e.g. ``deploy_logger(pipeline=1, instance=uuid)``."""
    return _logger.bind(**{key: value for key, value in context.items() if value is not None})


setup_logging(settings)

logger = _logger
