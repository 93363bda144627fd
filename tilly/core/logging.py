import logging
import sys
from collections.abc import Callable
from typing import Any

from loguru import logger

from tilly.config import get_settings

DEBUG_PREFIX = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
)
PROD_PREFIX = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} | "


class InterceptHandler(logging.Handler):
    """Intercept stdlib logging and redirect to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        # Get corresponding Loguru level if it exists
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find caller from where originated the logged message
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back  # type: ignore[assignment]
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def _health_log_filter(record: dict[str, Any]) -> bool:
    """Filter health check logs - only show at DEBUG level."""
    message = record.get("message", "")
    if "/health" in message:
        return bool(record["level"].no <= 10)  # DEBUG level
    return True


def _event_format(prefix: str) -> Callable[[dict[str, Any]], str]:
    """Build a format function that appends bound fields as key=value pairs."""

    def _format(record: dict[str, Any]) -> str:
        fields = {k: v for k, v in record["extra"].items() if k not in ("name", "_fields")}
        if not fields:
            return prefix + "{message}\n{exception}"
        record["extra"]["_fields"] = " ".join(f"{k}={v}" for k, v in fields.items())
        return prefix + "{message} | {extra[_fields]}\n{exception}"

    return _format


def setup_logging() -> None:
    """Configure loguru for the application."""
    settings = get_settings()

    # Remove default handler
    logger.remove()

    # Colors in debug, plain lines in production
    if settings.debug:
        logger.add(
            sys.stderr,
            level="DEBUG",
            format=_event_format(DEBUG_PREFIX),
            backtrace=True,
            diagnose=True,
        )
    else:
        logger.add(
            sys.stderr,
            level="INFO",
            format=_event_format(PROD_PREFIX),
            filter=_health_log_filter,
            backtrace=True,
            diagnose=False,
        )

    # Intercept stdlib logging (uvicorn, sqlalchemy, httpx, pywebpush)
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in [
        "uvicorn",
        "uvicorn.error",
        "uvicorn.access",
        "sqlalchemy.engine",
        "httpx",
        "pywebpush",
    ]:
        logging.getLogger(name).handlers = [InterceptHandler()]


def get_logger(name: str) -> Any:
    """Get a logger bound to a name (for compatibility with existing code)."""
    return logger.bind(name=name)
