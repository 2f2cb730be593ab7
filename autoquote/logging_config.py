"""
logging_config.py — Loguru setup for AutoQuote

Loguru is the only logging backend. Routers log through `loguru.logger`;
services, the WhatsApp connector and the Claude client use
logging.getLogger("autoquote.<area>"), which the intercept handler below
forwards to Loguru with the caller's file and line.

Business Rules:
- Production (https app_url, not localhost): JSON lines on stdout, plus a
  rotated JSON file when settings.log_file is set (50 MB, 7 days, gz)
- Development: coloured console lines with the request id column
- Every record carries extra["request_id"]; "-" outside a request, the
  X-Request-ID value inside one (bound by main.request_id_middleware)
- Level from settings.log_level
- Chatty libraries are capped: HTTP and SQL logs at WARNING, passlib's
  bcrypt version probe and pypdf's recoverable parse warnings at ERROR

Called by: main.py lifespan (once at startup)
Depends on: config.py (log_level, log_file, app_url)
"""

import logging
import sys

from loguru import logger

from .config import settings

QUIET_WARNING = ("httpx", "httpcore", "uvicorn.access", "sqlalchemy.engine", "weasyprint", "fontTools")
QUIET_ERROR = ("passlib", "pypdf")


def setup_logging() -> None:
    """Configure Loguru and intercept stdlib logging.

    Call once at app startup.
    """
    logger.remove()

    log_level = settings.log_level.upper()
    is_production = settings.is_production

    if is_production:
        # Production: JSON lines to stdout
        logger.add(
            sys.stdout,
            level=log_level,
            format="{message}",
            serialize=True,
        )
        if settings.log_file:
            logger.add(
                settings.log_file,
                level=log_level,
                rotation="50 MB",
                retention="7 days",
                compression="gz",
                serialize=True,
            )
    else:
        logger.add(
            sys.stdout,
            level=log_level,
            format=(
                "<green>{time:HH:mm:ss}</green> | "
                "<level>{level: <8}</level> | "
                "<magenta>{extra[request_id]}</magenta> | "
                "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
                "{message}"
            ),
            colorize=True,
        )

    logger.configure(extra={"request_id": "-"})

    # Intercept stdlib logging → route through Loguru
    logging.basicConfig(handlers=[_InterceptHandler()], level=0, force=True)

    for name in QUIET_WARNING:
        logging.getLogger(name).setLevel(logging.WARNING)
    for name in QUIET_ERROR:
        logging.getLogger(name).setLevel(logging.ERROR)

    logger.info("Logging configured", level=log_level, production=is_production)


class _InterceptHandler(logging.Handler):
    """Route stdlib logging records to Loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Skip frames from stdlib logging internals
        frame, depth = logging.currentframe(), 0
        while frame and (depth == 0 or frame.f_code.co_filename == logging.__file__):
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )
