"""
Structured logging configuration.
Uses structlog for structured JSON logging.
"""

import logging
import sys
from typing import Any
import structlog
from leadcaller.config import config


def configure_logging():
    """
    Configure structured logging for the application.

    In production: JSON formatted logs
    In development: Pretty printed colored logs
    """

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
    )

    # Reduce noise from HTTP client and driver libraries.
    for noisy_logger in [
        "httpx",
        "httpcore",
        "urllib3",
        "sqlalchemy.engine",
    ]:
        logging.getLogger(noisy_logger).setLevel(logging.WARNING)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if config.DEBUG:
        processors.append(structlog.dev.ConsoleRenderer())
    else:
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = None) -> Any:
    """
    Get a structured logger instance.

    Usage:
        logger = get_logger(__name__)
        logger.info("call_started", call_id="abc", lead_id="123")
        logger.warning("webhook_call_not_found", provider_call_id="xyz")
    """
    return structlog.get_logger(name)


# Configure on module import
configure_logging()

# Create default logger
logger = get_logger("leadcaller")
