"""
Structured logging configuration.
Uses structlog for structured JSON logging.

Lead phone numbers are personal data: outside DEBUG they are masked in every
log event, keeping only the last 4 digits so a conversation can still be traced.
"""

import logging
import sys
from typing import Any
import structlog
from kitbot.config import config

# Event keys that carry a tenant's WhatsApp number
PHONE_FIELDS = ("phone", "sender_id", "conversation_id", "user_phone")


def mask_phone_numbers(logger, method_name: str, event_dict: dict) -> dict:
    """structlog processor: 5548999990000 -> ***0000."""
    for key in PHONE_FIELDS:
        value = event_dict.get(key)
        if isinstance(value, str) and len(value) > 4:
            event_dict[key] = "***" + value[-4:]
    return event_dict


def configure_logging():
    """
    Configure structured logging for the application.

    In production: JSON formatted logs, phone numbers masked
    In development: Pretty printed colored logs, phone numbers in full
    """

    # Configure standard library logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, config.LOG_LEVEL),
    )

    # Reduce noise from HTTP client libraries (they log every request at INFO).
    for noisy_logger in [
        "httpx",
        "httpcore",
        "openai",
        "googleapiclient.discovery",
        "google.auth",
        "urllib3",
        "celery.beat",
    ]:
        logging.getLogger(noisy_logger).setLevel(logging.WARNING)

    # Common processors for all environments
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
        # Development: Pretty colored output
        processors.append(structlog.dev.ConsoleRenderer())
    else:
        # Production: masked phones, JSON output for log aggregation
        processors.append(mask_phone_numbers)
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


# Get logger instance
def get_logger(name: str = None) -> Any:
    """
    Get a structured logger instance.

    Usage:
        logger = get_logger(__name__)
        logger.info("lead_upserted", phone="5548999990000")
        logger.error("calendar_event_failed", error="invalid_grant")
    """
    return structlog.get_logger(name)


# Configure on module import
configure_logging()

# Create default logger
logger = get_logger("kitbot")
