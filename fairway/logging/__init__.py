"""Structured logging configuration using structlog."""

import logging
import re
import sys

import structlog

# Stripe API secrets and payment keys must never reach the logs
_SECRET_PATTERN = re.compile(r"\b((?:sk|rk)_(?:live|test)_[A-Za-z0-9]{8,})")
_PAYMENT_KEY_PATTERN = re.compile(r"\b(pi_[A-Za-z0-9]{8,})")


def redact(value: str) -> str:
    """Mask secret keys and payment intent identifiers in a string."""
    value = _SECRET_PATTERN.sub("<SECRET_REDACTED>", value)
    return _PAYMENT_KEY_PATTERN.sub("<PAYMENT_KEY_REDACTED>", value)


class SecretRedactingFilter(logging.Filter):
    """Filter that redacts payment secrets from stdlib log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.msg and isinstance(record.msg, str):
            record.msg = redact(record.msg)
        if record.args and isinstance(record.args, tuple):
            record.args = tuple(
                redact(arg) if isinstance(arg, str) else arg for arg in record.args
            )
        return True


def _redact_secrets(
    logger: logging.Logger, method_name: str, event_dict: dict
) -> dict:
    """Structlog processor to redact secrets from event dictionaries."""
    for key, value in list(event_dict.items()):
        if isinstance(value, str):
            event_dict[key] = redact(value)
    return event_dict


def setup_logging(log_level: str = "INFO") -> None:
    """Configure structured logging for the application."""
    level = getattr(logging, log_level.upper())
    secret_filter = SecretRedactingFilter()

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    root_logger.handlers.clear()
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(message)s"))
    handler.addFilter(secret_filter)
    root_logger.addHandler(handler)

    # stripe and redis log request details at DEBUG
    for logger_name in ("stripe", "redis"):
        logging.getLogger(logger_name).addFilter(secret_filter)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            _redact_secrets,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
