"""
Structured Logging Setup using structlog

Every module of the engine logs through ``structlog.get_logger(<area>)`` with
keyword context (field names, rule ids, error types). This module wires those
loggers to the standard library logging machinery once, at host start-up.

Rule and service failures are logged here with their exception type and
traceback; the end user only ever sees the generic validation message.

Key Features:
- JSON rendering for log aggregation, console rendering for development
- Log level and format read from the active configuration
- Optional form correlation id bound through contextvars
"""

import logging
import logging.config
import sys
import uuid
from typing import Any, Optional

import structlog

from formguard.config.settings import get_config


class LoggingConfig:
    """Logging settings resolved from the active configuration class."""

    def __init__(self, config: Any = None):
        config = config or get_config()
        self.LOG_LEVEL = config.LOG_LEVEL
        self.LOG_FORMAT = config.LOG_FORMAT
        self.ENVIRONMENT = config.ENVIRONMENT


def setup_structured_logging(config: Any = None) -> structlog.stdlib.BoundLogger:
    """
    Configure structlog and standard library logging.

    Args:
        config: Optional configuration class; defaults to ``get_config()``

    Returns:
        Configured structured logger for the engine
    """
    logging_config = LoggingConfig(config)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="ISO"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if logging_config.LOG_FORMAT == 'console':
        processors.append(structlog.dev.ConsoleRenderer(colors=False))
    else:
        # Default to JSON for log aggregation
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    logging.config.dictConfig({
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'plain': {'format': '%(message)s'},
        },
        'handlers': {
            'console': {
                'class': 'logging.StreamHandler',
                'formatter': 'plain',
                'stream': sys.stdout,
            },
        },
        'loggers': {
            '': {
                'handlers': ['console'],
                'level': logging_config.LOG_LEVEL,
            },
        },
    })

    logger = structlog.get_logger("formguard")
    logger.info("Structured logging initialized",
                log_level=logging_config.LOG_LEVEL,
                log_format=logging_config.LOG_FORMAT,
                environment=logging_config.ENVIRONMENT)
    return logger


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance with optional name.

    Args:
        name: Logger name, defaults to "formguard"
    """
    return structlog.get_logger(name or "formguard")


def bind_form_context(form_id: Optional[str] = None, **context: Any) -> str:
    """
    Bind a correlation id (and extra context) to every log line of the
    current task.

    Returns:
        The form correlation id that was bound
    """
    form_id = form_id or str(uuid.uuid4())
    structlog.contextvars.bind_contextvars(form_id=form_id, **context)
    return form_id


def clear_form_context() -> None:
    structlog.contextvars.clear_contextvars()


__all__ = [
    'LoggingConfig',
    'setup_structured_logging',
    'get_logger',
    'bind_form_context',
    'clear_form_context',
]
