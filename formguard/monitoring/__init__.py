"""
Monitoring package: structlog setup and Prometheus collectors.
"""

from .logging import (
    LoggingConfig,
    setup_structured_logging,
    get_logger,
    bind_form_context,
    clear_form_context,
)
from .metrics import ValidationMetrics

__all__ = [
    'LoggingConfig',
    'setup_structured_logging',
    'get_logger',
    'bind_form_context',
    'clear_form_context',
    'ValidationMetrics',
]
