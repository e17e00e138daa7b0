"""
formguard - rule-based, dependency-aware form validation engine

Usage Examples:
    from formguard import FormValidationEngine, EngineConfig, required, email

    async with FormValidationEngine({'email': ''}, config=EngineConfig()) as engine:
        engine.add_field_rules('email', [required(), email()])
        engine.set_field_value('email', 'chef@example.com')
        await engine.wait_for_idle()
        is_valid = await engine.validate_form()
"""

from .business import *  # noqa: F401,F403
from .business import __all__ as _business_all
from .business.engine import FieldStatus, FormValidationEngine, evaluate_rules
from .business.services import FormSubmissionService, SubmissionResult
from .config import EngineConfig, get_config
from .monitoring import ValidationMetrics, get_logger, setup_structured_logging

__version__ = '1.0.0'

__all__ = list(_business_all) + [
    'FieldStatus',
    'FormValidationEngine',
    'evaluate_rules',
    'FormSubmissionService',
    'SubmissionResult',
    'EngineConfig',
    'get_config',
    'ValidationMetrics',
    'get_logger',
    'setup_structured_logging',
]
