"""
Form Validation Business Layer

Rules, data models and state owners of the validation engine.

Package Components:
    Data Models (models.py):
        - ValidationResult, ValidationRule, field/form state, business rules
    Rule Library (rules.py, cross_field.py):
        - Field validators and cross-field rule factories
    Runtime (engine.py, scheduler.py, store.py):
        - FormValidationEngine, debounce scheduling, form state store
    Business Rules (business_rules.py):
        - BusinessRuleEngine and the restaurant rule set
    Drafts and Submission (drafts.py, services.py):
        - Draft stores and the submit flow

The engine and the submission service depend on ``formguard.config`` and are
imported from their modules (or from the top-level ``formguard`` package).
"""

from .exceptions import (
    GENERIC_VALIDATION_ERROR,
    ErrorSeverity,
    ErrorCategory,
    BaseFormEngineException,
    RuleRegistrationError,
    UnknownRuleError,
    ValidationServiceError,
    DraftStoreError,
    SubmissionError,
    ConfigurationError,
)
from .models import (
    FormValues,
    ValidationResult,
    Severity,
    Validator,
    AsyncValidator,
    ValidationRule,
    FieldValidationState,
    FormValidationState,
    BusinessRuleScope,
    BusinessRule,
    Product,
    Customer,
)
from .rules import (
    required,
    email,
    min_length,
    max_length,
    pattern,
    unique,
    conditional,
    custom,
    combine_validation_results,
    suggest_email_correction,
)
from .cross_field import (
    confirm_password,
    date_range,
    stock_constraint,
    percentage_total,
    low_stock_threshold,
    price_range,
    numeric_range,
    profit_margin,
    preparation_time,
    loyalty_points_ratio,
    reorder_logic,
)
from .business_rules import (
    BusinessRuleReport,
    BusinessRuleEngine,
    ValidationServices,
    MockValidationServices,
    create_restaurant_business_rules,
)
from .drafts import DraftStore, InMemoryDraftStore, JsonFileDraftStore
from .scheduler import DebounceScheduler
from .store import FormStateStore
from .utils import INPUT_MASKS, VALUE_FORMATTERS, to_number

__all__ = [
    # exceptions
    'GENERIC_VALIDATION_ERROR',
    'ErrorSeverity',
    'ErrorCategory',
    'BaseFormEngineException',
    'RuleRegistrationError',
    'UnknownRuleError',
    'ValidationServiceError',
    'DraftStoreError',
    'SubmissionError',
    'ConfigurationError',

    # models
    'FormValues',
    'ValidationResult',
    'Severity',
    'Validator',
    'AsyncValidator',
    'ValidationRule',
    'FieldValidationState',
    'FormValidationState',
    'BusinessRuleScope',
    'BusinessRule',
    'Product',
    'Customer',

    # rules
    'required',
    'email',
    'min_length',
    'max_length',
    'pattern',
    'unique',
    'conditional',
    'custom',
    'combine_validation_results',
    'suggest_email_correction',
    'confirm_password',
    'date_range',
    'stock_constraint',
    'percentage_total',
    'low_stock_threshold',
    'price_range',
    'numeric_range',
    'profit_margin',
    'preparation_time',
    'loyalty_points_ratio',
    'reorder_logic',

    # business rules
    'BusinessRuleReport',
    'BusinessRuleEngine',
    'ValidationServices',
    'MockValidationServices',
    'create_restaurant_business_rules',

    # runtime pieces
    'DraftStore',
    'InMemoryDraftStore',
    'JsonFileDraftStore',
    'DebounceScheduler',
    'FormStateStore',
    'INPUT_MASKS',
    'VALUE_FORMATTERS',
    'to_number',
]
