"""
Form Validation Data Models

This module provides the data model of the validation engine: the result of a
single rule, the rule contract itself, per-field and aggregate form state, and
business rule definitions.

Wire-shaped models are Pydantic models whose camelCase aliases reproduce the
consumer contract field for field (``isValid``, ``hasBeenTouched``,
``globalErrors`` ...). Python code uses the snake_case attribute names; use
``model_dump(by_alias=True)`` when handing state to a renderer.

Rule definitions carry callables and are plain frozen dataclasses. Their
callables are typed by two explicit capability interfaces, ``Validator`` and
``AsyncValidator``, chosen when the rule is constructed.

Model Categories:
    Results:
        ValidationResult: Outcome of one rule evaluation
    Rules:
        Severity: error | warning | info routing of failure messages
        ValidationRule: Field rule with optional async path and dependencies
        BusinessRuleScope / BusinessRule: Whole-form domain rules
    State:
        FieldValidationState: Value plus message buckets and interaction flags
        FormValidationState: Aggregate form state
    Entities:
        Product / Customer: Records returned by validation services
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import (
    Any, Awaitable, Callable, Dict, List, Mapping, Optional, Protocol, Sequence,
    Tuple, Union, runtime_checkable
)

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .exceptions import RuleRegistrationError

import structlog
logger = structlog.get_logger("business.models")


FormValues = Mapping[str, Any]


class WireModel(BaseModel):
    """
    Base class for models that cross the engine/renderer boundary.

    Accepts both snake_case names and camelCase aliases on input and
    serializes to camelCase with ``by_alias=True``.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        validate_assignment=True,
        arbitrary_types_allowed=True,
        extra='forbid',
    )


# ============================================================================
# VALIDATION RESULTS
# ============================================================================

class ValidationResult(WireModel):
    """
    Outcome of a single rule evaluation.

    A result can be valid and still carry advisory ``warnings`` or ``info``.
    """

    is_valid: bool
    message: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)
    info: List[str] = Field(default_factory=list)

    @classmethod
    def valid(
        cls,
        warnings: Optional[Sequence[str]] = None,
        info: Optional[Sequence[str]] = None
    ) -> 'ValidationResult':
        return cls(is_valid=True, warnings=list(warnings or []), info=list(info or []))

    @classmethod
    def invalid(
        cls,
        message: Optional[str] = None,
        warnings: Optional[Sequence[str]] = None,
        info: Optional[Sequence[str]] = None
    ) -> 'ValidationResult':
        return cls(
            is_valid=False,
            message=message,
            warnings=list(warnings or []),
            info=list(info or [])
        )


# ============================================================================
# RULE CONTRACT
# ============================================================================

class Severity(str, Enum):
    """Routing of a failed rule's message; only ERROR blocks submission."""
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@runtime_checkable
class Validator(Protocol):
    """Synchronous validation capability: ``(value, form_values) -> ValidationResult``."""

    def __call__(self, value: Any, form_values: FormValues) -> ValidationResult:
        ...


@runtime_checkable
class AsyncValidator(Protocol):
    """Asynchronous validation capability: ``(value, form_values) -> Awaitable[ValidationResult]``."""

    def __call__(self, value: Any, form_values: FormValues) -> Awaitable[ValidationResult]:
        ...


@dataclass(frozen=True)
class ValidationRule:
    """
    A unit of validation logic attached to a field.

    Attributes:
        id: Rule identifier, unique within a field's rule set
        message: Default message used when a failing result has none
        validate: Synchronous validator, always run first
        validate_async: Optional asynchronous validator, joined after sync rules
        severity: Bucket a failure message lands in
        dependencies: Names of other fields whose changes re-trigger this rule
        requires_async: The rule is only meaningful once its async pass ran

    Raises:
        RuleRegistrationError: If the rule is malformed
    """

    id: str
    message: str
    validate: Validator
    validate_async: Optional[AsyncValidator] = None
    severity: Severity = Severity.ERROR
    dependencies: Tuple[str, ...] = field(default_factory=tuple)
    requires_async: bool = False

    def __post_init__(self) -> None:
        if not self.id:
            raise RuleRegistrationError("Validation rule must have an id")
        if not callable(self.validate):
            raise RuleRegistrationError(
                "Validation rule 'validate' must be callable",
                error_code="RULE_VALIDATOR_NOT_CALLABLE",
                rule_id=self.id
            )
        if self.validate_async is not None and not callable(self.validate_async):
            raise RuleRegistrationError(
                "Validation rule 'validate_async' must be callable",
                error_code="RULE_ASYNC_VALIDATOR_NOT_CALLABLE",
                rule_id=self.id
            )
        if self.requires_async and self.validate_async is None:
            raise RuleRegistrationError(
                "Rule requires an async pass but defines no async validator",
                error_code="RULE_ASYNC_PASS_MISSING",
                rule_id=self.id
            )
        # frozen dataclass: normalize through object.__setattr__
        object.__setattr__(self, 'severity', Severity(self.severity))
        object.__setattr__(self, 'dependencies', tuple(self.dependencies or ()))

    @property
    def is_async(self) -> bool:
        return self.validate_async is not None


# ============================================================================
# FIELD AND FORM STATE
# ============================================================================

class FieldValidationState(WireModel):
    """Current value, message buckets and interaction flags of one field."""

    value: Any = None
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    info: List[str] = Field(default_factory=list)
    is_validating: bool = False
    has_been_touched: bool = False
    has_been_focused: bool = False

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)


class FormValidationState(WireModel):
    """Aggregate form state; ``is_valid`` is recomputed by ``validate_form``."""

    fields: Dict[str, FieldValidationState] = Field(default_factory=dict)
    is_valid: bool = True
    is_validating: bool = False
    has_errors: bool = False
    has_warnings: bool = False
    global_errors: List[str] = Field(default_factory=list)
    global_warnings: List[str] = Field(default_factory=list)


# ============================================================================
# BUSINESS RULES
# ============================================================================

class BusinessRuleScope(str, Enum):
    FIELD = "field"
    FORM = "form"
    CROSS_FIELD = "cross-field"


BusinessRuleValidator = Callable[
    [FormValues], Union[ValidationResult, Awaitable[ValidationResult]]
]


@dataclass(frozen=True)
class BusinessRule:
    """
    Domain-scoped rule evaluated over the entire form data.

    ``validate`` may return a ``ValidationResult`` or an awaitable of one.
    Lower ``priority`` runs first.
    """

    id: str
    name: str
    description: str
    validate: BusinessRuleValidator
    scope: BusinessRuleScope = BusinessRuleScope.FORM
    priority: int = 0

    def __post_init__(self) -> None:
        if not self.id:
            raise RuleRegistrationError("Business rule must have an id")
        if not callable(self.validate):
            raise RuleRegistrationError(
                "Business rule 'validate' must be callable",
                error_code="BUSINESS_RULE_NOT_CALLABLE",
                rule_id=self.id
            )
        object.__setattr__(self, 'scope', BusinessRuleScope(self.scope))


# ============================================================================
# RESTAURANT ENTITIES
# ============================================================================

class Product(WireModel):
    """Product record returned by validation services."""

    id: Optional[str] = None
    sku: str
    name: str
    price: float = 0.0
    category: str = ''
    tax_rate: float = 0.0
    description: Optional[str] = None


class Customer(WireModel):
    """Customer record returned by validation services."""

    id: Optional[str] = None
    email: str
    first_name: str = ''
    last_name: str = ''
    phone: str = ''
    loyalty_points: int = 0
