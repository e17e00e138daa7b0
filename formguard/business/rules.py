"""
Rule Library

Reusable field validators. Each factory returns a ``ValidationRule`` whose
synchronous validator only looks at the field's own value; rules that read
other fields live in ``cross_field``.

Empty values pass every rule except ``required``. Compose ``required`` with
the other rules to make a field mandatory.

Example:
    engine.add_field_rules('email', [
        required(),
        email(),
        unique(services.check_email_uniqueness, 'Email already registered',
               exclude_field='id'),
    ])
"""

import inspect
import re
from typing import Any, Awaitable, Callable, Optional, Pattern, Sized, Union

from .models import (
    AsyncValidator, FormValues, Severity, ValidationResult, ValidationRule
)
from .utils import is_blank

import structlog
logger = structlog.get_logger("business.rules")


EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')

# Frequent domain misspellings and the domain the user most likely meant
COMMON_EMAIL_TYPOS = {
    'gmial.com': 'gmail.com',
    'gmai.com': 'gmail.com',
    'gmil.com': 'gmail.com',
    'gmal.com': 'gmail.com',
    'gmail.co': 'gmail.com',
    'gmail.cm': 'gmail.com',
    'yaho.com': 'yahoo.com',
    'yahooo.com': 'yahoo.com',
    'yahoo.co': 'yahoo.com',
    'hotmial.com': 'hotmail.com',
    'hotmai.com': 'hotmail.com',
    'hotmal.com': 'hotmail.com',
    'hotmail.co': 'hotmail.com',
    'outlok.com': 'outlook.com',
    'outloo.com': 'outlook.com',
    'outlook.co': 'outlook.com',
    'iclod.com': 'icloud.com',
    'icloud.co': 'icloud.com',
}

UniquenessCheck = Callable[..., Union[bool, Awaitable[bool]]]


def required(message: str = 'This field is required') -> ValidationRule:
    """Fail on None, empty or whitespace-only strings and empty collections."""

    def validate(value: Any, form_values: FormValues) -> ValidationResult:
        if is_blank(value):
            return ValidationResult.invalid(message)
        return ValidationResult.valid()

    return ValidationRule(id='required', message=message, validate=validate)


def suggest_email_correction(value: str) -> Optional[str]:
    """
    Return the corrected address when the domain is a known misspelling.

    Example:
        suggest_email_correction('user@gmial.com')  # 'user@gmail.com'
    """
    at_index = value.find('@')
    if at_index <= 0:
        return None
    domain = value[at_index + 1:].lower()
    suggestion = COMMON_EMAIL_TYPOS.get(domain)
    if suggestion is None:
        return None
    return value[:at_index + 1] + suggestion


def email(message: str = 'Please enter a valid email address') -> ValidationRule:
    """
    Validate an email address format and catch common domain typos.

    A misspelled well-known domain fails with a "Did you mean" suggestion
    even when the address is well-formed.
    """

    def validate(value: Any, form_values: FormValues) -> ValidationResult:
        if not value:
            return ValidationResult.valid()
        text = str(value)
        suggestion = suggest_email_correction(text)
        if suggestion is not None:
            return ValidationResult.invalid(f"{message}. Did you mean {suggestion}?")
        if not EMAIL_PATTERN.match(text):
            return ValidationResult.invalid(message)
        return ValidationResult.valid()

    return ValidationRule(id='email', message=message, validate=validate)


def min_length(minimum: int, message: Optional[str] = None) -> ValidationRule:
    text = message or f"Must be at least {minimum} characters"

    def validate(value: Any, form_values: FormValues) -> ValidationResult:
        if not value:
            return ValidationResult.valid()
        if isinstance(value, Sized) and len(value) >= minimum:
            return ValidationResult.valid()
        return ValidationResult.invalid(text)

    return ValidationRule(id='minLength', message=text, validate=validate)


def max_length(maximum: int, message: Optional[str] = None) -> ValidationRule:
    text = message or f"Must be no more than {maximum} characters"

    def validate(value: Any, form_values: FormValues) -> ValidationResult:
        if not value:
            return ValidationResult.valid()
        if isinstance(value, Sized) and len(value) <= maximum:
            return ValidationResult.valid()
        return ValidationResult.invalid(text)

    return ValidationRule(id='maxLength', message=text, validate=validate)


def pattern(regex: Union[str, Pattern[str]], message: str) -> ValidationRule:
    """Fail when ``regex`` finds no match anywhere in the value."""
    compiled = re.compile(regex) if isinstance(regex, str) else regex

    def validate(value: Any, form_values: FormValues) -> ValidationResult:
        if not value:
            return ValidationResult.valid()
        if compiled.search(str(value)):
            return ValidationResult.valid()
        return ValidationResult.invalid(message)

    return ValidationRule(id='pattern', message=message, validate=validate)


def unique(
    check_unique: UniquenessCheck,
    message: str = 'This value must be unique',
    exclude_field: Optional[str] = None
) -> ValidationRule:
    """
    Uniqueness check backed by an injected predicate.

    The synchronous path always passes; the real check is the async pass,
    which the rule declares as required so the engine refuses to treat the
    field as validated without it.

    Args:
        check_unique: ``(value)`` or ``(value, exclude_id)`` returning a bool
            or an awaitable bool
        message: Failure message
        exclude_field: Field holding the id of the record being edited; its
            value is passed as ``exclude_id`` so a record does not collide
            with itself
    """

    def validate(value: Any, form_values: FormValues) -> ValidationResult:
        return ValidationResult.valid()

    async def validate_async(value: Any, form_values: FormValues) -> ValidationResult:
        if exclude_field is not None:
            outcome = check_unique(value, form_values.get(exclude_field))
        else:
            outcome = check_unique(value)
        if inspect.isawaitable(outcome):
            outcome = await outcome
        return ValidationResult.valid() if outcome else ValidationResult.invalid(message)

    return ValidationRule(
        id='unique',
        message=message,
        validate=validate,
        validate_async=validate_async,
        requires_async=True,
    )


def conditional(condition: Callable[[FormValues], bool], rule: ValidationRule) -> ValidationRule:
    """
    Apply ``rule`` only while ``condition(form_values)`` holds.

    Both the sync and the async path of the wrapped rule are guarded; the
    wrapper keeps the wrapped rule's message, severity and dependencies.
    """

    def validate(value: Any, form_values: FormValues) -> ValidationResult:
        if not condition(form_values or {}):
            return ValidationResult.valid()
        return rule.validate(value, form_values)

    validate_async: Optional[AsyncValidator] = None
    if rule.validate_async is not None:
        wrapped_async = rule.validate_async

        async def validate_async(value: Any, form_values: FormValues) -> ValidationResult:
            if not condition(form_values or {}):
                return ValidationResult.valid()
            return await wrapped_async(value, form_values)

    return ValidationRule(
        id=f"conditional_{rule.id}",
        message=rule.message,
        validate=validate,
        validate_async=validate_async,
        severity=rule.severity,
        dependencies=rule.dependencies,
        requires_async=rule.requires_async,
    )


def custom(
    rule_id: str,
    check: Callable[[Any, FormValues], bool],
    message: str,
    severity: Severity = Severity.ERROR,
    dependencies: tuple = ()
) -> ValidationRule:
    """Build a rule from a boolean predicate over ``(value, form_values)``."""

    def validate(value: Any, form_values: FormValues) -> ValidationResult:
        return ValidationResult.valid() if check(value, form_values) else ValidationResult.invalid(message)

    return ValidationRule(
        id=rule_id,
        message=message,
        validate=validate,
        severity=severity,
        dependencies=tuple(dependencies),
    )


def combine_validation_results(*results: ValidationResult) -> ValidationResult:
    """
    Merge several results into one.

    Validity is the AND of all results, the last failing message wins, and
    warnings/info are concatenated in order.
    """
    is_valid = True
    message = None
    warnings = []
    info = []
    for result in results:
        is_valid = is_valid and result.is_valid
        if result.message and not result.is_valid:
            message = result.message
        warnings.extend(result.warnings)
        info.extend(result.info)
    return ValidationResult(is_valid=is_valid, message=message, warnings=warnings, info=info)
