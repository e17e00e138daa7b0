"""
Form Engine Exception Classes

This module provides the exception hierarchy for programming and integration
failures of the form validation engine. Expected validation failures are never
raised: they travel as data (``ValidationResult.is_valid = False``). Exceptions
are reserved for misuse of the engine (malformed rules, unknown rules, bad
configuration) and for failures of injected collaborators that the caller has
to know about (draft storage, submit handlers).

The exception hierarchy follows these patterns:
- Error categorization via ErrorCategory
- Severity classification via ErrorSeverity for monitoring
- Security-conscious messages (user-facing text stays generic)
- Structured logging of every raised exception

Classes:
    BaseFormEngineException: Base class for all engine exceptions
    RuleRegistrationError: Malformed rule or registration misuse
    UnknownRuleError: Lookup of a business rule that was never registered
    ValidationServiceError: Injected validation service failure
    DraftStoreError: Draft persistence collaborator failure
    SubmissionError: Submit handler failure
    ConfigurationError: Invalid engine configuration
"""

import re
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

import structlog

logger = structlog.get_logger("business.exceptions")

# Generic user-facing text for any rule that raised instead of returning a result
GENERIC_VALIDATION_ERROR = "Validation error occurred"


class ErrorSeverity(Enum):
    """
    Error severity classification for engine exceptions.

    Used for log levels and alerting thresholds; unrelated to the
    error/warning/info severity of validation rules.
    """
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Error category classification for engine exception types."""
    RULE_DEFINITION = "rule_definition"
    RULE_EXECUTION = "rule_execution"
    VALIDATION_SERVICE = "validation_service"
    DRAFT_STORAGE = "draft_storage"
    SUBMISSION = "submission"
    CONFIGURATION = "configuration"


class BaseFormEngineException(Exception):
    """
    Base exception class for all form engine failures.

    Attributes:
        message (str): Sanitized error message
        error_code (str): Unique error identifier for client handling
        severity (ErrorSeverity): Error severity level for monitoring
        category (ErrorCategory): Error category for classification
        context (Dict[str, Any]): Additional error context (filtered)
        cause (Optional[Exception]): Original exception, never exposed to users
        timestamp (datetime): Error occurrence timestamp

    Example:
        try:
            engine.add_field_rules('sku', [broken_rule])
        except BaseFormEngineException as e:
            logger.error("Form setup failure", error=e.to_dict())
    """

    def __init__(
        self,
        message: str,
        error_code: str,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        category: ErrorCategory = ErrorCategory.RULE_DEFINITION,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(message)

        self.message = self._sanitize_message(message)
        self.error_code = error_code
        self.severity = severity
        self.category = category
        self.context = self._filter_sensitive_context(context or {})
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

        self._log_exception()

    def _sanitize_message(self, message: str) -> str:
        """
        Sanitize error message to prevent information disclosure.

        Args:
            message: Raw error message potentially containing sensitive data

        Returns:
            Sanitized error message safe for client exposure
        """
        sensitive_patterns = [
            r"password\s*[:=]\s*['\"][^'\"]*['\"]",
            r"token\s*[:=]\s*['\"][^'\"]*['\"]",
            r"secret\s*[:=]\s*['\"][^'\"]*['\"]",
            r"Bearer\s+[A-Za-z0-9\-_]*",
        ]

        sanitized = message
        for pattern in sensitive_patterns:
            sanitized = re.sub(pattern, "[REDACTED]", sanitized, flags=re.IGNORECASE)

        max_length = 500
        if len(sanitized) > max_length:
            sanitized = sanitized[:max_length] + "... [TRUNCATED]"

        return sanitized

    def _filter_sensitive_context(self, context: Dict[str, Any]) -> Dict[str, Any]:
        """Redact context keys that look like credentials or personal data."""
        sensitive_keys = {'password', 'confirm_password', 'token', 'secret', 'api_key'}
        filtered = {}
        for key, value in context.items():
            if key.lower() in sensitive_keys:
                filtered[key] = "[REDACTED]"
            else:
                filtered[key] = value
        return filtered

    def _log_exception(self) -> None:
        log_method = logger.error if self.severity in (
            ErrorSeverity.HIGH, ErrorSeverity.CRITICAL
        ) else logger.warning
        log_method(
            "Form engine exception raised",
            error_code=self.error_code,
            error_message=self.message,
            severity=self.severity.value,
            category=self.category.value,
            context=self.context,
            cause_type=type(self.cause).__name__ if self.cause else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to a dictionary for structured reporting.

        The original cause is reduced to its type name; its text is never
        included.
        """
        return {
            'error_code': self.error_code,
            'message': self.message,
            'severity': self.severity.value,
            'category': self.category.value,
            'context': self.context,
            'timestamp': self.timestamp.isoformat(),
            'cause_type': type(self.cause).__name__ if self.cause else None,
        }

    def __str__(self) -> str:
        return f"{self.error_code}: {self.message}"


class RuleRegistrationError(BaseFormEngineException):
    """
    Raised when a rule is malformed or registered incorrectly.

    Covers rules without an id, non-callable validators, and rules that
    declare ``requires_async`` without providing an async validator.
    """

    def __init__(
        self,
        message: str,
        error_code: str = "RULE_REGISTRATION_ERROR",
        rule_id: Optional[str] = None,
        field_name: Optional[str] = None,
        **kwargs
    ) -> None:
        context = kwargs.pop('context', {}) or {}
        if rule_id:
            context['rule_id'] = rule_id
        if field_name:
            context['field_name'] = field_name
        self.rule_id = rule_id
        self.field_name = field_name
        kwargs.setdefault('severity', ErrorSeverity.HIGH)
        super().__init__(
            message=message,
            error_code=error_code,
            category=ErrorCategory.RULE_DEFINITION,
            context=context,
            **kwargs
        )


class UnknownRuleError(BaseFormEngineException):
    """Raised when a business rule id is looked up but was never registered."""

    def __init__(self, rule_id: str, **kwargs) -> None:
        self.rule_id = rule_id
        super().__init__(
            message=f"Unknown business rule: {rule_id}",
            error_code="UNKNOWN_BUSINESS_RULE",
            category=ErrorCategory.RULE_DEFINITION,
            context={'rule_id': rule_id},
            **kwargs
        )


class ValidationServiceError(BaseFormEngineException):
    """
    Raised by validation service implementations for backend failures.

    Rules catch this (and any other exception) at the call site and turn it
    into a generic user-facing message.
    """

    def __init__(
        self,
        message: str,
        service_name: str,
        error_code: str = "VALIDATION_SERVICE_ERROR",
        **kwargs
    ) -> None:
        self.service_name = service_name
        context = kwargs.pop('context', {}) or {}
        context['service_name'] = service_name
        super().__init__(
            message=message,
            error_code=error_code,
            category=ErrorCategory.VALIDATION_SERVICE,
            context=context,
            **kwargs
        )


class DraftStoreError(BaseFormEngineException):
    """Raised when a draft cannot be loaded, saved or cleared."""

    def __init__(
        self,
        message: str,
        draft_key: str,
        error_code: str = "DRAFT_STORE_ERROR",
        **kwargs
    ) -> None:
        self.draft_key = draft_key
        super().__init__(
            message=message,
            error_code=error_code,
            category=ErrorCategory.DRAFT_STORAGE,
            context={'draft_key': draft_key},
            **kwargs
        )


class SubmissionError(BaseFormEngineException):
    """Raised when the injected submit handler fails for a valid form."""

    def __init__(self, message: str = "Form submission failed", **kwargs) -> None:
        super().__init__(
            message=message,
            error_code="FORM_SUBMISSION_FAILED",
            category=ErrorCategory.SUBMISSION,
            **kwargs
        )


class ConfigurationError(BaseFormEngineException):
    """Raised for invalid engine configuration values."""

    def __init__(self, message: str, setting: Optional[str] = None, **kwargs) -> None:
        self.setting = setting
        kwargs.setdefault('severity', ErrorSeverity.HIGH)
        super().__init__(
            message=message,
            error_code="INVALID_CONFIGURATION",
            category=ErrorCategory.CONFIGURATION,
            context={'setting': setting} if setting else {},
            **kwargs
        )
