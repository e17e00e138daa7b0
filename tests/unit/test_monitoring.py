"""
Unit tests for metrics, structured logging and exception reporting.
"""

import logging

import pytest
import structlog

from formguard.business.exceptions import (
    ConfigurationError,
    RuleRegistrationError,
    SubmissionError,
)
from formguard.config.settings import TestingConfig
from formguard.monitoring.logging import (
    LoggingConfig,
    bind_form_context,
    clear_form_context,
    setup_structured_logging,
)
from formguard.monitoring.metrics import ValidationMetrics


@pytest.fixture
def structured_logging():
    """Configure logging for one test and restore the defaults afterwards."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield setup_structured_logging(TestingConfig)
    structlog.reset_defaults()
    clear_form_context()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestValidationMetrics:
    """Tests for the Prometheus collectors."""

    def test_counters(self, metrics):
        metrics.record_field_run('sku', has_errors=True)
        metrics.record_field_run('sku', has_errors=True)
        metrics.record_rule_failure('required', 'error')
        metrics.record_rule_exception('unique', 'async')
        metrics.record_superseded('sku')

        assert metrics.get_sample(
            'formguard_field_validations_total', {'field': 'sku', 'outcome': 'invalid'}
        ) == 2
        assert metrics.get_sample(
            'formguard_rule_failures_total', {'rule_id': 'required', 'severity': 'error'}
        ) == 1
        assert metrics.get_sample(
            'formguard_rule_exceptions_total', {'rule_id': 'unique', 'phase': 'async'}
        ) == 1
        assert metrics.get_sample('formguard_superseded_runs_total', {'field': 'sku'}) == 1

    def test_missing_sample_is_zero(self, metrics):
        assert metrics.get_sample('formguard_superseded_runs_total', {'field': 'name'}) == 0.0

    def test_time_field_observes_duration(self, metrics):
        with metrics.time_field('price'):
            pass

        assert metrics.get_sample(
            'formguard_field_validation_duration_seconds_count', {'field': 'price'}
        ) == 1

    def test_instances_do_not_share_registries(self):
        first = ValidationMetrics()
        second = ValidationMetrics()

        first.record_business_rule('sku-uniqueness', is_valid=False)

        assert second.get_sample(
            'formguard_business_rule_outcomes_total',
            {'rule_id': 'sku-uniqueness', 'outcome': 'invalid'}
        ) == 0.0

    def test_export(self, metrics):
        metrics.record_rule_failure('email', 'warning')

        exported = metrics.export().decode()

        assert 'formguard_rule_failures_total' in exported
        assert 'rule_id="email"' in exported


class TestStructuredLogging:
    """Tests for structlog configuration."""

    def test_logging_config_reads_settings(self):
        logging_config = LoggingConfig(TestingConfig)

        assert logging_config.LOG_LEVEL == 'WARNING'
        assert logging_config.LOG_FORMAT == 'console'
        assert logging_config.ENVIRONMENT == 'testing'

    def test_setup_applies_level(self, structured_logging):
        assert logging.getLogger().level == logging.WARNING
        assert structlog.is_configured() is True

    def test_form_context_binding(self, structured_logging):
        form_id = bind_form_context(form_name='menu-item')

        bound = structlog.contextvars.get_contextvars()
        assert bound['form_id'] == form_id
        assert bound['form_name'] == 'menu-item'

        clear_form_context()
        assert structlog.contextvars.get_contextvars() == {}

    def test_explicit_form_id(self, structured_logging):
        assert bind_form_context('order-17') == 'order-17'


class TestExceptionReporting:
    """Tests for structured exception details."""

    def test_to_dict(self):
        error = RuleRegistrationError(
            "Rule 'unique' requires an async validator",
            error_code='RULE_ASYNC_PASS_MISSING',
            rule_id='unique',
            field_name='sku'
        )

        details = error.to_dict()

        assert details['error_code'] == 'RULE_ASYNC_PASS_MISSING'
        assert details['category'] == 'rule_definition'
        assert details['severity'] == 'high'
        assert details['context'] == {'rule_id': 'unique', 'field_name': 'sku'}
        assert str(error).startswith('RULE_ASYNC_PASS_MISSING: ')

    def test_cause_is_reduced_to_type(self):
        error = SubmissionError(cause=ConnectionError('db password="hunter2"'))

        details = error.to_dict()

        assert details['cause_type'] == 'ConnectionError'
        assert 'hunter2' not in str(details)

    def test_message_is_sanitized(self):
        error = ConfigurationError('bad value token="abc123"', setting='token')

        assert 'abc123' not in error.message
        assert '[REDACTED]' in error.message

    def test_sensitive_context_is_redacted(self):
        error = RuleRegistrationError(
            "Malformed rule", context={'password': 'hunter2', 'rule_kind': 'custom'}
        )

        assert error.context['password'] == '[REDACTED]'
        assert error.context['rule_kind'] == 'custom'
