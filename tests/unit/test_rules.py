"""
Unit tests for the rule library.

Covers the single-field validators (required, email, length, pattern), the
async-backed uniqueness rule, conditional wrapping, custom rules, result
combination and rule construction errors.
"""

import re

import pytest

from formguard.business.exceptions import RuleRegistrationError
from formguard.business.models import Severity, ValidationResult, ValidationRule
from formguard.business.rules import (
    COMMON_EMAIL_TYPOS,
    combine_validation_results,
    conditional,
    custom,
    email,
    max_length,
    min_length,
    pattern,
    required,
    suggest_email_correction,
    unique,
)


class TestRequiredRule:
    """Tests for the required rule."""

    @pytest.mark.parametrize('value', ['', '   ', [], (), set(), None])
    def test_blank_values_fail(self, value):
        result = required().validate(value, {})

        assert result.is_valid is False
        assert result.message == 'This field is required'

    @pytest.mark.parametrize('value', ['x', [1], 0, False, {'a': 1}])
    def test_present_values_pass(self, value):
        assert required().validate(value, {}).is_valid is True

    def test_custom_message(self):
        result = required('Menu item name is required').validate('', {})

        assert result.message == 'Menu item name is required'


class TestEmailRule:
    """Tests for email format validation and typo suggestions."""

    def test_common_typo_fails_with_suggestion(self):
        result = email().validate('user@gmial.com', {})

        assert result.is_valid is False
        assert 'user@gmail.com' in result.message
        assert result.message == (
            'Please enter a valid email address. Did you mean user@gmail.com?'
        )

    def test_correct_address_passes(self):
        assert email().validate('user@gmail.com', {}).is_valid is True

    def test_malformed_address_fails_without_suggestion(self):
        result = email().validate('not-an-email', {})

        assert result.is_valid is False
        assert result.message == 'Please enter a valid email address'

    def test_empty_value_passes(self):
        assert email().validate('', {}).is_valid is True
        assert email().validate(None, {}).is_valid is True

    def test_typo_lookup_ignores_domain_case(self):
        assert suggest_email_correction('Chef@HOTMIAL.com') == 'Chef@hotmail.com'

    def test_unknown_domain_has_no_suggestion(self):
        assert suggest_email_correction('chef@bistro.example') is None

    def test_typo_map_is_complete(self):
        assert len(COMMON_EMAIL_TYPOS) == 18
        assert set(COMMON_EMAIL_TYPOS.values()) == {
            'gmail.com', 'yahoo.com', 'hotmail.com', 'outlook.com', 'icloud.com'
        }


class TestLengthAndPatternRules:
    """Tests for min_length, max_length and pattern."""

    def test_min_length(self):
        rule = min_length(3)

        assert rule.id == 'minLength'
        assert rule.validate('ab', {}).message == 'Must be at least 3 characters'
        assert rule.validate('abc', {}).is_valid is True
        assert rule.validate('', {}).is_valid is True

    def test_max_length(self):
        rule = max_length(5, 'Too long')

        assert rule.id == 'maxLength'
        assert rule.validate('abcdef', {}).message == 'Too long'
        assert rule.validate('abcde', {}).is_valid is True

    @pytest.mark.parametrize('rule', [min_length(1), max_length(10)])
    def test_value_without_length_fails_with_rule_message(self, rule):
        result = rule.validate(12345, {})

        assert result.is_valid is False
        assert result.message == rule.message

    def test_pattern_uses_search_semantics(self):
        rule = pattern(r'\d', 'Must contain a digit')

        assert rule.validate('abc1', {}).is_valid is True
        assert rule.validate('abc', {}).message == 'Must contain a digit'
        assert rule.validate('', {}).is_valid is True

    def test_pattern_accepts_compiled_regex(self):
        rule = pattern(re.compile(r'^[A-Z]+-\d{3}$'), 'Invalid SKU')

        assert rule.validate('BURGER-001', {}).is_valid is True
        assert rule.validate('burger', {}).is_valid is False


class TestUniqueRule:
    """Tests for the async-backed uniqueness rule."""

    def test_sync_path_always_passes(self):
        rule = unique(lambda value: False)

        assert rule.validate('taken', {}).is_valid is True

    def test_rule_requires_async_pass(self):
        rule = unique(lambda value: True)

        assert rule.requires_async is True
        assert rule.is_async is True

    @pytest.mark.asyncio
    async def test_async_path_with_sync_predicate(self):
        rule = unique(lambda value: value != 'taken', 'Already used')

        failed = await rule.validate_async('taken', {})
        passed = await rule.validate_async('free', {})

        assert failed.is_valid is False
        assert failed.message == 'Already used'
        assert passed.is_valid is True

    @pytest.mark.asyncio
    async def test_async_predicate_receives_exclude_id(self):
        seen = []

        async def check(value, exclude_id):
            seen.append((value, exclude_id))
            return True

        rule = unique(check, exclude_field='id')
        result = await rule.validate_async('BURGER-001', {'id': 'item-7'})

        assert result.is_valid is True
        assert seen == [('BURGER-001', 'item-7')]


class TestConditionalRule:
    """Tests for conditional wrapping of rules."""

    def test_skips_rule_when_condition_false(self):
        rule = conditional(lambda values: values.get('isDelivery'), required())

        assert rule.id == 'conditional_required'
        assert rule.validate('', {'isDelivery': False}).is_valid is True
        assert rule.validate('', {'isDelivery': True}).is_valid is False

    def test_inherits_wrapped_rule_settings(self):
        wrapped = custom(
            'tip',
            lambda value, values: False,
            'Check the tip',
            severity=Severity.WARNING,
            dependencies=('total',),
        )
        rule = conditional(lambda values: True, wrapped)

        assert rule.severity is Severity.WARNING
        assert rule.dependencies == ('total',)
        assert rule.message == 'Check the tip'

    @pytest.mark.asyncio
    async def test_guards_async_path(self):
        rule = conditional(lambda values: values.get('checkSku'), unique(lambda value: False))

        skipped = await rule.validate_async('BURGER-001', {'checkSku': False})
        checked = await rule.validate_async('BURGER-001', {'checkSku': True})

        assert rule.requires_async is True
        assert skipped.is_valid is True
        assert checked.is_valid is False


class TestRuleConstruction:
    """Tests for ValidationRule invariants enforced at construction."""

    def test_requires_async_without_async_validator_raises(self):
        with pytest.raises(RuleRegistrationError) as exc_info:
            ValidationRule(
                id='unique',
                message='This value must be unique',
                validate=lambda value, values: ValidationResult.valid(),
                requires_async=True,
            )

        assert exc_info.value.error_code == 'RULE_ASYNC_PASS_MISSING'
        assert exc_info.value.rule_id == 'unique'

    def test_missing_id_raises(self):
        with pytest.raises(RuleRegistrationError):
            ValidationRule(id='', message='x', validate=lambda value, values: None)

    def test_non_callable_validator_raises(self):
        with pytest.raises(RuleRegistrationError):
            ValidationRule(id='broken', message='x', validate='not callable')

    def test_severity_and_dependencies_are_normalized(self):
        rule = ValidationRule(
            id='normalized',
            message='x',
            validate=lambda value, values: ValidationResult.valid(),
            severity='info',
            dependencies=['quantity'],
        )

        assert rule.severity is Severity.INFO
        assert rule.dependencies == ('quantity',)


class TestCombineValidationResults:
    """Tests for merging several results."""

    def test_combines_validity_and_messages(self):
        combined = combine_validation_results(
            ValidationResult.valid(warnings=['Check spelling']),
            ValidationResult.invalid('First problem'),
            ValidationResult.invalid('Second problem', info=['Saved as draft']),
        )

        assert combined.is_valid is False
        assert combined.message == 'Second problem'
        assert combined.warnings == ['Check spelling']
        assert combined.info == ['Saved as draft']

    def test_all_valid(self):
        combined = combine_validation_results(ValidationResult.valid(), ValidationResult.valid())

        assert combined.is_valid is True
        assert combined.message is None

    def test_result_serializes_with_camel_case_names(self):
        dumped = ValidationResult.invalid('Nope').model_dump(by_alias=True)

        assert dumped == {'isValid': False, 'message': 'Nope', 'warnings': [], 'info': []}
