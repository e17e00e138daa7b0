"""
Cross-field Rule Factories

Rules that read other fields from the full form values rather than only the
value of the field they are attached to. Every factory declares the fields it
reads as ``dependencies`` so editing one of them re-validates the owning field.

Numeric fields are read leniently through ``to_number``: blank or unparsable
input counts as zero.
"""

from typing import Any, Sequence

from .models import FormValues, Severity, ValidationResult, ValidationRule
from .utils import parse_date, to_number


def confirm_password(password_field: str = 'password') -> ValidationRule:
    """Valid when the value equals ``form_values[password_field]`` or either side is empty."""
    message = 'Passwords do not match'

    def validate(value: Any, form_values: FormValues) -> ValidationResult:
        password = form_values.get(password_field)
        if not value or not password or value == password:
            return ValidationResult.valid()
        return ValidationResult.invalid(message)

    return ValidationRule(
        id='confirmPassword',
        message=message,
        validate=validate,
        dependencies=(password_field,),
    )


def date_range(start_date_field: str, end_date_field: str) -> ValidationRule:
    """
    End date must not precede start date.

    Both dates come from the form values; the rule passes while either is
    missing. A date that cannot be parsed fails the comparison.
    """
    message = 'End date must be after start date'

    def validate(value: Any, form_values: FormValues) -> ValidationResult:
        raw_start = form_values.get(start_date_field)
        raw_end = form_values.get(end_date_field)
        if not raw_start or not raw_end:
            return ValidationResult.valid()

        start = parse_date(raw_start)
        end = parse_date(raw_end)
        if start is None or end is None:
            return ValidationResult.invalid(message)
        if (start.tzinfo is None) != (end.tzinfo is None):
            # aware and naive datetimes cannot be compared directly
            start, end = start.replace(tzinfo=None), end.replace(tzinfo=None)
        if end >= start:
            return ValidationResult.valid()
        return ValidationResult.invalid(message)

    return ValidationRule(
        id='dateRange',
        message=message,
        validate=validate,
        dependencies=(start_date_field, end_date_field),
    )


def stock_constraint(stock_field: str) -> ValidationRule:
    message = 'Quantity cannot exceed available stock'

    def validate(value: Any, form_values: FormValues) -> ValidationResult:
        available = to_number(form_values.get(stock_field))
        requested = to_number(value)
        if requested <= available:
            return ValidationResult.valid()
        return ValidationResult.invalid(message)

    return ValidationRule(
        id='stockConstraint',
        message=message,
        validate=validate,
        dependencies=(stock_field,),
    )


def percentage_total(fields: Sequence[str], max_total: float = 100) -> ValidationRule:
    """Fail when the named fields sum to more than ``max_total``."""
    message = f"Total percentage cannot exceed {_format_number(max_total)}%"
    field_names = tuple(fields)

    def validate(value: Any, form_values: FormValues) -> ValidationResult:
        total = sum(to_number(form_values.get(name)) for name in field_names)
        if total <= max_total:
            return ValidationResult.valid()
        return ValidationResult.invalid(message)

    return ValidationRule(
        id='percentageTotal',
        message=message,
        validate=validate,
        dependencies=field_names,
    )


def low_stock_threshold(quantity_field: str = 'quantity') -> ValidationRule:
    """
    Advisory check of a low-stock threshold against the current quantity.

    Never reports a failure: a threshold at or above the quantity yields a
    valid result carrying a warning. With no stock on hand it stays silent.
    """

    def validate(value: Any, form_values: FormValues) -> ValidationResult:
        quantity = to_number(form_values.get(quantity_field))
        threshold = to_number(value)
        if quantity == 0:
            return ValidationResult.valid()
        if threshold >= quantity:
            return ValidationResult.valid(
                warnings=['Low stock threshold is higher than current quantity']
            )
        return ValidationResult.valid()

    return ValidationRule(
        id='lowStockThreshold',
        message='Low stock threshold should be less than total quantity',
        validate=validate,
        severity=Severity.WARNING,
        dependencies=(quantity_field,),
    )


def price_range(
    base_price_field: str,
    min_percent: float = 50,
    max_percent: float = 200
) -> ValidationRule:
    """Warn when the price falls outside ``[min_percent, max_percent]`` of the base price."""
    message = (
        f"Price should be within {_format_number(min_percent)}% to "
        f"{_format_number(max_percent)}% of base price"
    )

    def validate(value: Any, form_values: FormValues) -> ValidationResult:
        base_price = to_number(form_values.get(base_price_field))
        current_price = to_number(value)
        if base_price == 0:
            return ValidationResult.valid()
        percentage = current_price / base_price * 100
        if min_percent <= percentage <= max_percent:
            return ValidationResult.valid()
        return ValidationResult.invalid(message)

    return ValidationRule(
        id='priceRange',
        message=message,
        validate=validate,
        severity=Severity.WARNING,
        dependencies=(base_price_field,),
    )


def numeric_range(min_field: str, max_field: str) -> ValidationRule:
    """Maximum must exceed minimum; an all-zero range is treated as unset."""
    message = 'Maximum value must be greater than minimum value'

    def validate(value: Any, form_values: FormValues) -> ValidationResult:
        minimum = to_number(form_values.get(min_field))
        maximum = to_number(form_values.get(max_field))
        if minimum == 0 and maximum == 0:
            return ValidationResult.valid()
        if maximum > minimum:
            return ValidationResult.valid()
        return ValidationResult.invalid(message)

    return ValidationRule(
        id='numericRange',
        message=message,
        validate=validate,
        dependencies=(min_field, max_field),
    )


# ============================================================================
# RESTAURANT FORM RULES
# ============================================================================

# Category-based preparation time limits in minutes
PREPARATION_TIME_LIMITS = {
    'beverages': 5,
    'appetizers': 15,
    'salads': 10,
    'main-course': 30,
    'desserts': 20,
}
DEFAULT_PREPARATION_TIME_LIMIT = 60


def profit_margin() -> ValidationRule:
    """Product form: the selling price should cover the cost price."""
    message = 'Selling price should be higher than cost price'

    def validate(value: Any, form_values: FormValues) -> ValidationResult:
        selling_price = to_number(form_values.get('sellingPrice')) or to_number(value)
        cost_price = to_number(form_values.get('costPrice'))
        if cost_price == 0:
            return ValidationResult.valid()
        if selling_price > cost_price:
            return ValidationResult.valid()
        return ValidationResult.invalid(message)

    return ValidationRule(
        id='profitMargin',
        message=message,
        validate=validate,
        severity=Severity.WARNING,
        dependencies=('costPrice',),
    )


def preparation_time() -> ValidationRule:
    """Menu item: warn about preparation times unusual for the category."""

    def validate(value: Any, form_values: FormValues) -> ValidationResult:
        prep_time = to_number(form_values.get('preparationTime')) or to_number(value)
        category = form_values.get('category')
        max_time = PREPARATION_TIME_LIMITS.get(category, DEFAULT_PREPARATION_TIME_LIMIT)
        if prep_time > max_time:
            return ValidationResult.valid(warnings=[f"Very long preparation time for {category}"])
        return ValidationResult.valid()

    return ValidationRule(
        id='preparationTime',
        message='Preparation time seems unusually long for this category',
        validate=validate,
        severity=Severity.WARNING,
        dependencies=('category',),
    )


def loyalty_points_ratio() -> ValidationRule:
    """Customer form: loyalty points should stay within 50% of one point per unit spent."""
    message = 'Loyalty points seem high for customer spending level'

    def validate(value: Any, form_values: FormValues) -> ValidationResult:
        loyalty_points = to_number(value)
        total_spent = to_number(form_values.get('totalSpent'))
        if total_spent == 0:
            return ValidationResult.valid()
        variance = abs(loyalty_points - total_spent) / total_spent
        if variance <= 0.5:
            return ValidationResult.valid()
        return ValidationResult.invalid(message)

    return ValidationRule(
        id='loyaltyPointsRatio',
        message=message,
        validate=validate,
        severity=Severity.INFO,
        dependencies=('totalSpent',),
    )


def reorder_logic() -> ValidationRule:
    """Inventory form: the reorder point must stay below the maximum stock level."""
    message = 'Reorder point cannot exceed maximum stock level'

    def validate(value: Any, form_values: FormValues) -> ValidationResult:
        reorder_point = to_number(form_values.get('reorderPoint')) or to_number(value)
        max_stock = to_number(form_values.get('maxStock'))
        if max_stock == 0:
            return ValidationResult.valid()
        if reorder_point < max_stock:
            return ValidationResult.valid()
        return ValidationResult.invalid(message)

    return ValidationRule(
        id='reorderLogic',
        message=message,
        validate=validate,
        dependencies=('maxStock',),
    )


def _format_number(number: float) -> str:
    return str(int(number)) if float(number).is_integer() else str(number)
