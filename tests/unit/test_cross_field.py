"""
Unit tests for cross-field rule factories.

Each rule reads its peer fields from the form values and declares them as
dependencies; the tests check both the verdict and the declared
dependencies.
"""

import pytest

from formguard.business.cross_field import (
    confirm_password,
    date_range,
    loyalty_points_ratio,
    low_stock_threshold,
    numeric_range,
    percentage_total,
    preparation_time,
    price_range,
    profit_margin,
    reorder_logic,
    stock_constraint,
)
from formguard.business.models import Severity


class TestGenericCrossFieldRules:
    """Tests for the general-purpose cross-field factories."""

    def test_percentage_total(self):
        rule = percentage_total(['a', 'b'], 100)

        over = rule.validate(None, {'a': 60, 'b': 50})
        under = rule.validate(None, {'a': 40, 'b': 50})

        assert over.is_valid is False
        assert over.message == 'Total percentage cannot exceed 100%'
        assert under.is_valid is True
        assert rule.dependencies == ('a', 'b')

    def test_percentage_total_treats_blank_as_zero(self):
        rule = percentage_total(['a', 'b'])

        assert rule.validate(None, {'a': '', 'b': '100'}).is_valid is True

    def test_low_stock_threshold_warns_but_never_fails(self):
        rule = low_stock_threshold('quantity')

        result = rule.validate(10, {'quantity': 5})

        assert result.is_valid is True
        assert result.warnings == ['Low stock threshold is higher than current quantity']
        assert rule.severity is Severity.WARNING

    def test_low_stock_threshold_silent_without_stock(self):
        result = low_stock_threshold().validate(10, {'quantity': 0})

        assert result.is_valid is True
        assert result.warnings == []

    def test_price_range_bounds(self):
        rule = price_range('cost', 50, 200)

        assert rule.validate(5, {'cost': 10}).is_valid is True
        failed = rule.validate(4, {'cost': 10})
        assert failed.is_valid is False
        assert failed.message == 'Price should be within 50% to 200% of base price'
        assert rule.severity is Severity.WARNING

    def test_price_range_without_base_price(self):
        assert price_range('cost').validate(999, {'cost': 0}).is_valid is True

    def test_confirm_password(self):
        rule = confirm_password()

        assert rule.validate('secret', {'password': 'secret'}).is_valid is True
        assert rule.validate('', {'password': 'secret'}).is_valid is True
        mismatch = rule.validate('other', {'password': 'secret'})
        assert mismatch.message == 'Passwords do not match'
        assert rule.dependencies == ('password',)

    def test_date_range(self):
        rule = date_range('startDate', 'endDate')

        assert rule.validate(None, {'startDate': '2024-03-01', 'endDate': '2024-03-05'}).is_valid
        assert rule.validate(None, {'startDate': '2024-03-05', 'endDate': '2024-03-05'}).is_valid
        failed = rule.validate(None, {'startDate': '2024-03-05', 'endDate': '2024-03-01'})
        assert failed.message == 'End date must be after start date'

    def test_date_range_missing_or_unparsable(self):
        rule = date_range('startDate', 'endDate')

        assert rule.validate(None, {'startDate': '2024-03-05'}).is_valid is True
        assert rule.validate(None, {'startDate': 'soon', 'endDate': '2024-03-01'}).is_valid is False

    def test_stock_constraint(self):
        rule = stock_constraint('available')

        assert rule.validate(3, {'available': 5}).is_valid is True
        assert rule.validate('6', {'available': '5'}).message == (
            'Quantity cannot exceed available stock'
        )

    @pytest.mark.parametrize('minimum,maximum,expected', [
        (0, 0, True),
        (1, 5, True),
        (5, 5, False),
        (10, 2, False),
    ])
    def test_numeric_range(self, minimum, maximum, expected):
        rule = numeric_range('min', 'max')

        assert rule.validate(None, {'min': minimum, 'max': maximum}).is_valid is expected


class TestRestaurantCrossFieldRules:
    """Tests for the restaurant form rules."""

    def test_profit_margin(self):
        rule = profit_margin()

        assert rule.validate(8, {'costPrice': 10, 'sellingPrice': 8}).is_valid is False
        assert rule.validate(12, {'costPrice': 10, 'sellingPrice': 12}).is_valid is True
        assert rule.validate(1, {'costPrice': 0}).is_valid is True
        assert rule.dependencies == ('costPrice',)

    def test_preparation_time_warns_per_category(self):
        rule = preparation_time()

        result = rule.validate(10, {'category': 'beverages', 'preparationTime': 10})

        assert result.is_valid is True
        assert result.warnings == ['Very long preparation time for beverages']

    def test_preparation_time_default_limit(self):
        result = preparation_time().validate(45, {'category': 'specials', 'preparationTime': 45})

        assert result.warnings == []

    def test_loyalty_points_ratio_is_informational(self):
        rule = loyalty_points_ratio()

        assert rule.severity is Severity.INFO
        assert rule.validate(200, {'totalSpent': 100}).is_valid is False
        assert rule.validate(120, {'totalSpent': 100}).is_valid is True

    def test_reorder_logic(self):
        rule = reorder_logic()

        assert rule.validate(50, {'reorderPoint': 50, 'maxStock': 40}).message == (
            'Reorder point cannot exceed maximum stock level'
        )
        assert rule.validate(10, {'reorderPoint': 10, 'maxStock': 40}).is_valid is True
