"""
Business Rule Engine

Domain rules evaluated over the entire form data rather than a single field.
Rules run in ascending ``priority`` order (registration order breaks ties);
each may be synchronous or return an awaitable.

Two evaluation policies coexist on purpose:

- Field-scoped rules (SKU / email uniqueness, category existence) call an
  injected ``ValidationServices`` implementation and surface a single message.
  A failing service is reported with a fixed user-facing message; the backend
  error is only logged.
- Form-scoped rules (inventory constraints, customer data, recipe ingredients)
  fail fast: they return at the first violated constraint so the user is
  guided through one correction at a time. Warnings gathered before that
  point are kept.

Example:
    services = MockValidationServices()
    rule_engine = BusinessRuleEngine(create_restaurant_business_rules(services))
    report = await rule_engine.evaluate(form_values, scopes=[BusinessRuleScope.FORM])
"""

import asyncio
import inspect
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, Set

from pydantic import Field

from .exceptions import GENERIC_VALIDATION_ERROR, RuleRegistrationError, UnknownRuleError
from .models import (
    BusinessRule, BusinessRuleScope, Customer, FormValues, Product, ValidationResult, WireModel
)
from .utils import is_blank, to_number

import structlog
logger = structlog.get_logger("business.business_rules")


class BusinessRuleReport(WireModel):
    """Combined outcome of one ``BusinessRuleEngine.evaluate`` call."""

    is_valid: bool = True
    results: Dict[str, ValidationResult] = Field(default_factory=dict)
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    info: List[str] = Field(default_factory=list)


class BusinessRuleEngine:
    """
    Registry and evaluator of business rules.

    Args:
        rules: Initial rules, registered in order
        metrics: Optional ``ValidationMetrics`` receiving rule outcomes
    """

    def __init__(self, rules: Optional[Iterable[BusinessRule]] = None, metrics: Any = None):
        self._rules: Dict[str, BusinessRule] = {}
        self.metrics = metrics
        for rule in rules or ():
            self.register_rule(rule)

    def register_rule(self, rule: BusinessRule) -> None:
        """
        Register a business rule.

        Raises:
            RuleRegistrationError: If the rule is not a BusinessRule or its id
                is already registered
        """
        if not isinstance(rule, BusinessRule):
            raise RuleRegistrationError(
                f"Expected BusinessRule, got {type(rule).__name__}",
                error_code="BUSINESS_RULE_TYPE_INVALID"
            )
        if rule.id in self._rules:
            raise RuleRegistrationError(
                f"Business rule '{rule.id}' is already registered",
                error_code="BUSINESS_RULE_DUPLICATE",
                rule_id=rule.id
            )
        self._rules[rule.id] = rule
        logger.debug("Business rule registered",
                     rule_id=rule.id,
                     scope=rule.scope.value,
                     priority=rule.priority)

    def get_rule(self, rule_id: str) -> BusinessRule:
        """
        Raises:
            UnknownRuleError: If no rule with ``rule_id`` is registered
        """
        try:
            return self._rules[rule_id]
        except KeyError:
            raise UnknownRuleError(rule_id)

    @property
    def rules(self) -> List[BusinessRule]:
        """Registered rules in evaluation order."""
        return sorted(self._rules.values(), key=lambda rule: rule.priority)

    async def evaluate_rule(self, rule_id: str, form_data: FormValues) -> ValidationResult:
        """Evaluate one rule; exceptions become the generic failure."""
        return await self._run(self.get_rule(rule_id), form_data)

    async def evaluate(
        self,
        form_data: FormValues,
        scopes: Optional[Sequence[BusinessRuleScope]] = None,
        rule_ids: Optional[Sequence[str]] = None
    ) -> BusinessRuleReport:
        """
        Evaluate registered rules over ``form_data`` in ascending priority.

        Args:
            form_data: Entire form values
            scopes: Only run rules with one of these scopes
            rule_ids: Only run these rules

        Returns:
            BusinessRuleReport with per-rule results and merged messages

        Raises:
            UnknownRuleError: If ``rule_ids`` names an unregistered rule
        """
        selected_ids: Optional[Set[str]] = None
        if rule_ids is not None:
            selected_ids = {self.get_rule(rule_id).id for rule_id in rule_ids}
        wanted_scopes = {BusinessRuleScope(scope) for scope in scopes} if scopes else None

        report = BusinessRuleReport()
        for rule in self.rules:
            if selected_ids is not None and rule.id not in selected_ids:
                continue
            if wanted_scopes is not None and rule.scope not in wanted_scopes:
                continue

            result = await self._run(rule, form_data)
            report.results[rule.id] = result
            if not result.is_valid:
                report.is_valid = False
                report.errors.append(result.message or GENERIC_VALIDATION_ERROR)
            report.warnings.extend(result.warnings)
            report.info.extend(result.info)

        logger.debug("Business rules evaluated",
                     rules_run=len(report.results),
                     is_valid=report.is_valid,
                     errors=len(report.errors))
        return report

    async def _run(self, rule: BusinessRule, form_data: FormValues) -> ValidationResult:
        try:
            outcome = rule.validate(form_data)
            if inspect.isawaitable(outcome):
                outcome = await outcome
            if isinstance(outcome, Mapping):
                outcome = ValidationResult.model_validate(outcome)
            if not isinstance(outcome, ValidationResult):
                raise TypeError(
                    f"Business rule returned {type(outcome).__name__}, expected ValidationResult"
                )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("Business rule execution failed",
                         rule_id=rule.id,
                         error_type=type(e).__name__,
                         exc_info=True)
            outcome = ValidationResult.invalid(GENERIC_VALIDATION_ERROR)

        if self.metrics is not None:
            self.metrics.record_business_rule(rule.id, outcome.is_valid)
        return outcome


# ============================================================================
# VALIDATION SERVICES
# ============================================================================

class ValidationServices(Protocol):
    """Backend lookups used by the restaurant business rules."""

    async def check_sku_uniqueness(self, sku: str, exclude_id: Optional[str] = None) -> bool:
        ...

    async def check_email_uniqueness(self, email: str, exclude_id: Optional[str] = None) -> bool:
        ...

    async def check_category_exists(self, category_id: str) -> bool:
        ...

    async def get_product_by_sku(self, sku: str) -> Optional[Product]:
        ...

    async def get_customer_by_email(self, email: str) -> Optional[Customer]:
        ...


class MockValidationServices:
    """
    In-memory ``ValidationServices`` for development and tests.

    Args:
        skus: Existing SKUs (compared upper-case)
        emails: Registered emails (compared lower-case)
        categories: Existing category ids
        latency: Seconds each lookup sleeps to simulate a backend round trip
    """

    DEFAULT_SKUS = ('BURGER-001', 'FRIES-001', 'DRINK-001')
    DEFAULT_EMAILS = ('john@example.com', 'jane@example.com')
    DEFAULT_CATEGORIES = ('main-course', 'sides', 'beverages', 'desserts')

    def __init__(
        self,
        skus: Optional[Iterable[str]] = None,
        emails: Optional[Iterable[str]] = None,
        categories: Optional[Iterable[str]] = None,
        latency: float = 0.0
    ):
        self.skus = {sku.upper() for sku in (self.DEFAULT_SKUS if skus is None else skus)}
        self.emails = {
            address.lower() for address in (self.DEFAULT_EMAILS if emails is None else emails)
        }
        self.categories = set(self.DEFAULT_CATEGORIES if categories is None else categories)
        self.latency = latency
        self.calls: List[str] = []

    async def _simulate(self, operation: str) -> None:
        self.calls.append(operation)
        if self.latency:
            await asyncio.sleep(self.latency)

    async def check_sku_uniqueness(self, sku: str, exclude_id: Optional[str] = None) -> bool:
        await self._simulate('check_sku_uniqueness')
        return sku.upper() not in self.skus

    async def check_email_uniqueness(self, email: str, exclude_id: Optional[str] = None) -> bool:
        await self._simulate('check_email_uniqueness')
        return email.lower() not in self.emails

    async def check_category_exists(self, category_id: str) -> bool:
        await self._simulate('check_category_exists')
        return category_id in self.categories

    async def get_product_by_sku(self, sku: str) -> Optional[Product]:
        await self._simulate('get_product_by_sku')
        if sku.upper() not in self.skus:
            return None
        return Product(
            id='mock-id',
            sku=sku.upper(),
            name=f"Mock Product {sku}",
            price=9.99,
            category='main-course',
            tax_rate=0.08,
        )

    async def get_customer_by_email(self, email: str) -> Optional[Customer]:
        await self._simulate('get_customer_by_email')
        if email.lower() not in self.emails:
            return None
        return Customer(
            id='mock-customer-id',
            email=email.lower(),
            first_name='Mock',
            last_name='Customer',
            phone='1234567890',
            loyalty_points=100,
        )


# ============================================================================
# RESTAURANT BUSINESS RULES
# ============================================================================

def _text(form_data: FormValues, key: str) -> str:
    value = form_data.get(key)
    return '' if value is None else str(value)


def create_restaurant_business_rules(services: ValidationServices) -> List[BusinessRule]:
    """
    Build the restaurant rule set backed by ``services``.

    Field-scoped rules run at priority 1, form-scoped rules at priority 2.
    """

    async def sku_uniqueness(form_data: FormValues) -> ValidationResult:
        sku = _text(form_data, 'sku')
        if is_blank(sku):
            return ValidationResult.valid()
        try:
            is_unique = await services.check_sku_uniqueness(sku, form_data.get('id'))
        except Exception as e:
            logger.error("SKU uniqueness check failed",
                         error_type=type(e).__name__,
                         exc_info=True)
            return ValidationResult.invalid('Unable to verify SKU uniqueness. Please try again.')
        if is_unique:
            return ValidationResult.valid()
        return ValidationResult.invalid('SKU already exists. Please choose a different SKU.')

    async def email_uniqueness(form_data: FormValues) -> ValidationResult:
        email = _text(form_data, 'email')
        if is_blank(email):
            return ValidationResult.valid()
        try:
            is_unique = await services.check_email_uniqueness(email, form_data.get('id'))
        except Exception as e:
            logger.error("Email uniqueness check failed",
                         error_type=type(e).__name__,
                         exc_info=True)
            return ValidationResult.invalid('Unable to verify email uniqueness. Please try again.')
        if is_unique:
            return ValidationResult.valid()
        return ValidationResult.invalid('Email already registered. Please use a different email.')

    async def category_validation(form_data: FormValues) -> ValidationResult:
        category_id = _text(form_data, 'category')
        if is_blank(category_id):
            return ValidationResult.invalid('Please select a category')
        try:
            exists = await services.check_category_exists(category_id)
        except Exception as e:
            logger.error("Category validation failed",
                         error_type=type(e).__name__,
                         exc_info=True)
            return ValidationResult.invalid('Unable to verify category. Please try again.')
        if exists:
            return ValidationResult.valid()
        return ValidationResult.invalid('Selected category does not exist')

    def tax_rate_validation(form_data: FormValues) -> ValidationResult:
        tax_rate = to_number(form_data.get('taxRate'))
        if tax_rate < 0:
            return ValidationResult.invalid('Tax rate cannot be negative')
        if tax_rate > 1:
            return ValidationResult.invalid('Tax rate cannot exceed 100%')
        if tax_rate > 0.25:
            return ValidationResult.valid(
                warnings=['High tax rate detected. Please verify this is correct.']
            )
        return ValidationResult.valid()

    def inventory_constraints(form_data: FormValues) -> ValidationResult:
        quantity = to_number(form_data.get('quantity'))
        low_stock_threshold = to_number(form_data.get('lowStockThreshold'))
        price = to_number(form_data.get('price'))
        warnings: List[str] = []
        info: List[str] = []

        if quantity < 0:
            return ValidationResult.invalid('Quantity cannot be negative', warnings)
        if quantity == 0:
            warnings.append('Item is currently out of stock')
        elif quantity > 10000:
            warnings.append('Very large quantity detected. Please verify this is correct.')

        if low_stock_threshold < 0:
            return ValidationResult.invalid('Low stock threshold cannot be negative', warnings)
        if low_stock_threshold > quantity > 0:
            warnings.append('Low stock threshold is higher than current quantity')

        if price < 0:
            return ValidationResult.invalid('Price cannot be negative', warnings)
        if price == 0:
            warnings.append('Free items should be reviewed for accuracy')
        elif price > 1000:
            warnings.append('High price detected. Please verify this is correct.')

        if 0 < quantity <= low_stock_threshold:
            info.append('Item is at or below low stock threshold')

        return ValidationResult.valid(warnings, info)

    def customer_data_validation(form_data: FormValues) -> ValidationResult:
        first_name = _text(form_data, 'firstName')
        last_name = _text(form_data, 'lastName')
        phone = _text(form_data, 'phone')
        loyalty_points = to_number(form_data.get('loyaltyPoints'))

        if is_blank(first_name):
            return ValidationResult.invalid('First name is required')
        if len(first_name) < 2:
            return ValidationResult.invalid('First name must be at least 2 characters')
        if is_blank(last_name):
            return ValidationResult.invalid('Last name is required')
        if len(last_name) < 2:
            return ValidationResult.invalid('Last name must be at least 2 characters')
        if phone and len([char for char in phone if char.isdigit()]) != 10:
            return ValidationResult.invalid('Phone number must be 10 digits')
        if loyalty_points < 0:
            return ValidationResult.invalid('Loyalty points cannot be negative')
        if loyalty_points > 100000:
            return ValidationResult.valid(
                warnings=['Very high loyalty points balance. Please verify this is correct.']
            )
        return ValidationResult.valid()

    async def recipe_validation(form_data: FormValues) -> ValidationResult:
        ingredients = form_data.get('ingredients') or []
        if not ingredients:
            return ValidationResult.valid(warnings=['Recipe has no ingredients defined'])

        for position, ingredient in enumerate(ingredients, start=1):
            sku = _text(ingredient, 'sku')
            if is_blank(sku):
                return ValidationResult.invalid(f"Ingredient {position}: SKU is required")
            if to_number(ingredient.get('quantity')) <= 0:
                return ValidationResult.invalid(
                    f"Ingredient {position}: Quantity must be greater than 0"
                )
            try:
                product = await services.get_product_by_sku(sku)
            except Exception as e:
                logger.error("Ingredient lookup failed",
                             sku=sku,
                             error_type=type(e).__name__,
                             exc_info=True)
                return ValidationResult.invalid(f"Ingredient {position}: Unable to verify product")
            if product is None:
                return ValidationResult.invalid(
                    f'Ingredient {position}: Product with SKU "{sku}" not found'
                )

        return ValidationResult.valid()

    return [
        BusinessRule(
            id='sku-uniqueness',
            name='SKU Uniqueness',
            description='Product SKU must be unique across all inventory items',
            validate=sku_uniqueness,
            scope=BusinessRuleScope.FIELD,
            priority=1,
        ),
        BusinessRule(
            id='email-uniqueness',
            name='Email Uniqueness',
            description='Customer email must be unique across all customers',
            validate=email_uniqueness,
            scope=BusinessRuleScope.FIELD,
            priority=1,
        ),
        BusinessRule(
            id='inventory-constraints',
            name='Inventory Constraints',
            description='Inventory quantities must be valid and within business limits',
            validate=inventory_constraints,
            scope=BusinessRuleScope.FORM,
            priority=2,
        ),
        BusinessRule(
            id='category-validation',
            name='Category Validation',
            description='Product category must exist in the system',
            validate=category_validation,
            scope=BusinessRuleScope.FIELD,
            priority=1,
        ),
        BusinessRule(
            id='customer-data-validation',
            name='Customer Data Validation',
            description='Customer information must meet business requirements',
            validate=customer_data_validation,
            scope=BusinessRuleScope.FORM,
            priority=2,
        ),
        BusinessRule(
            id='tax-rate-validation',
            name='Tax Rate Validation',
            description='Tax rates must be valid percentages',
            validate=tax_rate_validation,
            scope=BusinessRuleScope.FIELD,
            priority=1,
        ),
        BusinessRule(
            id='recipe-validation',
            name='Recipe Validation',
            description='Recipe ingredients must be valid and available',
            validate=recipe_validation,
            scope=BusinessRuleScope.FORM,
            priority=2,
        ),
    ]


__all__ = [
    'BusinessRuleReport',
    'BusinessRuleEngine',
    'ValidationServices',
    'MockValidationServices',
    'create_restaurant_business_rules',
]
