"""
Shared fixtures for formguard unit tests.

Engines are built with a short debounce window so tests can wait for the
scheduler without slowing the suite down. Every engine fixture closes its
engine after the test so no timer outlives its event loop.
"""

import pytest
import pytest_asyncio

from formguard.business.business_rules import MockValidationServices
from formguard.business.drafts import InMemoryDraftStore
from formguard.business.engine import FormValidationEngine
from formguard.business.models import ValidationResult, ValidationRule
from formguard.config.settings import EngineConfig, TestingConfig
from formguard.monitoring.metrics import ValidationMetrics


# ============================================================================
# CONFIGURATION FIXTURES
# ============================================================================

@pytest.fixture
def engine_config():
    """Engine options derived from the testing configuration."""
    return EngineConfig.from_config(TestingConfig)


@pytest.fixture
def metrics():
    return ValidationMetrics()


# ============================================================================
# ENGINE FIXTURES
# ============================================================================

@pytest_asyncio.fixture
async def engine(engine_config, metrics):
    """Engine for a small product form."""
    form_engine = FormValidationEngine(
        {'name': '', 'sku': '', 'price': '', 'costPrice': ''},
        config=engine_config,
        metrics=metrics
    )
    yield form_engine
    await form_engine.aclose()


@pytest_asyncio.fixture
async def engine_factory(engine_config, metrics):
    """Build additional engines that are closed after the test."""
    created = []

    def build(initial_values=None, **overrides):
        config = engine_config.with_overrides(**overrides) if overrides else engine_config
        form_engine = FormValidationEngine(initial_values, config=config, metrics=metrics)
        created.append(form_engine)
        return form_engine

    yield build

    for form_engine in created:
        await form_engine.aclose()


# ============================================================================
# RULE FIXTURES
# ============================================================================

class RecordingRule:
    """Build rules that record every value they are evaluated with."""

    def __init__(self):
        self.calls = []

    def rule(self, rule_id='recording', fail_on=None, message='Recorded failure', dependencies=()):
        def validate(value, form_values):
            self.calls.append(value)
            if fail_on is not None and value == fail_on:
                return ValidationResult.invalid(message)
            return ValidationResult.valid()

        return ValidationRule(
            id=rule_id,
            message=message,
            validate=validate,
            dependencies=tuple(dependencies),
        )


@pytest.fixture
def recorder():
    return RecordingRule()


# ============================================================================
# SERVICE AND DATA FIXTURES
# ============================================================================

@pytest.fixture
def mock_services():
    return MockValidationServices()


@pytest.fixture
def draft_store():
    return InMemoryDraftStore()


@pytest.fixture
def sample_inventory_data():
    """Inventory item that passes every inventory constraint."""
    return {
        'sku': 'PASTA-001',
        'name': 'Fresh Pasta',
        'quantity': 40,
        'lowStockThreshold': 10,
        'price': 12.5,
        'category': 'main-course',
        'unit': 'kg',
    }


@pytest.fixture
def sample_customer_data():
    """Customer record that passes the customer data rule."""
    return {
        'email': 'maria@example.org',
        'firstName': 'Maria',
        'lastName': 'Lopez',
        'phone': '(555) 123-4567',
        'loyaltyPoints': 250,
    }
