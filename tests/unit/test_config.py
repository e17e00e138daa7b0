"""
Unit tests for configuration selection and engine options.
"""

import pytest

from formguard.business.exceptions import ConfigurationError
from formguard.config.settings import (
    EngineConfig,
    ProductionConfig,
    TestingConfig,
    get_config,
    validate_configuration,
)


class TestGetConfig:
    """Tests for environment selection."""

    def test_defaults_to_environment_variable(self, monkeypatch):
        monkeypatch.setenv('FORMGUARD_ENV', 'testing')

        assert get_config() is TestingConfig

    @pytest.mark.parametrize('name,expected', [
        ('testing', TestingConfig),
        ('TEST', TestingConfig),
        ('prod', ProductionConfig),
    ])
    def test_names_and_aliases(self, name, expected):
        assert get_config(name) is expected

    def test_unknown_environment_raises(self):
        with pytest.raises(ConfigurationError) as exc_info:
            get_config('staging')

        assert exc_info.value.setting == 'FORMGUARD_ENV'


class TestValidateConfiguration:
    """Tests for configuration issue reporting."""

    def test_testing_config_has_no_issues(self):
        assert validate_configuration(TestingConfig) == []

    def test_reports_every_issue(self):
        class BrokenConfig(TestingConfig):
            DEBOUNCE_MS = -1
            ASYNC_RULE_TIMEOUT = 0
            VALIDATE_ON_CHANGE = False
            VALIDATE_ON_BLUR = False
            VALIDATE_ON_SUBMIT = False
            LOG_FORMAT = 'xml'

        issues = validate_configuration(BrokenConfig)

        assert "DEBOUNCE_MS must not be negative" in issues
        assert "ASYNC_RULE_TIMEOUT must be positive when set" in issues
        assert "At least one validation trigger should be enabled" in issues
        assert "LOG_FORMAT must be 'json' or 'console'" in issues


class TestEngineConfig:
    """Tests for the runtime options of an engine."""

    def test_defaults(self):
        config = EngineConfig()

        assert config.debounce_ms == 300.0
        assert config.async_rule_timeout is None
        assert config.autosave_delay_ms == 2000.0
        assert config.show_warnings is True

    def test_from_environment(self):
        config = EngineConfig.from_environment('testing')

        assert config.debounce_ms == 10.0
        assert config.async_rule_timeout == 5.0

    @pytest.mark.parametrize('overrides', [
        {'debounce_ms': -5},
        {'async_rule_timeout': 0},
        {'autosave_delay_ms': -1},
    ])
    def test_invalid_values_raise(self, overrides):
        with pytest.raises(ConfigurationError):
            EngineConfig(**overrides)

    def test_with_overrides_returns_new_config(self, engine_config):
        quiet = engine_config.with_overrides(show_warnings=False, show_info=False)

        assert quiet.show_warnings is False
        assert quiet.debounce_ms == engine_config.debounce_ms
        assert engine_config.show_warnings is True
