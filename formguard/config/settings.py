"""
Form Engine Configuration

Environment-specific settings (Development, Testing, Production) for the form
validation engine. Values are read from environment variables, with
python-dotenv loading a local ``.env`` file first.

Key Components:
- BaseConfig and environment subclasses holding raw settings
- get_config() selecting the class for FORMGUARD_ENV
- validate_configuration() reporting inconsistent settings
- EngineConfig, the immutable runtime view handed to FormValidationEngine

Environment Variables:
    FORMGUARD_ENV: development | testing | production (default development)
    FORMGUARD_DEBOUNCE_MS: Delay before a changed field is validated (300)
    FORMGUARD_VALIDATE_ON_CHANGE / _ON_BLUR / _ON_SUBMIT: true | false
    FORMGUARD_SHOW_WARNINGS / FORMGUARD_SHOW_INFO: true | false
    FORMGUARD_ASYNC_RULE_TIMEOUT: Seconds before an async rule is abandoned (unset)
    FORMGUARD_AUTOSAVE_DELAY_MS: Delay before a draft is saved (2000)
    FORMGUARD_DRAFT_DIR: Directory for file-backed drafts
"""

import os
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Type

from dotenv import load_dotenv

from formguard.business.exceptions import ConfigurationError

import structlog

# Load environment variables early
load_dotenv()

logger = structlog.get_logger("config.settings")


def _env_bool(name: str, default: str = 'true') -> bool:
    return os.getenv(name, default).strip().lower() in ('1', 'true', 'yes', 'on')


def _env_float(name: str, default: Optional[float] = None) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number", setting=name)


class BaseConfig:
    """
    Base configuration shared by every environment.
    """

    ENVIRONMENT = 'base'
    DEBUG = False
    TESTING = False

    # Validation timing
    DEBOUNCE_MS = _env_float('FORMGUARD_DEBOUNCE_MS', 300.0)
    ASYNC_RULE_TIMEOUT = _env_float('FORMGUARD_ASYNC_RULE_TIMEOUT')

    # Validation triggers
    VALIDATE_ON_CHANGE = _env_bool('FORMGUARD_VALIDATE_ON_CHANGE')
    VALIDATE_ON_BLUR = _env_bool('FORMGUARD_VALIDATE_ON_BLUR')
    VALIDATE_ON_SUBMIT = _env_bool('FORMGUARD_VALIDATE_ON_SUBMIT')

    # Message visibility
    SHOW_WARNINGS = _env_bool('FORMGUARD_SHOW_WARNINGS')
    SHOW_INFO = _env_bool('FORMGUARD_SHOW_INFO')

    # Drafts
    AUTOSAVE_DELAY_MS = _env_float('FORMGUARD_AUTOSAVE_DELAY_MS', 2000.0)
    DRAFT_DIR = os.getenv('FORMGUARD_DRAFT_DIR')

    # Logging
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()
    LOG_FORMAT = os.getenv('LOG_FORMAT', 'json')


class DevelopmentConfig(BaseConfig):
    """Development settings: console logs at debug level."""

    ENVIRONMENT = 'development'
    DEBUG = True
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'DEBUG').upper()
    LOG_FORMAT = os.getenv('LOG_FORMAT', 'console')


class TestingConfig(BaseConfig):
    """
    Testing settings tuned for fast, deterministic test runs.

    The debounce window is shortened so tests can wait for it without
    slowing the suite down.
    """

    ENVIRONMENT = 'testing'
    TESTING = True
    DEBUG = True
    DEBOUNCE_MS = 10.0
    AUTOSAVE_DELAY_MS = 10.0
    ASYNC_RULE_TIMEOUT = 5.0
    LOG_LEVEL = 'WARNING'
    LOG_FORMAT = 'console'


class ProductionConfig(BaseConfig):
    """Production settings: JSON logs, nothing relaxed."""

    ENVIRONMENT = 'production'
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()
    LOG_FORMAT = 'json'


config_map: Dict[str, Type[BaseConfig]] = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,

    # Aliases for convenience
    'dev': DevelopmentConfig,
    'test': TestingConfig,
    'prod': ProductionConfig,
}


def get_config(environment: Optional[str] = None) -> Type[BaseConfig]:
    """
    Get configuration class for the specified environment.

    Args:
        environment: Target environment name (defaults to FORMGUARD_ENV)

    Returns:
        Configuration class for the specified environment

    Raises:
        ConfigurationError: If environment is not supported
    """
    if environment is None:
        environment = os.getenv('FORMGUARD_ENV', 'development')

    environment = environment.lower()

    if environment not in config_map:
        raise ConfigurationError(
            f"Unsupported environment '{environment}'. "
            f"Supported environments: {sorted(config_map)}",
            setting='FORMGUARD_ENV'
        )

    config_class = config_map[environment]
    logger.debug("Configuration class selected",
                 environment=environment,
                 config_class=config_class.__name__)
    return config_class


def validate_configuration(config: Any) -> List[str]:
    """
    Validate configuration settings and return list of issues.

    Args:
        config: Configuration class or instance to validate

    Returns:
        List of validation error messages (empty if valid)
    """
    issues = []

    if config.DEBOUNCE_MS < 0:
        issues.append("DEBOUNCE_MS must not be negative")

    if config.ASYNC_RULE_TIMEOUT is not None and config.ASYNC_RULE_TIMEOUT <= 0:
        issues.append("ASYNC_RULE_TIMEOUT must be positive when set")

    if config.AUTOSAVE_DELAY_MS < 0:
        issues.append("AUTOSAVE_DELAY_MS must not be negative")

    if not (config.VALIDATE_ON_CHANGE or config.VALIDATE_ON_BLUR or config.VALIDATE_ON_SUBMIT):
        issues.append("At least one validation trigger should be enabled")

    if config.LOG_FORMAT not in ('json', 'console'):
        issues.append("LOG_FORMAT must be 'json' or 'console'")

    logger.debug("Configuration validation completed",
                 issues_found=len(issues),
                 issues=issues)

    return issues


@dataclass(frozen=True)
class EngineConfig:
    """
    Runtime options of a FormValidationEngine.

    Attributes:
        debounce_ms: Delay between a value change and its validation
        validate_on_change: Schedule validation from set_field_value
        validate_on_blur: Validate when a field loses focus
        validate_on_submit: Re-validate every field in validate_form
        show_warnings: Expose warnings through field_feedback
        show_info: Expose info messages through field_feedback
        async_rule_timeout: Seconds before an async rule counts as failed;
            None waits indefinitely
        autosave_delay_ms: Delay before a changed form is saved as a draft
    """

    debounce_ms: float = 300.0
    validate_on_change: bool = True
    validate_on_blur: bool = True
    validate_on_submit: bool = True
    show_warnings: bool = True
    show_info: bool = True
    async_rule_timeout: Optional[float] = None
    autosave_delay_ms: float = 2000.0

    def __post_init__(self) -> None:
        if self.debounce_ms < 0:
            raise ConfigurationError("debounce_ms must not be negative", setting='debounce_ms')
        if self.async_rule_timeout is not None and self.async_rule_timeout <= 0:
            raise ConfigurationError(
                "async_rule_timeout must be positive when set",
                setting='async_rule_timeout'
            )
        if self.autosave_delay_ms < 0:
            raise ConfigurationError(
                "autosave_delay_ms must not be negative",
                setting='autosave_delay_ms'
            )

    @classmethod
    def from_config(cls, config: Any) -> 'EngineConfig':
        return cls(
            debounce_ms=float(config.DEBOUNCE_MS),
            validate_on_change=bool(config.VALIDATE_ON_CHANGE),
            validate_on_blur=bool(config.VALIDATE_ON_BLUR),
            validate_on_submit=bool(config.VALIDATE_ON_SUBMIT),
            show_warnings=bool(config.SHOW_WARNINGS),
            show_info=bool(config.SHOW_INFO),
            async_rule_timeout=config.ASYNC_RULE_TIMEOUT,
            autosave_delay_ms=float(config.AUTOSAVE_DELAY_MS),
        )

    @classmethod
    def from_environment(cls, environment: Optional[str] = None) -> 'EngineConfig':
        """
        Build the runtime config for ``environment`` after validating it.

        Raises:
            ConfigurationError: If the selected configuration has issues
        """
        config_class = get_config(environment)
        issues = validate_configuration(config_class)
        if issues:
            raise ConfigurationError(
                f"Configuration validation failed: {'; '.join(issues)}"
            )
        return cls.from_config(config_class)

    def with_overrides(self, **overrides: Any) -> 'EngineConfig':
        return replace(self, **overrides)


__all__ = [
    'BaseConfig',
    'DevelopmentConfig',
    'TestingConfig',
    'ProductionConfig',
    'EngineConfig',
    'config_map',
    'get_config',
    'validate_configuration',
]
