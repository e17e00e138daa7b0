"""
Configuration package: environment settings and the engine's runtime options.
"""

from .settings import (
    BaseConfig,
    DevelopmentConfig,
    TestingConfig,
    ProductionConfig,
    EngineConfig,
    config_map,
    get_config,
    validate_configuration,
)

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
