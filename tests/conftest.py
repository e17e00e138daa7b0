"""
Root pytest configuration.

Selects the testing environment before any formguard module reads its
settings, and registers the markers used across the suite.
"""

import os

os.environ.setdefault('FORMGUARD_ENV', 'testing')
os.environ.setdefault('LOG_LEVEL', 'WARNING')


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests without external resources")
