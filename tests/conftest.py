"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
Environment defaults must be set before anything imports app settings.
"""

import os

# CRITICAL: Set these before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ["TESTING"] = "true"

os.environ.setdefault("BACKEND_URL", "http://backend.test")
os.environ.setdefault("BACKEND_ANON_KEY", "anon-test-key")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from unittest.mock import Mock

import pytest

from app.adapters.rate_limit.in_memory import InMemoryRateLimiter


@pytest.fixture
def clock() -> Mock:
    """Controllable time source (UNIX seconds) for limiter tests."""
    return Mock(return_value=1000.0)


@pytest.fixture
def limiter(clock: Mock) -> InMemoryRateLimiter:
    return InMemoryRateLimiter(clock=clock)
