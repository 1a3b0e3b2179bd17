"""
conftest.py - Shared pytest fixtures for simulator tests

Provides common fixtures used across unit, functional and conformance tests:
- Configurations (protection and reinvest modes)
- Stores (in-memory, test mode)
- Engines wired to a store

Plain helpers (D, make_engine, run_sequence) live in tests/helpers.py.
"""

import pytest

from soros import Configuration

from tests.helpers import D, make_engine, quiet_store


# =============================================================================
# CONFIGURATION FIXTURES
# =============================================================================

@pytest.fixture
def protection_config():
    """Protection mode: 10 protection, 10 initial, 80% payout."""
    return Configuration(
        initial_value=D("10"),
        payout_percent=D("80"),
        use_protection=True,
        protection_value=D("10"),
    )


@pytest.fixture
def reinvest_config():
    """Reinvest mode: 10 initial, 80% payout."""
    return Configuration(
        initial_value=D("10"),
        payout_percent=D("80"),
        use_protection=False,
    )


# =============================================================================
# STORE AND ENGINE FIXTURES
# =============================================================================

@pytest.fixture
def store():
    """Quiet in-memory store in test mode."""
    return quiet_store()


@pytest.fixture
def protection_engine(protection_config, store):
    """Engine in protection mode on a fresh store."""
    return make_engine(protection_config, store)


@pytest.fixture
def reinvest_engine(reinvest_config, store):
    """Engine in reinvest mode on a fresh store."""
    return make_engine(reinvest_config, store)
