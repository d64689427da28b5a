"""
Shared pytest fixtures for the pdsmigrate tests.

This module provides:
- Credential fixtures (credentials, split_credentials)
- Operation and session doubles (session_pair, operations)
- Fake PDS fixtures (old_pds, new_pds, session_factory)
- A MockTracer for span assertions
"""

from __future__ import annotations

import logging

import pytest

from pdsmigrate.models import MigrationCredentials
from pdsmigrate.observability import MockTracer
from pdsmigrate.operations import Operations
from pdsmigrate.session import SessionFactory, SessionPair
from tests.fixtures import (
    FakePds,
    make_credentials,
    make_factory,
    make_fake_pds_pair,
    make_operations,
    make_session_pair,
    make_split_credentials,
)

# ============================================================================
# Credential Fixtures
# ============================================================================


@pytest.fixture
def credentials() -> MigrationCredentials:
    """Credentials with a new handle under the new PDS."""
    return make_credentials()


@pytest.fixture
def split_credentials() -> MigrationCredentials:
    """Credentials with a temporary handle and a custom final handle."""
    return make_split_credentials()


# ============================================================================
# Doubles
# ============================================================================


@pytest.fixture
def session_pair() -> SessionPair:
    """SessionPair of AsyncMock sessions."""
    return make_session_pair()


@pytest.fixture
def operations(session_pair: SessionPair) -> Operations:
    """Operations that all succeed; initialize_sessions returns ``session_pair``."""
    return make_operations(session_pair)


@pytest.fixture
def tracer() -> MockTracer:
    return MockTracer()


# ============================================================================
# Fake PDS Fixtures
# ============================================================================


@pytest.fixture
def fake_pds_pair() -> tuple[FakePds, FakePds]:
    return make_fake_pds_pair()


@pytest.fixture
def old_pds(fake_pds_pair: tuple[FakePds, FakePds]) -> FakePds:
    return fake_pds_pair[0]


@pytest.fixture
def new_pds(fake_pds_pair: tuple[FakePds, FakePds]) -> FakePds:
    return fake_pds_pair[1]


@pytest.fixture
def session_factory(old_pds: FakePds, new_pds: FakePds) -> SessionFactory:
    return make_factory(old_pds, new_pds)


# ============================================================================
# Logging Isolation
# ============================================================================


@pytest.fixture(autouse=True)
def _restore_package_logger():
    """Undo logger level/handler changes (e.g. configure_logging) between tests."""
    logger = logging.getLogger("pdsmigrate")
    level, handlers = logger.level, list(logger.handlers)
    yield
    logger.setLevel(level)
    logger.handlers[:] = handlers
