"""
Unit tests for the Operations bundle.
"""

import functools

import pytest

from pdsmigrate.config import MigratorConfig
from pdsmigrate.operations import (
    Operations,
    check_account_status,
    create_new_account,
    finalize_migration,
    initialize_sessions,
    migrate_data,
    migrate_identity,
    request_plc_operation,
)
from tests.fixtures import FakePds, make_credentials


class TestOperations:
    """Tests for Operations."""

    def test_defaults_are_http_operations(self):
        operations = Operations()

        assert operations.initialize_sessions is initialize_sessions
        assert operations.create_new_account is create_new_account
        assert operations.migrate_data is migrate_data
        assert operations.request_plc_operation is request_plc_operation
        assert operations.migrate_identity is migrate_identity
        assert operations.check_account_status is check_account_status
        assert operations.finalize_migration is finalize_migration

    def test_is_frozen(self):
        operations = Operations()
        with pytest.raises(AttributeError):
            operations.migrate_data = None  # type: ignore[misc]

    def test_from_config_binds_page_size(self):
        operations = Operations.from_config(
            MigratorConfig(blob_page_size=50, enable_tracing=False)
        )

        assert isinstance(operations.migrate_data, functools.partial)
        assert operations.migrate_data.keywords["page_size"] == 50

    @pytest.mark.asyncio
    async def test_from_config_uses_session_factory(
        self, old_pds: FakePds, new_pds: FakePds, session_factory
    ):
        operations = Operations.from_config(
            MigratorConfig(enable_tracing=False), session_factory=session_factory
        )

        sessions = await operations.initialize_sessions(make_credentials())

        assert sessions.old.service == old_pds.service
        assert sessions.new.service == new_pds.service
        assert len(old_pds.calls("com.atproto.server.createSession")) == 1
