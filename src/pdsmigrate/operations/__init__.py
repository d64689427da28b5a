"""
The network operations a migration performs.

Each step of the migration is one async function. The Migration engine
only depends on their signatures, bundled as an Operations record, so
tests and alternative transports can swap any of them out.

Operations:
    - initialize_sessions: Log into the old PDS and pair sessions
    - create_new_account: Create the account on the new PDS
    - migrate_data: Copy repository, blobs and preferences
    - request_plc_operation: Ask the old PDS to email a PLC token
    - migrate_identity: Sign and submit the PLC operation
    - check_account_status: Fetch account status from both PDSes
    - finalize_migration: Activate, deactivate and set the final handle

Example:
    >>> from pdsmigrate.config import MigratorConfig
    >>> operations = Operations.from_config(MigratorConfig(request_timeout=300.0))
    >>> migration = Migration(credentials, operations=operations)
"""

from __future__ import annotations

import functools
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from pdsmigrate.config import MigratorConfig
from pdsmigrate.models import AccountStatuses, MigrationCredentials
from pdsmigrate.observability import create_tracer
from pdsmigrate.operations.account import create_new_account
from pdsmigrate.operations.data import migrate_data
from pdsmigrate.operations.finalize import finalize_migration
from pdsmigrate.operations.identity import migrate_identity, request_plc_operation
from pdsmigrate.operations.initialize import initialize_sessions
from pdsmigrate.operations.status import check_account_status
from pdsmigrate.session import SessionFactory, SessionPair, make_session_factory

InitializeSessions = Callable[[MigrationCredentials], Awaitable[SessionPair]]
CreateNewAccount = Callable[[SessionPair, MigrationCredentials], Awaitable[None]]
MigrateData = Callable[[SessionPair], Awaitable[None]]
RequestPlcOperation = Callable[[SessionPair], Awaitable[None]]
MigrateIdentity = Callable[[SessionPair, str], Awaitable[str]]
CheckAccountStatus = Callable[[SessionPair], Awaitable[AccountStatuses]]
FinalizeMigration = Callable[[SessionPair, MigrationCredentials], Awaitable[None]]


@dataclass(frozen=True)
class Operations:
    """
    The seven operations a Migration calls, one per transition.

    Every field defaults to the HTTP implementation in this package with
    default settings; use from_config() to share a configuration.
    """

    initialize_sessions: InitializeSessions = initialize_sessions
    create_new_account: CreateNewAccount = create_new_account
    migrate_data: MigrateData = migrate_data
    request_plc_operation: RequestPlcOperation = request_plc_operation
    migrate_identity: MigrateIdentity = migrate_identity
    check_account_status: CheckAccountStatus = check_account_status
    finalize_migration: FinalizeMigration = finalize_migration

    @classmethod
    def from_config(
        cls,
        config: MigratorConfig | None = None,
        session_factory: SessionFactory | None = None,
    ) -> Operations:
        """
        Build the HTTP operations for one configuration.

        Args:
            config: Settings for sessions and data copy.
            session_factory: Overrides how sessions are created, e.g. to
                inject an httpx transport.

        Returns:
            Operations bound to the configuration.
        """
        config = config or MigratorConfig()
        factory = session_factory or make_session_factory(config)
        return cls(
            initialize_sessions=functools.partial(initialize_sessions, session_factory=factory),
            migrate_data=functools.partial(
                migrate_data,
                page_size=config.blob_page_size,
                tracer=create_tracer(migrate_data.__module__, config.enable_tracing),
            ),
            finalize_migration=functools.partial(finalize_migration, session_factory=factory),
        )


__all__ = [
    "Operations",
    "InitializeSessions",
    "CreateNewAccount",
    "MigrateData",
    "RequestPlcOperation",
    "MigrateIdentity",
    "CheckAccountStatus",
    "FinalizeMigration",
    "initialize_sessions",
    "create_new_account",
    "migrate_data",
    "request_plc_operation",
    "migrate_identity",
    "check_account_status",
    "finalize_migration",
]
