"""
pdsmigrate - Resumable AT Protocol account migration between PDSes.

This library provides:
- A Migration state machine that can pause for the PLC confirmation
  token, be serialized, and resume in another process
- Validated migration credentials with temporary/final handle support
- XRPC sessions and the seven network operations of a migration
- A command line with interactive and JSON pipe modes
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pdsmigrate")
except PackageNotFoundError:
    # Package not installed (running from source without install)
    __version__ = "0.0.0.dev0"

from pdsmigrate.config import MigratorConfig
from pdsmigrate.exceptions import (
    AccountStatusError,
    CredentialsValidationError,
    FinalizedTransitionError,
    HandleUpdateError,
    MigrationInvariantError,
    MigrationTransitionError,
    MigrationValidationError,
    PdsMigrateError,
    SnapshotValidationError,
    XrpcError,
)
from pdsmigrate.migration import Migration, TransitionResult, drive_interactive
from pdsmigrate.models import (
    AccountStatus,
    AccountStatuses,
    MigrationCredentials,
    MigrationState,
    SingleHandle,
    SplitHandle,
    make_migration_credentials,
    requires_temporary_handle,
)
from pdsmigrate.operations import Operations
from pdsmigrate.session import SessionPair, XrpcSession
from pdsmigrate.validation import is_email, is_handle, is_http_url

__all__ = [
    "__version__",
    # Engine
    "Migration",
    "TransitionResult",
    "drive_interactive",
    "Operations",
    "MigratorConfig",
    # Models
    "MigrationState",
    "MigrationCredentials",
    "SingleHandle",
    "SplitHandle",
    "AccountStatus",
    "AccountStatuses",
    "make_migration_credentials",
    "requires_temporary_handle",
    # Sessions
    "SessionPair",
    "XrpcSession",
    # Validation
    "is_email",
    "is_handle",
    "is_http_url",
    # Exceptions
    "PdsMigrateError",
    "MigrationValidationError",
    "CredentialsValidationError",
    "SnapshotValidationError",
    "MigrationTransitionError",
    "AccountStatusError",
    "MigrationInvariantError",
    "FinalizedTransitionError",
    "HandleUpdateError",
    "XrpcError",
]
