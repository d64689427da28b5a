"""
Exceptions for the pdsmigrate package.

Every exception raised by the migration machinery inherits from
PdsMigrateError, so callers can catch the whole family with one handler.

Exception Hierarchy:
    PdsMigrateError (base)
    +-- MigrationValidationError
    |   +-- CredentialsValidationError
    |   +-- SnapshotValidationError
    +-- MigrationTransitionError
    +-- AccountStatusError
    +-- MigrationInvariantError
    +-- FinalizedTransitionError
    +-- HandleUpdateError
    +-- XrpcError

Error classification:
    Each exception type carries an ErrorClassification with a severity,
    an error code, a category and a suggested action for the operator.
    Nothing in this package retries automatically: a partially migrated
    account is sensitive state, so every failure is surfaced.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from pdsmigrate.models import MigrationState

logger = logging.getLogger(__name__)


class ErrorSeverity(Enum):
    """
    Severity level of migration errors.

    Attributes:
        CRITICAL: The account may be left in an inconsistent state.
            Examples: new account already active, invalid DID.
        ERROR: A step failed; the operator must inspect and resume.
            Examples: network failure while copying blobs.
        WARNING: The migration succeeded but needs manual follow-up.
            Examples: the final handle could not be applied.
    """

    CRITICAL = "critical"
    ERROR = "error"
    WARNING = "warning"

    @property
    def log_level(self) -> int:
        """
        Get the corresponding Python logging level.

        Returns:
            Python logging level constant.
        """
        level_map = {
            ErrorSeverity.CRITICAL: logging.CRITICAL,
            ErrorSeverity.ERROR: logging.ERROR,
            ErrorSeverity.WARNING: logging.WARNING,
        }
        return level_map[self]


@dataclass(frozen=True)
class ErrorClassification:
    """
    Metadata describing an error type.

    Attributes:
        severity: The severity level of the error.
        error_code: Unique error code for programmatic handling.
        category: One of "validation", "transition", "invariant",
            "programming" or "transport".
        suggested_action: Human-readable guidance for operators.
    """

    severity: ErrorSeverity
    error_code: str
    category: str
    suggested_action: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "severity": self.severity.value,
            "error_code": self.error_code,
            "category": self.category,
            "suggested_action": self.suggested_action,
        }


class PdsMigrateError(Exception):
    """
    Base exception for all pdsmigrate errors.

    Attributes:
        message: Human-readable error description.
        state: The migration state the error relates to, if any.
    """

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.ERROR,
        error_code="MIGRATION_ERROR",
        category="general",
        suggested_action="Review the migration output before retrying",
    )

    def __init__(self, message: str, *, state: MigrationState | None = None) -> None:
        self.message = message
        self.state = state
        super().__init__(message)

    @property
    def classification(self) -> ErrorClassification:
        """
        Get the error classification for this exception.

        Returns:
            ErrorClassification with severity, code and guidance.
        """
        return self._default_classification

    @property
    def severity(self) -> ErrorSeverity:
        return self.classification.severity

    @property
    def error_code(self) -> str:
        return self.classification.error_code

    def to_dict(self) -> dict[str, Any]:
        """
        Convert the exception to a dictionary for serialization.

        Returns:
            Dictionary representation of the error.
        """
        return {
            "message": self.message,
            "state": self.state.value if self.state is not None else None,
            "error_code": self.error_code,
            "classification": self.classification.to_dict(),
        }


class MigrationValidationError(PdsMigrateError):
    """Raised when migration input fails validation; the migration never starts."""

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.ERROR,
        error_code="MIGRATION_INVALID_INPUT",
        category="validation",
        suggested_action="Correct the input and run the migration again",
    )


class CredentialsValidationError(MigrationValidationError):
    """
    Raised when a raw credential bag is not a valid MigrationCredentials.

    Attributes:
        errors: One human-readable message per failing field.
    """

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.ERROR,
        error_code="MIGRATION_INVALID_CREDENTIALS",
        category="validation",
        suggested_action="Check endpoint URLs, handles and email address",
    )

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        self.errors = list(errors or [])
        if self.errors:
            message = f"{message}: " + "; ".join(self.errors)
        super().__init__(message)


class SnapshotValidationError(MigrationValidationError):
    """Raised when a serialized migration does not match its declared state."""

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.ERROR,
        error_code="MIGRATION_INVALID_SNAPSHOT",
        category="validation",
        suggested_action="Pass the exact output of the previous invocation",
    )


class MigrationTransitionError(PdsMigrateError):
    """
    Raised when a transition fails.

    The migration stays at the state it was in before the failing
    transition; the original exception is available as ``__cause__``.
    """

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.ERROR,
        error_code="MIGRATION_TRANSITION_FAILED",
        category="transition",
        suggested_action=(
            "Save the serialized migration, fix the cause and resume from the recorded state"
        ),
    )

    def __init__(self, state: MigrationState) -> None:
        super().__init__(f'Migration failed during state "{state.value}"', state=state)


class AccountStatusError(PdsMigrateError):
    """Raised when the new account's status shows a corrupted migration."""

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.CRITICAL,
        error_code="MIGRATION_ACCOUNT_STATUS",
        category="invariant",
        suggested_action="Inspect both accounts manually before doing anything else",
    )


class MigrationInvariantError(PdsMigrateError):
    """Raised when internal bookkeeping is violated (e.g. a set-once field set twice)."""

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.CRITICAL,
        error_code="MIGRATION_INVARIANT",
        category="invariant",
        suggested_action="Report this as a bug",
    )


class FinalizedTransitionError(PdsMigrateError):
    """Raised when something attempts to transition out of the Finalized state."""

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.CRITICAL,
        error_code="MIGRATION_ALREADY_FINALIZED",
        category="programming",
        suggested_action="Do not drive a finalized migration",
    )

    def __init__(self) -> None:
        from pdsmigrate.models import MigrationState

        super().__init__(
            "Cannot transition from Finalized state", state=MigrationState.FINALIZED
        )


class HandleUpdateError(PdsMigrateError):
    """
    Raised when the final handle could not be applied to the new account.

    The account has been migrated and activated; only the handle change
    is missing, and the temporary handle is still in effect.

    Attributes:
        temporary_handle: The handle the new account still uses.
        final_handle: The handle that could not be applied.
    """

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.WARNING,
        error_code="MIGRATION_HANDLE_UPDATE_FAILED",
        category="transition",
        suggested_action="Update the handle manually from the new PDS",
    )

    def __init__(self, temporary_handle: str, final_handle: str) -> None:
        self.temporary_handle = temporary_handle
        self.final_handle = final_handle
        super().__init__(
            f'Failed to update handle to "{final_handle}". '
            f'The account is still using the temporary handle "{temporary_handle}". '
            "Update the handle manually after saving the private key."
        )


class XrpcError(PdsMigrateError):
    """
    Raised when a PDS answers an XRPC call with a non-success status.

    Attributes:
        nsid: The method that was called.
        status: The HTTP status code.
        error: The XRPC error name from the response body, if any.
    """

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.ERROR,
        error_code="XRPC_REQUEST_FAILED",
        category="transport",
        suggested_action="Check the PDS URL and credentials",
    )

    def __init__(
        self,
        nsid: str,
        status: int,
        error: str | None = None,
        detail: str | None = None,
    ) -> None:
        self.nsid = nsid
        self.status = status
        self.error = error
        self.detail = detail
        message = f"XRPC call {nsid} failed with status {status}"
        if error:
            message += f" ({error})"
        if detail:
            message += f": {detail}"
        super().__init__(message)


__all__ = [
    "ErrorSeverity",
    "ErrorClassification",
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
