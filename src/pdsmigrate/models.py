"""
Data models for the account migration state machine.

This module defines the states a migration moves through, the validated
credential model, the account status snapshot used for the consistency
check, and the per-state schemas of the serialized (wire) form.

Models in this module:

Enums:
    - MigrationState: Strictly ordered migration states

Credentials:
    - SingleHandle / SplitHandle: The two shapes of the new handle
    - MigrationCredentials: Validated migration inputs

Status:
    - AccountStatus: Per-PDS account status snapshot
    - AccountStatuses: Old and new account status pair

Snapshots:
    - PreIdentitySnapshot, MigratedIdentitySnapshot, FinalSnapshot:
      Serialized migration shapes, discriminated by ``state``
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from pdsmigrate.exceptions import CredentialsValidationError
from pdsmigrate.validation import (
    hostname_of,
    is_email,
    is_handle,
    is_http_url,
    is_pds_subdomain,
)


class MigrationState(Enum):
    """
    Migration states, in the only order they can be visited.

    State machine transitions:
        READY -> INITIALIZED -> CREATED_NEW_ACCOUNT -> MIGRATED_DATA
            -> REQUESTED_PLC_OPERATION -(pause)-> MIGRATED_IDENTITY
            -> CHECKED_ACCOUNT_STATUS -> FINALIZED

    REQUESTED_PLC_OPERATION loops onto itself until a confirmation token
    is available. FINALIZED is terminal.
    """

    READY = "Ready"
    """Credentials are known; nothing has happened yet."""

    INITIALIZED = "Initialized"
    """Logged into the old PDS; the account DID is known."""

    CREATED_NEW_ACCOUNT = "CreatedNewAccount"
    """The account exists on the new PDS (deactivated)."""

    MIGRATED_DATA = "MigratedData"
    """Repository, blobs and preferences have been copied."""

    REQUESTED_PLC_OPERATION = "RequestedPlcOperation"
    """A PLC operation signature was requested; waiting for the emailed token."""

    MIGRATED_IDENTITY = "MigratedIdentity"
    """The signed PLC operation was submitted to the new PDS."""

    CHECKED_ACCOUNT_STATUS = "CheckedAccountStatus"
    """Both account statuses were recorded and found consistent."""

    FINALIZED = "Finalized"
    """The new account is active and the old one deactivated."""

    @property
    def ordinal(self) -> int:
        """Position of this state in the migration order."""
        return _STATE_ORDER.index(self)

    @property
    def is_terminal(self) -> bool:
        return self is MigrationState.FINALIZED

    @property
    def is_pause_point(self) -> bool:
        """Only REQUESTED_PLC_OPERATION may wait for outside input."""
        return self is MigrationState.REQUESTED_PLC_OPERATION

    def is_at_or_after(self, other: MigrationState) -> bool:
        """
        Check whether this state comes at or after another state.

        Args:
            other: The state to compare against.

        Returns:
            True if this state is ``other`` or a later state.
        """
        return self.ordinal >= other.ordinal


_STATE_ORDER: tuple[MigrationState, ...] = tuple(MigrationState)


class _WireModel(BaseModel):
    """Frozen model with camelCase wire aliases and no unknown keys."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_wire(self) -> dict[str, Any]:
        """Dump using wire aliases, leaving out unset optional fields."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def _check_handle(value: str) -> str:
    if not is_handle(value):
        raise ValueError(f"{value!r} is not a valid handle")
    return value


class SingleHandle(_WireModel):
    """The new handle is usable from the start of the migration."""

    handle: str

    @field_validator("handle")
    @classmethod
    def validate_handle(cls, value: str) -> str:
        return _check_handle(value)


class SplitHandle(_WireModel):
    """
    A custom handle that can only be applied once the migration is done.

    The temporary handle is used to create the account on the new PDS and
    must be a subdomain of that PDS's hostname; the final handle replaces
    it after the account is activated.
    """

    temporary_handle: str
    final_handle: str

    @field_validator("temporary_handle", "final_handle")
    @classmethod
    def validate_handles(cls, value: str) -> str:
        return _check_handle(value)


NewHandle = SingleHandle | SplitHandle


class MigrationCredentials(_WireModel):
    """
    Everything needed to migrate an account, validated.

    **WARNING:** Holds passwords in plaintext. They are excluded from
    ``repr()`` but included in ``to_wire()``.

    Attributes:
        old_pds_url: URL of the PDS currently hosting the account.
        new_pds_url: URL of the PDS the account moves to.
        old_handle: Handle used to log into the old PDS.
        old_password: Password of the old account.
        new_handle: SingleHandle or SplitHandle for the new account.
        new_email: Email address of the new account.
        new_password: Password of the new account.
        invite_code: Invite code issued by the new PDS.
    """

    old_pds_url: str
    new_pds_url: str
    old_handle: str
    old_password: str = Field(min_length=1, repr=False)
    new_handle: NewHandle
    new_email: str
    new_password: str = Field(min_length=1, repr=False)
    invite_code: str = Field(min_length=1)

    @field_validator("old_pds_url", "new_pds_url")
    @classmethod
    def validate_url(cls, value: str) -> str:
        if not is_http_url(value):
            raise ValueError(f"{value!r} is not a valid HTTP or HTTPS URL")
        return value

    @field_validator("old_handle")
    @classmethod
    def validate_old_handle(cls, value: str) -> str:
        return _check_handle(value)

    @field_validator("new_email")
    @classmethod
    def validate_email(cls, value: str) -> str:
        if not is_email(value):
            raise ValueError(f"{value!r} is not a valid email address")
        return value

    @model_validator(mode="after")
    def validate_new_handle_placement(self) -> MigrationCredentials:
        hostname = self.new_pds_hostname
        if isinstance(self.new_handle, SplitHandle):
            if not is_pds_subdomain(self.new_handle.temporary_handle, hostname):
                raise ValueError(
                    f"temporary handle {self.new_handle.temporary_handle!r} "
                    f"must be a subdomain of the new PDS hostname {hostname!r}"
                )
        elif requires_temporary_handle(self.new_handle.handle, hostname):
            raise ValueError(
                f"handle {self.new_handle.handle!r} is not a subdomain of the new PDS "
                f"hostname {hostname!r}; provide temporaryHandle and finalHandle instead"
            )
        return self

    @property
    def new_pds_hostname(self) -> str:
        return hostname_of(self.new_pds_url)

    @property
    def uses_temporary_handle(self) -> bool:
        return isinstance(self.new_handle, SplitHandle)

    @property
    def migration_handle(self) -> str:
        """The handle the new account has while the migration runs."""
        if isinstance(self.new_handle, SplitHandle):
            return self.new_handle.temporary_handle
        return self.new_handle.handle

    @property
    def final_handle(self) -> str:
        """The handle the new account should end up with."""
        if isinstance(self.new_handle, SplitHandle):
            return self.new_handle.final_handle
        return self.new_handle.handle

    def redacted(self) -> dict[str, Any]:
        """Wire form with both passwords masked, for display."""
        data = self.to_wire()
        data["oldPassword"] = "********"
        data["newPassword"] = "********"
        return data


def requires_temporary_handle(handle: str, new_pds_hostname: str) -> bool:
    """
    Check whether a desired handle needs the temporary/final split.

    A handle that is not under the new PDS's hostname cannot be created
    there directly; the account is created with a temporary subdomain
    handle and renamed at the end.

    Example:
        >>> requires_temporary_handle("a.b.com", "b.com")
        False
        >>> requires_temporary_handle("a.other.com", "b.com")
        True
    """
    return not is_pds_subdomain(handle, new_pds_hostname)


def make_migration_credentials(
    raw: Mapping[str, Any] | MigrationCredentials,
) -> MigrationCredentials:
    """
    Validate a raw credential bag.

    Args:
        raw: Mapping using either wire (camelCase) or attribute names.

    Returns:
        The validated credentials.

    Raises:
        CredentialsValidationError: If any field is missing or malformed.
    """
    if isinstance(raw, MigrationCredentials):
        return raw
    try:
        return MigrationCredentials.model_validate(raw)
    except ValidationError as error:
        raise CredentialsValidationError(
            "Invalid migration credentials", errors=format_validation_errors(error)
        ) from error


def format_validation_errors(error: ValidationError) -> list[str]:
    """Render pydantic errors as "location: message" strings, without input values."""
    messages = []
    for detail in error.errors():
        location = ".".join(str(part) for part in detail["loc"]) or "<root>"
        messages.append(f"{location}: {detail['msg']}")
    return messages


class AccountStatus(BaseModel):
    """
    Status of the account on one PDS, as reported by checkAccountStatus.

    Attributes:
        activated: Whether the account is active on this PDS.
        valid_did: Whether the DID document points at this PDS.
        repo_commit: CID of the current repository commit.
        repo_rev: Revision of the current repository commit.
        repo_blocks: Number of repository blocks.
        indexed_records: Number of indexed records.
        private_state_values: Number of private state values (preferences).
        expected_blobs: Number of blobs referenced by records.
        imported_blobs: Number of blobs actually stored.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    activated: bool
    valid_did: bool
    repo_commit: str
    repo_rev: str
    repo_blocks: int
    indexed_records: int
    private_state_values: int
    expected_blobs: int
    imported_blobs: int

    @property
    def missing_blobs(self) -> int:
        return max(0, self.expected_blobs - self.imported_blobs)


class AccountStatuses(_WireModel):
    """Account status on the old and the new PDS."""

    old: AccountStatus
    new: AccountStatus


# =============================================================================
# Serialized migration schemas
# =============================================================================

PreIdentityStateName = Literal[
    "Ready",
    "Initialized",
    "CreatedNewAccount",
    "MigratedData",
    "RequestedPlcOperation",
]


class PreIdentitySnapshot(_WireModel):
    """Serialized migration in any state before the identity was migrated."""

    state: PreIdentityStateName
    credentials: MigrationCredentials
    confirmation_token: str | None = Field(default=None, min_length=1)


class MigratedIdentitySnapshot(_WireModel):
    """Serialized migration right after the PLC operation was submitted."""

    state: Literal["MigratedIdentity"]
    credentials: MigrationCredentials
    confirmation_token: str = Field(min_length=1)
    new_private_key: str = Field(min_length=1)


class FinalSnapshot(_WireModel):
    """Serialized migration once account statuses have been checked."""

    state: Literal["CheckedAccountStatus", "Finalized"]
    credentials: MigrationCredentials
    confirmation_token: str = Field(min_length=1)
    new_private_key: str = Field(min_length=1)
    account_statuses: AccountStatuses


SerializedMigration = Annotated[
    PreIdentitySnapshot | MigratedIdentitySnapshot | FinalSnapshot,
    Field(discriminator="state"),
]

serialized_migration_adapter: TypeAdapter[
    PreIdentitySnapshot | MigratedIdentitySnapshot | FinalSnapshot
] = TypeAdapter(SerializedMigration)


__all__ = [
    "MigrationState",
    "SingleHandle",
    "SplitHandle",
    "NewHandle",
    "MigrationCredentials",
    "requires_temporary_handle",
    "make_migration_credentials",
    "format_validation_errors",
    "AccountStatus",
    "AccountStatuses",
    "PreIdentitySnapshot",
    "MigratedIdentitySnapshot",
    "FinalSnapshot",
    "SerializedMigration",
    "serialized_migration_adapter",
]
