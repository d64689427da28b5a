"""
The resumable migration state machine.

A Migration moves an account from one PDS to another through a fixed
sequence of states. Each state has exactly one transition function; the
driver calls them in order, records the data they produce, and stops
either at the terminal Finalized state or at the single pause point,
RequestedPlcOperation, while the user waits for the emailed token.

Progress can be serialized at any point and resumed later, possibly in a
different process: only credentials and markers are stored, sessions are
re-created on resume.

Example:
    >>> migration = Migration(credentials)
    >>> await migration.run()
    <MigrationState.REQUESTED_PLC_OPERATION: 'RequestedPlcOperation'>
    >>> snapshot = migration.serialize()
    >>> ...
    >>> migration = await Migration.deserialize(snapshot)
    >>> migration.confirmation_token = "123456"
    >>> await migration.run()
    <MigrationState.FINALIZED: 'Finalized'>
    >>> migration.new_private_key
    '3f6c...'
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from pdsmigrate.exceptions import (
    AccountStatusError,
    FinalizedTransitionError,
    MigrationInvariantError,
    MigrationTransitionError,
    MigrationValidationError,
    SnapshotValidationError,
)
from pdsmigrate.models import (
    AccountStatuses,
    FinalSnapshot,
    MigratedIdentitySnapshot,
    MigrationCredentials,
    MigrationState,
    format_validation_errors,
    serialized_migration_adapter,
)
from pdsmigrate.observability import (
    ATTR_ACCOUNT_DID,
    ATTR_ERROR_TYPE,
    ATTR_MIGRATION_NEXT_STATE,
    ATTR_MIGRATION_PAUSED,
    ATTR_MIGRATION_STATE,
    Tracer,
    create_tracer,
)
from pdsmigrate.operations import Operations
from pdsmigrate.session import SessionPair

logger = logging.getLogger(__name__)


# =============================================================================
# Accumulated data
# =============================================================================


@dataclass
class MigrationData:
    """
    Data a migration accumulates as it advances.

    Only the credentials are known up front. The confirmation token and
    the new private key are each set exactly once; account statuses are
    replaced whenever they are re-checked.
    """

    credentials: MigrationCredentials
    confirmation_token: str | None = None
    new_private_key: str | None = None
    account_statuses: AccountStatuses | None = None

    def set_confirmation_token(self, token: str) -> None:
        if not token:
            raise MigrationValidationError("Confirmation token must not be empty")
        if self.confirmation_token is not None:
            raise MigrationInvariantError("Confirmation token already set")
        self.confirmation_token = token

    def set_new_private_key(self, private_key: str) -> None:
        if self.new_private_key is not None:
            raise MigrationInvariantError("New private key already set")
        self.new_private_key = private_key

    def merge(self, delta: MigrationDelta) -> None:
        """Apply the data produced by a transition."""
        if delta.new_private_key is not None:
            self.set_new_private_key(delta.new_private_key)
        if delta.account_statuses is not None:
            self.account_statuses = delta.account_statuses


@dataclass(frozen=True)
class MigrationDelta:
    """Data produced by one transition."""

    new_private_key: str | None = None
    account_statuses: AccountStatuses | None = None


@dataclass(frozen=True)
class TransitionResult:
    """
    Outcome of one transition.

    Attributes:
        next_state: The state to advance to.
        data: Data to merge into the migration, if any.
        sessions: The session pair, returned only by the first transition.
        is_paused: True if the transition could not proceed without
            outside input; the state does not change.
    """

    next_state: MigrationState
    data: MigrationDelta | None = None
    sessions: SessionPair | None = None
    is_paused: bool = False

    @classmethod
    def paused(cls, state: MigrationState) -> TransitionResult:
        """Stay at ``state`` until outside input arrives."""
        return cls(next_state=state, is_paused=True)


# =============================================================================
# Transitions
# =============================================================================

Transition = Callable[
    [Operations, MigrationData, SessionPair | None],
    Awaitable[TransitionResult],
]


def _require_sessions(sessions: SessionPair | None, state: MigrationState) -> SessionPair:
    if sessions is None:
        raise MigrationInvariantError(
            f'No sessions available in state "{state.value}"', state=state
        )
    return sessions


def _verify_new_account_status(statuses: AccountStatuses) -> None:
    if statuses.new.activated:
        raise AccountStatusError(
            "New account is already activated", state=MigrationState.MIGRATED_IDENTITY
        )
    if not statuses.new.valid_did:
        raise AccountStatusError(
            "New account has an invalid DID", state=MigrationState.MIGRATED_IDENTITY
        )


async def _initialize(
    operations: Operations, data: MigrationData, sessions: SessionPair | None
) -> TransitionResult:
    new_sessions = await operations.initialize_sessions(data.credentials)
    return TransitionResult(MigrationState.INITIALIZED, sessions=new_sessions)


async def _create_new_account(
    operations: Operations, data: MigrationData, sessions: SessionPair | None
) -> TransitionResult:
    sessions = _require_sessions(sessions, MigrationState.INITIALIZED)
    await operations.create_new_account(sessions, data.credentials)
    return TransitionResult(MigrationState.CREATED_NEW_ACCOUNT)


async def _migrate_data(
    operations: Operations, data: MigrationData, sessions: SessionPair | None
) -> TransitionResult:
    sessions = _require_sessions(sessions, MigrationState.CREATED_NEW_ACCOUNT)
    await operations.migrate_data(sessions)
    return TransitionResult(MigrationState.MIGRATED_DATA)


async def _request_plc_operation(
    operations: Operations, data: MigrationData, sessions: SessionPair | None
) -> TransitionResult:
    sessions = _require_sessions(sessions, MigrationState.MIGRATED_DATA)
    await operations.request_plc_operation(sessions)
    return TransitionResult(MigrationState.REQUESTED_PLC_OPERATION)


async def _migrate_identity(
    operations: Operations, data: MigrationData, sessions: SessionPair | None
) -> TransitionResult:
    if data.confirmation_token is None:
        return TransitionResult.paused(MigrationState.REQUESTED_PLC_OPERATION)
    sessions = _require_sessions(sessions, MigrationState.REQUESTED_PLC_OPERATION)
    private_key = await operations.migrate_identity(sessions, data.confirmation_token)
    return TransitionResult(
        MigrationState.MIGRATED_IDENTITY,
        data=MigrationDelta(new_private_key=private_key),
    )


async def _check_account_status(
    operations: Operations, data: MigrationData, sessions: SessionPair | None
) -> TransitionResult:
    sessions = _require_sessions(sessions, MigrationState.MIGRATED_IDENTITY)
    statuses = await operations.check_account_status(sessions)
    _verify_new_account_status(statuses)
    return TransitionResult(
        MigrationState.CHECKED_ACCOUNT_STATUS,
        data=MigrationDelta(account_statuses=statuses),
    )


async def _finalize(
    operations: Operations, data: MigrationData, sessions: SessionPair | None
) -> TransitionResult:
    sessions = _require_sessions(sessions, MigrationState.CHECKED_ACCOUNT_STATUS)
    await operations.finalize_migration(sessions, data.credentials)
    return TransitionResult(MigrationState.FINALIZED)


async def _finalized(
    operations: Operations, data: MigrationData, sessions: SessionPair | None
) -> TransitionResult:
    raise FinalizedTransitionError()


TRANSITIONS: Mapping[MigrationState, Transition] = {
    MigrationState.READY: _initialize,
    MigrationState.INITIALIZED: _create_new_account,
    MigrationState.CREATED_NEW_ACCOUNT: _migrate_data,
    MigrationState.MIGRATED_DATA: _request_plc_operation,
    MigrationState.REQUESTED_PLC_OPERATION: _migrate_identity,
    MigrationState.MIGRATED_IDENTITY: _check_account_status,
    MigrationState.CHECKED_ACCOUNT_STATUS: _finalize,
    MigrationState.FINALIZED: _finalized,
}
"""The transition function for every state."""


# =============================================================================
# Engine
# =============================================================================


class Migration:
    """
    A resumable PDS-to-PDS account migration.

    The migration owns its session pair: sessions are created by the
    first transition (or on deserialize) and released exactly once, by
    teardown() or aclose().

    Args:
        credentials: Validated migration credentials.
        state: State to start from (default READY).
        sessions: Existing session pair, for states past READY.
        operations: The network operations; defaults to the HTTP
            implementations with default settings.
        tracer: Optional tracer; created from ``enable_tracing`` if omitted.
        enable_tracing: Whether to emit spans when no tracer is given.

    Example:
        >>> migration = Migration(credentials)
        >>> async for state in migration.run_iter():
        ...     print(state.value)
    """

    def __init__(
        self,
        credentials: MigrationCredentials,
        state: MigrationState = MigrationState.READY,
        sessions: SessionPair | None = None,
        *,
        operations: Operations | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._state = state
        self._data = MigrationData(credentials=credentials)
        self._sessions = sessions
        self._operations = operations or Operations.from_config()
        self._tracer = tracer or create_tracer(__name__, enable_tracing)

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    @property
    def state(self) -> MigrationState:
        return self._state

    @property
    def credentials(self) -> MigrationCredentials:
        return self._data.credentials

    @property
    def account_did(self) -> str | None:
        """DID of the account, once sessions exist."""
        return self._sessions.account_did if self._sessions is not None else None

    @property
    def confirmation_token(self) -> str | None:
        return self._data.confirmation_token

    @confirmation_token.setter
    def confirmation_token(self, token: str) -> None:
        """
        Set the token emailed by the old PDS. Can only be set once.

        Raises:
            MigrationValidationError: If the token is empty.
            MigrationInvariantError: If a token was already set.
        """
        self._data.set_confirmation_token(token)

    @property
    def new_private_key(self) -> str | None:
        """Hex private key of the recovery key, once the identity is migrated."""
        return self._data.new_private_key

    @property
    def account_statuses(self) -> AccountStatuses | None:
        statuses = self._data.account_statuses
        return statuses.model_copy() if statuses is not None else None

    @property
    def is_paused(self) -> bool:
        """True while waiting for a confirmation token."""
        return (
            self._state.is_pause_point
            and self._data.confirmation_token is None
        )

    # -------------------------------------------------------------------------
    # Driving
    # -------------------------------------------------------------------------

    async def run(self) -> MigrationState:
        """
        Drive the migration until it pauses or finishes.

        Returns:
            REQUESTED_PLC_OPERATION if paused for a token, else FINALIZED.

        Raises:
            MigrationTransitionError: If a transition fails. The state stays
                at the last state reached.
        """
        async for _ in self.run_iter():
            pass
        return self._state

    async def run_iter(self) -> AsyncIterator[MigrationState]:
        """
        Drive the migration, yielding every state as it is reached.

        Yields the current state before each transition. Stops after
        yielding REQUESTED_PLC_OPERATION if no token is set; otherwise
        runs teardown on reaching FINALIZED and yields it last.

        Raises:
            MigrationTransitionError: If a transition fails.
        """
        while not self._state.is_terminal:
            yield self._state
            if self.is_paused:
                logger.info(
                    "Migration paused at %s, waiting for confirmation token",
                    self._state.value,
                )
                return
            await self.step()

        await self.teardown()
        logger.info("Migration finalized")
        yield self._state

    async def step(self) -> MigrationState:
        """
        Run the transition for the current state once.

        Returns:
            The state after the transition.

        Raises:
            FinalizedTransitionError: If the migration is already finalized.
            MigrationTransitionError: If the transition fails.
        """
        state = self._state
        if state.is_terminal:
            raise FinalizedTransitionError()

        attributes: dict[str, Any] = {ATTR_MIGRATION_STATE: state.value}
        if self.account_did is not None:
            attributes[ATTR_ACCOUNT_DID] = self.account_did

        with self._tracer.span("pdsmigrate.transition", attributes) as span:
            try:
                result = await TRANSITIONS[state](self._operations, self._data, self._sessions)
            except Exception as e:
                if span is not None:
                    span.set_attribute(ATTR_ERROR_TYPE, type(e).__name__)
                logger.error("Migration failed during state %s: %s", state.value, e)
                raise MigrationTransitionError(state) from e

            if span is not None:
                span.set_attribute(ATTR_MIGRATION_NEXT_STATE, result.next_state.value)
                span.set_attribute(ATTR_MIGRATION_PAUSED, result.is_paused)

        self._apply(state, result)
        return self._state

    def _apply(self, state: MigrationState, result: TransitionResult) -> None:
        if result.sessions is not None:
            self._sessions = result.sessions
        if result.data is not None:
            self._data.merge(result.data)
        if result.is_paused:
            logger.debug("Transition from %s paused", state.value)
            return
        self._state = result.next_state
        logger.info("Migration advanced: %s -> %s", state.value, self._state.value)

    # -------------------------------------------------------------------------
    # Resource release
    # -------------------------------------------------------------------------

    async def teardown(self) -> None:
        """
        Finalize the migration and release its sessions. Idempotent.

        Both sessions are logged out concurrently; a failure to log out
        of one is logged and does not affect the other.
        """
        self._state = MigrationState.FINALIZED
        await self._release_sessions()

    async def aclose(self) -> None:
        """Release the sessions without changing state, e.g. after a pause or failure."""
        await self._release_sessions()

    async def _release_sessions(self) -> None:
        sessions, self._sessions = self._sessions, None
        if sessions is None:
            return
        results = await asyncio.gather(
            sessions.old.logout(),
            sessions.new.logout(),
            return_exceptions=True,
        )
        for label, result in zip(("old", "new"), results, strict=True):
            if isinstance(result, Exception):
                logger.warning("Failed to log out of %s PDS: %s", label, result)

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def serialize(self) -> dict[str, Any]:
        """
        Project the migration onto its wire form.

        Fields that are not populated yet are omitted.

        Returns:
            JSON-compatible dict with camelCase keys.
        """
        data: dict[str, Any] = {
            "state": self._state.value,
            "credentials": self._data.credentials.to_wire(),
        }
        if self._data.confirmation_token is not None:
            data["confirmationToken"] = self._data.confirmation_token
        if self._data.new_private_key is not None:
            data["newPrivateKey"] = self._data.new_private_key
        if self._data.account_statuses is not None:
            data["accountStatuses"] = self._data.account_statuses.to_wire()
        return data

    @classmethod
    async def deserialize(
        cls,
        data: Any,
        *,
        operations: Operations | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> Migration:
        """
        Rebuild a migration from its wire form and reconnect its sessions.

        Sessions are re-created for any state past READY: the old PDS is
        logged into first, then, once the new account exists, the new
        PDS. Account statuses recorded in the snapshot are re-checked
        rather than trusted. If reconnecting fails part way, the sessions
        opened so far are logged out before the error propagates.

        Args:
            data: The output of serialize(), typically parsed from JSON.
            operations: The network operations.
            tracer: Optional tracer.
            enable_tracing: Whether to emit spans when no tracer is given.

        Returns:
            The migration, in the serialized state.

        Raises:
            SnapshotValidationError: If ``data`` does not match the fields
                its state requires.
            XrpcError: If logging into either PDS fails.
        """
        if not isinstance(data, Mapping):
            raise SnapshotValidationError("Serialized migration must be an object")
        try:
            snapshot = serialized_migration_adapter.validate_python(data)
        except ValidationError as e:
            raise SnapshotValidationError(
                "Invalid serialized migration: " + "; ".join(format_validation_errors(e))
            ) from e

        migration = cls(
            snapshot.credentials,
            MigrationState(snapshot.state),
            operations=operations,
            tracer=tracer,
            enable_tracing=enable_tracing,
        )
        if snapshot.confirmation_token is not None:
            migration._data.set_confirmation_token(snapshot.confirmation_token)
        if isinstance(snapshot, MigratedIdentitySnapshot | FinalSnapshot):
            migration._data.set_new_private_key(snapshot.new_private_key)
        if isinstance(snapshot, FinalSnapshot):
            migration._data.account_statuses = snapshot.account_statuses

        logger.debug("Resuming migration with credentials %s", migration.credentials.redacted())
        await migration._restore_sessions()
        logger.info("Resumed migration at %s", migration.state.value)
        return migration

    async def _restore_sessions(self) -> None:
        state = self._state
        if state is MigrationState.READY:
            return

        credentials = self._data.credentials
        sessions = await self._operations.initialize_sessions(credentials)
        self._sessions = sessions

        try:
            if state.is_at_or_after(MigrationState.CREATED_NEW_ACCOUNT):
                # The final handle is only applied by the last transition.
                handle = (
                    credentials.final_handle
                    if state.is_terminal
                    else credentials.migration_handle
                )
                await sessions.new.login(handle, credentials.new_password)

            if state.is_at_or_after(MigrationState.CHECKED_ACCOUNT_STATUS):
                self._data.account_statuses = await self._operations.check_account_status(
                    sessions
                )
        except BaseException:
            await self._release_sessions()
            raise


# =============================================================================
# Interactive driver
# =============================================================================

CredentialSupplier = Callable[[], Awaitable[MigrationCredentials | None]]
TokenSupplier = Callable[[MigrationCredentials], Awaitable[str]]


async def drive_interactive(
    credential_supplier: CredentialSupplier,
    token_supplier: TokenSupplier,
    *,
    operations: Operations | None = None,
    on_state: Callable[[MigrationState], None] | None = None,
    on_failure: Callable[[Migration], Awaitable[None]] | None = None,
    enable_tracing: bool = True,
) -> str | None:
    """
    Run a whole migration, asking for the confirmation token midway.

    Args:
        credential_supplier: Returns credentials, or None to cancel.
        token_supplier: Returns the emailed token for the credentials.
        operations: The network operations.
        on_state: Called with every state reached, for progress display.
        on_failure: Awaited with the migration before an error propagates,
            so the caller can still show the private key.
        enable_tracing: Whether to emit spans.

    Returns:
        The new private key, or None if the credential supplier cancelled.

    Raises:
        MigrationTransitionError: If a transition fails.
        MigrationInvariantError: If the migration does not pause or finish
            where expected, or finishes without a private key.
    """
    credentials = await credential_supplier()
    if credentials is None:
        return None

    migration = Migration(credentials, operations=operations, enable_tracing=enable_tracing)
    try:
        state = await _drive(migration, on_state)
        if not state.is_pause_point:
            raise MigrationInvariantError(
                f'Unexpected migration state "{state.value}" after initial run', state=state
            )

        migration.confirmation_token = await token_supplier(credentials)

        state = await _drive(migration, on_state)
        if not state.is_terminal:
            raise MigrationInvariantError(
                f'Unexpected migration state "{state.value}" after resuming migration',
                state=state,
            )
        if migration.new_private_key is None:
            raise MigrationInvariantError("No private key found after migration", state=state)
        return migration.new_private_key
    except Exception:
        if on_failure is not None:
            await on_failure(migration)
        await migration.aclose()
        raise


async def _drive(
    migration: Migration,
    on_state: Callable[[MigrationState], None] | None,
) -> MigrationState:
    async for state in migration.run_iter():
        if on_state is not None:
            on_state(state)
    return migration.state


__all__ = [
    "Migration",
    "MigrationData",
    "MigrationDelta",
    "TransitionResult",
    "Transition",
    "TRANSITIONS",
    "CredentialSupplier",
    "TokenSupplier",
    "drive_interactive",
]
