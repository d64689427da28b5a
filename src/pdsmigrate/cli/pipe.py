"""
Pipe mode: resume a migration from JSON on stdin, write its state to stdout.

Each invocation reads one serialized migration, drives it as far as it
can go and writes the resulting state as one compact JSON line. The
first invocation pauses at RequestedPlcOperation; add
``confirmationToken`` to its output and pipe it back in to finish:

    $ pdsmigrate migrate --pipe < start.json > paused.json
    $ jq '.confirmationToken = "123456"' paused.json | pdsmigrate migrate --pipe
"""

from __future__ import annotations

import json
import logging
from typing import Any, TextIO

from pdsmigrate.exceptions import MigrationInvariantError, MigrationValidationError
from pdsmigrate.migration import Migration
from pdsmigrate.models import MigrationState
from pdsmigrate.operations import Operations

logger = logging.getLogger(__name__)


async def handle_pipe(
    stdin: TextIO,
    stdout: TextIO,
    *,
    operations: Operations | None = None,
    enable_tracing: bool = True,
) -> MigrationState:
    """
    Run one pipe-mode invocation.

    Once the input has been deserialized, the migration's state is
    written to ``stdout`` whether or not the run succeeds.

    Args:
        stdin: Stream holding one serialized migration.
        stdout: Stream the resulting state is written to.
        operations: The network operations.
        enable_tracing: Whether to emit spans.

    Returns:
        The state the migration stopped at.

    Raises:
        MigrationValidationError: If the input is not a valid serialized
            migration, or resuming it failed.
        MigrationInvariantError: If the migration stopped at an unexpected state.
        MigrationTransitionError: If a transition failed.
    """
    raw = _parse_input(stdin.read())

    try:
        migration = await Migration.deserialize(
            raw, operations=operations, enable_tracing=enable_tracing
        )
    except Exception as e:
        raise MigrationValidationError("Invalid migration arguments") from e

    expected = (
        MigrationState.REQUESTED_PLC_OPERATION
        if migration.confirmation_token is None
        else MigrationState.FINALIZED
    )
    try:
        state = await migration.run()
        if state is not expected:
            raise MigrationInvariantError(
                f'Unexpected migration state "{state.value}" after run', state=state
            )
        logger.info("Pipe run stopped at %s", state.value)
        return state
    finally:
        write_state(stdout, migration.serialize())
        await migration.aclose()


def _parse_input(text: str) -> dict[str, Any]:
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as e:
        raise MigrationValidationError("Invalid input: must be JSON") from e
    if not isinstance(raw, dict):
        raise MigrationValidationError("Invalid input: must be a plain JSON object")
    return raw


def write_state(stdout: TextIO, data: dict[str, Any]) -> None:
    """Write a serialized migration as one compact JSON line."""
    stdout.write(json.dumps(data, separators=(",", ":")) + "\n")
    stdout.flush()
