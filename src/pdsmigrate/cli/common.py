"""Shared CLI infrastructure: the CLI group, logging setup and error reporting."""

from __future__ import annotations

import logging
import sys
import traceback

import click

import pdsmigrate
from pdsmigrate.exceptions import PdsMigrateError

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_handler: logging.Handler | None = None


def configure_logging(verbose: int = 0) -> None:
    """
    Send pdsmigrate logs to stderr.

    stdout is reserved for prompts and the pipe protocol. Calling this
    again replaces the handler installed by the previous call.

    Args:
        verbose: 0 for warnings only, 1 for info, 2 or more for debug.
    """
    global _handler

    if verbose >= 2:
        level = logging.DEBUG
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.WARNING

    package_logger = logging.getLogger("pdsmigrate")
    if _handler is not None:
        package_logger.removeHandler(_handler)

    _handler = logging.StreamHandler(sys.stderr)
    _handler.setFormatter(logging.Formatter(LOG_FORMAT))
    package_logger.addHandler(_handler)
    package_logger.setLevel(level)


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=pdsmigrate.__version__, prog_name="pdsmigrate")
def cli() -> None:
    """Migrate an AT Protocol account from one PDS to another."""


def error_lines(e: BaseException) -> list[str]:
    """
    Describe an error and its causes, outermost first.

    Args:
        e: The error to describe.

    Returns:
        "Error: ..." followed by one "Caused by: ..." line per cause.
    """
    lines = [f"Error: {e}"]
    cause = e.__cause__
    while cause is not None:
        lines.append(f"Caused by: {cause}")
        cause = cause.__cause__
    return lines


def handle_exception(e: BaseException, debug: bool = False) -> None:
    """
    Report an error on stderr.

    The innermost pdsmigrate error in the cause chain is also logged at
    the level of its severity, with its suggested action.

    Args:
        e: The error to report.
        debug: Print the full traceback as well.
    """
    for line in error_lines(e):
        click.echo(line, err=True)
    origin = _innermost_migration_error(e)
    if origin is not None:
        logger.log(
            origin.severity.log_level,
            "%s: %s",
            origin.error_code,
            origin.classification.suggested_action,
        )
    if debug:
        click.echo("".join(traceback.format_exception(e)), err=True)


def _innermost_migration_error(e: BaseException) -> PdsMigrateError | None:
    found = None
    current: BaseException | None = e
    while current is not None:
        if isinstance(current, PdsMigrateError):
            found = current
        current = current.__cause__
    return found
