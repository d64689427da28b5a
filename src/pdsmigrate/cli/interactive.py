"""
Interactive mode: prompt for credentials and the confirmation token.

The migration runs in one process: credentials are collected, the
migration runs until the old PDS has emailed the PLC token, the user
types it in and the migration finishes. The new recovery key is printed
at the end, and also on failure if it was already generated.
"""

from __future__ import annotations

import logging

import click

from pdsmigrate.migration import Migration, drive_interactive
from pdsmigrate.models import (
    MigrationCredentials,
    MigrationState,
    make_migration_credentials,
    requires_temporary_handle,
)
from pdsmigrate.operations import Operations
from pdsmigrate.validation import (
    hostname_of,
    is_email,
    is_handle,
    is_http_url,
    is_pds_subdomain,
    normalize_url,
    strip_handle_prefix,
)

logger = logging.getLogger(__name__)

DEFAULT_OLD_PDS_URL = "https://bsky.social"

PROGRESS_MESSAGES: dict[MigrationState, str] = {
    MigrationState.READY: "Initializing migration...",
    MigrationState.INITIALIZED: "Creating new account...",
    MigrationState.CREATED_NEW_ACCOUNT: "Migrating data... (this may take a while)",
    MigrationState.MIGRATED_DATA: "Requesting PLC operation...",
    MigrationState.REQUESTED_PLC_OPERATION: "Migrating identity...",
    MigrationState.MIGRATED_IDENTITY: "Checking account status...",
    MigrationState.CHECKED_ACCOUNT_STATUS: "Finalizing migration...",
}


# ---------------------------------------------------------------------------
# Prompt validators
# ---------------------------------------------------------------------------


def validate_url(value: str) -> str:
    url = normalize_url(value.strip())
    if not is_http_url(url):
        raise click.BadParameter("Must be a valid URL")
    return url


def validate_string(value: str) -> str:
    if not value:
        raise click.BadParameter("Must be a non-empty string")
    return value


def validate_email(value: str) -> str:
    value = value.strip()
    if not is_email(value):
        raise click.BadParameter("Must be a valid email address")
    return value


def validate_handle(value: str) -> str:
    handle = strip_handle_prefix(value.strip())
    if not is_handle(handle):
        raise click.BadParameter("Must be a valid handle")
    return handle


def temporary_handle_validator(new_pds_hostname: str):
    """Build a validator accepting only handles under the new PDS's hostname."""

    def validate(value: str) -> str:
        handle = strip_handle_prefix(value.strip())
        if not is_handle(handle) or not is_pds_subdomain(handle, new_pds_hostname):
            raise click.BadParameter(
                "Must be a valid handle and a subdomain of the new PDS hostname"
            )
        return handle

    return validate


def default_temporary_handle(handle: str, new_pds_hostname: str) -> str:
    """
    Suggest a temporary handle for a custom-domain handle.

    Example:
        >>> default_temporary_handle("alice.example.com", "pds.example.net")
        'alice-temp.pds.example.net'
    """
    return f"{handle.split('.')[0]}-temp.{new_pds_hostname}"


# ---------------------------------------------------------------------------
# Suppliers
# ---------------------------------------------------------------------------


async def prompt_credentials() -> MigrationCredentials | None:
    """
    Ask for the migration credentials.

    Returns:
        The validated credentials, or None if the user declines to proceed.
    """
    old_pds_url = click.prompt(
        "Enter the current PDS URL",
        default=DEFAULT_OLD_PDS_URL,
        value_proc=validate_url,
    )
    old_handle = click.prompt(
        "Enter the full current handle (e.g. user.bsky.social, user.com)",
        value_proc=validate_handle,
    )
    old_password = click.prompt(
        "Enter the password for the current account",
        hide_input=True,
        value_proc=validate_string,
    )
    invite_code = click.prompt(
        "Enter the invite code for the new account (from the new PDS)",
        value_proc=validate_string,
    )
    new_pds_url = click.prompt("Enter the new PDS URL", value_proc=validate_url)
    new_pds_hostname = hostname_of(new_pds_url)

    handle = click.prompt(
        f"Enter the desired new handle (e.g. user.{new_pds_hostname})",
        value_proc=validate_handle,
    )
    new_handle: dict[str, str] = {"handle": handle}
    if requires_temporary_handle(handle, new_pds_hostname):
        click.echo(
            "You are using a custom handle. This requires a temporary handle "
            "that will be used during the migration."
        )
        temporary_handle = click.prompt(
            "Enter the desired temporary new handle",
            default=default_temporary_handle(handle, new_pds_hostname),
            value_proc=temporary_handle_validator(new_pds_hostname),
        )
        new_handle = {"temporaryHandle": temporary_handle, "finalHandle": handle}

    new_email = click.prompt(
        "Enter the desired email address for the new account",
        value_proc=validate_email,
    )
    new_password = click.prompt(
        "Enter the desired password for the new account",
        hide_input=True,
        confirmation_prompt="Confirm the password for the new account",
        value_proc=validate_string,
    )

    credentials = make_migration_credentials(
        {
            "oldPdsUrl": old_pds_url,
            "newPdsUrl": new_pds_url,
            "oldHandle": old_handle,
            "oldPassword": old_password,
            "inviteCode": invite_code,
            "newHandle": new_handle,
            "newEmail": new_email,
            "newPassword": new_password,
        }
    )

    show_credentials(credentials)
    if not click.confirm("Perform the migration with these credentials?", default=True):
        logger.info("Migration cancelled at confirmation")
        return None
    return credentials


async def prompt_confirmation_token(credentials: MigrationCredentials) -> str:
    """Ask for the token the old PDS emailed."""
    click.echo()
    click.echo(f"Email challenge requested from old PDS ({credentials.old_pds_url}).")
    click.echo("An email should have been sent to the old account's email address.")
    click.echo()
    return click.prompt(
        "Enter the confirmation token from the challenge email",
        value_proc=validate_string,
    )


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------


def show_introduction() -> None:
    click.secho(
        "This is a community-maintained tool that has no affiliation with Bluesky. "
        "Use at your own risk.",
        fg="yellow",
    )
    click.echo()
    click.secho(
        "At the end of the migration, the private key of the new account's recovery "
        "key is printed. You must save it in a secure location, or you could lose "
        "access to your account.",
        fg="yellow",
    )
    click.echo()


def show_credentials(credentials: MigrationCredentials) -> None:
    labels = [
        ("Current PDS URL", credentials.old_pds_url),
        ("Current handle", credentials.old_handle),
        ("Current password", "********"),
        ("Invite code", credentials.invite_code),
        ("New PDS URL", credentials.new_pds_url),
    ]
    if credentials.uses_temporary_handle:
        labels.append(("New handle (temporary)", credentials.migration_handle))
        labels.append(("New handle (final)", credentials.final_handle))
    else:
        labels.append(("New handle", credentials.final_handle))
    labels.append(("New email", credentials.new_email))
    labels.append(("New password", "********"))

    click.echo()
    for label, value in labels:
        click.echo(f"{click.style(label + ':', bold=True)} {click.style(value, fg='green')}")
    click.echo()


def show_progress(state: MigrationState) -> None:
    message = PROGRESS_MESSAGES.get(state)
    if message:
        click.echo(message)


def show_private_key(private_key: str) -> None:
    click.pause("Press any key to view the new account's private key...")
    click.echo()
    click.echo("The new account's private key is:")
    click.echo("=" * 64)
    click.echo(private_key)
    click.echo("=" * 64)
    click.echo()


async def report_failure(migration: Migration) -> None:
    """Tell the user where the migration stopped and show the key if it exists."""
    click.echo()
    click.secho(f'Migration failed during state "{migration.state.value}"', fg="red", err=True)
    if migration.state is not MigrationState.READY:
        click.secho(
            "The migration has created a new account, but it may not be ready to use yet.",
            fg="red",
            err=True,
        )
    if migration.new_private_key is not None:
        click.secho("You should still save the private key in a secure location.", fg="red")
        show_private_key(migration.new_private_key)


async def run_interactive(
    *,
    operations: Operations | None = None,
    enable_tracing: bool = True,
) -> str | None:
    """
    Run a complete interactive migration.

    Returns:
        The new private key, or None if the user cancelled.
    """
    show_introduction()
    private_key = await drive_interactive(
        prompt_credentials,
        prompt_confirmation_token,
        operations=operations,
        on_state=show_progress,
        on_failure=report_failure,
        enable_tracing=enable_tracing,
    )
    if private_key is None:
        return None

    click.echo()
    click.secho("Migration completed successfully!", fg="green", bold=True)
    click.secho(
        "You must save the private key in a secure location, "
        "or you could lose access to your account.",
        fg="yellow",
    )
    show_private_key(private_key)
    return private_key
