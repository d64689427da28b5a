"""Activate the new account, deactivate the old one, set the final handle."""

from __future__ import annotations

import logging

import httpx

from pdsmigrate.exceptions import HandleUpdateError, XrpcError
from pdsmigrate.models import MigrationCredentials
from pdsmigrate.session import SessionFactory, SessionPair, XrpcSession

logger = logging.getLogger(__name__)


async def finalize_migration(
    sessions: SessionPair,
    credentials: MigrationCredentials,
    *,
    session_factory: SessionFactory = XrpcSession,
) -> None:
    """
    Switch the account over to the new PDS.

    1. Activate the account on the new PDS.
    2. Log into the old PDS again and deactivate the account there.
    3. If a temporary handle was used, update it to the final handle.

    The old PDS requires a fresh session for deactivation, so a separate
    session is created, used once and logged out.

    Args:
        sessions: The session pair, both logged in.
        credentials: The migration credentials.
        session_factory: Creates the fresh old-PDS session.

    Raises:
        XrpcError: If activation or deactivation fails.
        HandleUpdateError: If the final handle could not be set. The
            account is migrated at that point, under the temporary handle.
    """
    await sessions.new.procedure("com.atproto.server.activateAccount")
    logger.info("Activated %s on %s", sessions.account_did, credentials.new_pds_url)

    old = session_factory(credentials.old_pds_url)
    try:
        await old.login(credentials.old_handle, credentials.old_password)
        await old.procedure("com.atproto.server.deactivateAccount", {})
        logger.info("Deactivated %s on %s", sessions.account_did, credentials.old_pds_url)
    finally:
        try:
            await old.logout()
        except (XrpcError, httpx.HTTPError) as e:
            logger.warning("Failed to log out of %s: %s", credentials.old_pds_url, e)

    if credentials.final_handle == credentials.migration_handle:
        return

    try:
        await sessions.new.procedure(
            "com.atproto.identity.updateHandle",
            {"handle": credentials.final_handle},
        )
    except (XrpcError, httpx.HTTPError) as e:
        raise HandleUpdateError(credentials.migration_handle, credentials.final_handle) from e
    logger.info("Updated handle of %s to %s", sessions.account_did, credentials.final_handle)
