"""Log into the old PDS and set up the session pair."""

from __future__ import annotations

import asyncio
import logging

from pdsmigrate.exceptions import PdsMigrateError
from pdsmigrate.models import MigrationCredentials
from pdsmigrate.session import SessionFactory, SessionPair, XrpcSession

logger = logging.getLogger(__name__)


async def initialize_sessions(
    credentials: MigrationCredentials,
    *,
    session_factory: SessionFactory = XrpcSession,
) -> SessionPair:
    """
    Create sessions for both PDSes and log into the old one.

    The new session stays unauthenticated until the account exists there.

    Args:
        credentials: The migration credentials.
        session_factory: Creates a session for a service URL.

    Returns:
        The session pair, with the account DID taken from the old session.

    Raises:
        XrpcError: If logging into the old PDS fails.
        PdsMigrateError: If the old PDS did not report a DID.
    """
    old = session_factory(credentials.old_pds_url)
    new = session_factory(credentials.new_pds_url)
    try:
        await old.login(credentials.old_handle, credentials.old_password)
        account_did = old.did
        if not account_did:
            raise PdsMigrateError("Failed to get DID for old account")
    except Exception:
        await asyncio.gather(old.logout(), new.logout(), return_exceptions=True)
        raise

    logger.info("Initialized sessions for %s", account_did)
    return SessionPair(old=old, new=new, account_did=account_did)
