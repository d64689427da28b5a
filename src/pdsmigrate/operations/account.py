"""Create the account on the new PDS."""

from __future__ import annotations

import logging

from pdsmigrate.exceptions import PdsMigrateError
from pdsmigrate.models import MigrationCredentials
from pdsmigrate.session import SessionPair

logger = logging.getLogger(__name__)

CREATE_ACCOUNT_LXM = "com.atproto.server.createAccount"


async def create_new_account(
    sessions: SessionPair,
    credentials: MigrationCredentials,
) -> None:
    """
    Create the account on the new PDS and log into it.

    The old PDS issues a service auth token scoped to the new PDS's
    createAccount method; presenting it proves control of the existing
    DID, so the new PDS creates a (deactivated) account for that DID.

    Args:
        sessions: The session pair; the old session must be logged in.
        credentials: The migration credentials.

    Raises:
        XrpcError: If any call fails.
    """
    describe = await sessions.new.query("com.atproto.server.describeServer")
    new_server_did = describe.get("did")
    if not new_server_did:
        raise PdsMigrateError("New PDS did not report its DID")

    service_auth = await sessions.old.query(
        "com.atproto.server.getServiceAuth",
        {"aud": new_server_did, "lxm": CREATE_ACCOUNT_LXM},
    )
    service_jwt = service_auth["token"]

    await sessions.new.procedure(
        CREATE_ACCOUNT_LXM,
        {
            "handle": credentials.migration_handle,
            "email": credentials.new_email,
            "password": credentials.new_password,
            "did": sessions.account_did,
            "inviteCode": credentials.invite_code,
        },
        headers={"Authorization": f"Bearer {service_jwt}"},
    )
    logger.info("Created account %s on %s", sessions.account_did, credentials.new_pds_url)

    await sessions.new.login(credentials.migration_handle, credentials.new_password)
