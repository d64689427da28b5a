"""
Identity (PLC) operations.

Moving the DID to the new PDS takes two steps separated by an email:

1. request_plc_operation asks the old PDS to email a confirmation token.
2. migrate_identity uses that token to have the old PDS sign a PLC
   operation naming the new PDS's keys, and submits it via the new PDS.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from pdsmigrate.crypto import RecoveryKey, generate_recovery_key
from pdsmigrate.exceptions import PdsMigrateError
from pdsmigrate.session import SessionPair

logger = logging.getLogger(__name__)


async def request_plc_operation(sessions: SessionPair) -> None:
    """
    Request a PLC operation signature from the old PDS.

    The old PDS emails a confirmation token to the account's address.
    """
    await sessions.old.procedure("com.atproto.identity.requestPlcOperationSignature")
    logger.info("Requested PLC operation signature for %s", sessions.account_did)


async def migrate_identity(
    sessions: SessionPair,
    confirmation_token: str,
    *,
    key_factory: Callable[[], RecoveryKey] = generate_recovery_key,
) -> str:
    """
    Point the DID at the new PDS.

    A fresh recovery key is generated and placed first in the rotation
    keys, ahead of the keys the new PDS recommends, so the user keeps
    control of the identity independently of either PDS.

    **NOTE:** The returned private key must be stored by the user.

    Args:
        sessions: The session pair, both logged in.
        confirmation_token: The token emailed by the old PDS.
        key_factory: Generates the recovery key.

    Returns:
        The recovery key's private key, hex encoded.

    Raises:
        PdsMigrateError: If the new PDS recommends no rotation keys.
        XrpcError: If signing or submitting the operation fails.
    """
    recovery_key = key_factory()

    did_credentials = await sessions.new.query(
        "com.atproto.identity.getRecommendedDidCredentials"
    )
    rotation_keys = did_credentials.get("rotationKeys")
    if not rotation_keys:
        raise PdsMigrateError("New PDS did not provide any rotation keys")

    plc_params = {
        **did_credentials,
        "rotationKeys": [recovery_key.did, *rotation_keys],
        "token": confirmation_token,
    }
    signed = await sessions.old.procedure("com.atproto.identity.signPlcOperation", plc_params)
    await sessions.new.procedure(
        "com.atproto.identity.submitPlcOperation",
        {"operation": signed["operation"]},
    )
    logger.info(
        "Submitted PLC operation for %s with recovery key %s",
        sessions.account_did,
        recovery_key.did,
    )
    return recovery_key.private_key_hex
