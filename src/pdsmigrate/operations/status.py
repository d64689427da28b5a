"""Fetch account status from both PDSes."""

from __future__ import annotations

import asyncio
import logging

from pdsmigrate.models import AccountStatus, AccountStatuses
from pdsmigrate.session import SessionPair

logger = logging.getLogger(__name__)


async def check_account_status(sessions: SessionPair) -> AccountStatuses:
    """
    Call com.atproto.server.checkAccountStatus on both PDSes.

    Only fetches; whether the statuses are acceptable is up to the caller.

    Args:
        sessions: The session pair, both logged in.

    Returns:
        The statuses of the old and new accounts.
    """
    old_raw, new_raw = await asyncio.gather(
        sessions.old.query("com.atproto.server.checkAccountStatus"),
        sessions.new.query("com.atproto.server.checkAccountStatus"),
    )
    statuses = AccountStatuses(
        old=AccountStatus.model_validate(old_raw),
        new=AccountStatus.model_validate(new_raw),
    )
    logger.info(
        "Account status of %s: %d/%d blobs imported, %d records indexed on new PDS",
        sessions.account_did,
        statuses.new.imported_blobs,
        statuses.new.expected_blobs,
        statuses.new.indexed_records,
    )
    if statuses.new.missing_blobs:
        logger.warning(
            "New PDS is missing %d of %d blobs for %s",
            statuses.new.missing_blobs,
            statuses.new.expected_blobs,
            sessions.account_did,
        )
    return statuses
