"""Copy the repository, blobs and preferences to the new PDS."""

from __future__ import annotations

import logging

from pdsmigrate.observability import (
    ATTR_ACCOUNT_DID,
    ATTR_BLOB_COUNT,
    ATTR_REPO_BYTES,
    NullTracer,
    Tracer,
)
from pdsmigrate.session import SessionPair

logger = logging.getLogger(__name__)

CAR_ENCODING = "application/vnd.ipld.car"


async def migrate_data(
    sessions: SessionPair,
    *,
    page_size: int = 500,
    tracer: Tracer | None = None,
) -> None:
    """
    Copy account data from the old PDS to the new one.

    Order is fixed: repository, then blobs, then preferences. Nothing is
    rolled back if a later copy fails.

    Args:
        sessions: The session pair, both logged in.
        page_size: Blob CIDs requested per listBlobs page.
        tracer: Optional tracer for the copy span.

    Raises:
        XrpcError: If any call fails.
    """
    tracer = tracer or NullTracer()
    old, new, did = sessions.old, sessions.new, sessions.account_did

    with tracer.span("pdsmigrate.migrate_data", {ATTR_ACCOUNT_DID: did}) as span:
        repo, _ = await old.get_bytes("com.atproto.sync.getRepo", {"did": did})
        await new.procedure("com.atproto.repo.importRepo", content=repo, encoding=CAR_ENCODING)
        logger.info("Imported repository of %s (%d bytes)", did, len(repo))

        blob_count = await _migrate_blobs(sessions, page_size)
        logger.info("Copied %d blobs of %s", blob_count, did)

        prefs = await old.query("app.bsky.actor.getPreferences")
        await new.procedure(
            "app.bsky.actor.putPreferences",
            {"preferences": prefs.get("preferences", [])},
        )
        logger.info("Copied preferences of %s", did)

        if span is not None:
            span.set_attribute(ATTR_REPO_BYTES, len(repo))
            span.set_attribute(ATTR_BLOB_COUNT, blob_count)


async def _migrate_blobs(sessions: SessionPair, page_size: int) -> int:
    old, new, did = sessions.old, sessions.new, sessions.account_did
    count = 0
    cursor: str | None = None
    while True:
        page = await old.query(
            "com.atproto.sync.listBlobs",
            {"did": did, "cursor": cursor, "limit": page_size},
        )
        for cid in page.get("cids", []):
            blob, content_type = await old.get_bytes(
                "com.atproto.sync.getBlob", {"did": did, "cid": cid}
            )
            await new.procedure("com.atproto.repo.uploadBlob", content=blob, encoding=content_type)
            count += 1
            logger.debug("Copied blob %s", cid)
        cursor = page.get("cursor")
        if not cursor:
            return count
