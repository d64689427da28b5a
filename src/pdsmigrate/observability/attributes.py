"""
Standard span attributes for pdsmigrate.

Attribute constants used across components for consistent span naming.
Values that identify a person (handles, emails) or grant access
(passwords, tokens, keys) are never recorded.

Example:
    >>> from pdsmigrate.observability.attributes import ATTR_MIGRATION_STATE
    >>>
    >>> with tracer.span(
    ...     "pdsmigrate.transition",
    ...     {ATTR_MIGRATION_STATE: state.value},
    ... ):
    ...     pass
"""

# =============================================================================
# Migration Attributes
# =============================================================================

ATTR_MIGRATION_STATE = "pdsmigrate.migration.state"
"""State the transition starts from (e.g., 'MigratedData')."""

ATTR_MIGRATION_NEXT_STATE = "pdsmigrate.migration.next_state"
"""State the transition produced (string)."""

ATTR_MIGRATION_PAUSED = "pdsmigrate.migration.paused"
"""Whether the transition paused waiting for a confirmation token (bool)."""

ATTR_ACCOUNT_DID = "pdsmigrate.account.did"
"""DID of the account being migrated (string)."""

# =============================================================================
# Data Copy Attributes
# =============================================================================

ATTR_BLOB_COUNT = "pdsmigrate.blob.count"
"""Number of blobs copied (integer)."""

ATTR_REPO_BYTES = "pdsmigrate.repo.bytes"
"""Size of the exported repository CAR file (integer)."""

# =============================================================================
# XRPC Attributes
# =============================================================================

ATTR_XRPC_NSID = "pdsmigrate.xrpc.nsid"
"""Namespaced identifier of the XRPC method (e.g., 'com.atproto.sync.getRepo')."""

ATTR_XRPC_SERVICE = "pdsmigrate.xrpc.service"
"""Base URL of the PDS being called (string)."""

ATTR_HTTP_STATUS_CODE = "http.status_code"
"""HTTP response status code (integer)."""

# =============================================================================
# Error Attributes
# =============================================================================

ATTR_ERROR_TYPE = "error.type"
"""Exception class name when an operation fails (string)."""


__all__ = [
    "ATTR_MIGRATION_STATE",
    "ATTR_MIGRATION_NEXT_STATE",
    "ATTR_MIGRATION_PAUSED",
    "ATTR_ACCOUNT_DID",
    "ATTR_BLOB_COUNT",
    "ATTR_REPO_BYTES",
    "ATTR_XRPC_NSID",
    "ATTR_XRPC_SERVICE",
    "ATTR_HTTP_STATUS_CODE",
    "ATTR_ERROR_TYPE",
]
