"""
Observability utilities for pdsmigrate.

This module provides the tracer abstraction and standard attribute
definitions used by the state machine and the XRPC session.

Example:
    >>> from pdsmigrate.observability import create_tracer
    >>>
    >>> class MySession:
    ...     def __init__(self, enable_tracing: bool = True):
    ...         self._tracer = create_tracer(__name__, enable_tracing)
"""

from pdsmigrate.observability.attributes import (
    ATTR_ACCOUNT_DID,
    ATTR_BLOB_COUNT,
    ATTR_ERROR_TYPE,
    ATTR_HTTP_STATUS_CODE,
    ATTR_MIGRATION_NEXT_STATE,
    ATTR_MIGRATION_PAUSED,
    ATTR_MIGRATION_STATE,
    ATTR_REPO_BYTES,
    ATTR_XRPC_NSID,
    ATTR_XRPC_SERVICE,
)
from pdsmigrate.observability.tracer import (
    MockTracer,
    NullTracer,
    OpenTelemetryTracer,
    Tracer,
    create_tracer,
)

__all__ = [
    # Tracer
    "Tracer",
    "NullTracer",
    "OpenTelemetryTracer",
    "MockTracer",
    "create_tracer",
    # Attributes
    "ATTR_ACCOUNT_DID",
    "ATTR_BLOB_COUNT",
    "ATTR_ERROR_TYPE",
    "ATTR_HTTP_STATUS_CODE",
    "ATTR_MIGRATION_NEXT_STATE",
    "ATTR_MIGRATION_PAUSED",
    "ATTR_MIGRATION_STATE",
    "ATTR_REPO_BYTES",
    "ATTR_XRPC_NSID",
    "ATTR_XRPC_SERVICE",
]
