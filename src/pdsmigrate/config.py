"""
Configuration for the migration collaborators.

The state machine itself has no tunables; these settings shape the HTTP
sessions and the data copy performed by the operations.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pdsmigrate import __version__

DEFAULT_USER_AGENT = f"pdsmigrate/{__version__}"


@dataclass(frozen=True)
class MigratorConfig:
    """
    Settings for talking to the two PDSes.

    This class is immutable (frozen) so a running migration cannot have
    its settings changed underneath it.

    Attributes:
        request_timeout: Per-request HTTP timeout in seconds; None waits forever
            (default 60.0). Repository imports can be slow on large accounts.
        blob_page_size: Blob CIDs requested per listBlobs page (default 500).
        user_agent: User-Agent header sent to both PDSes.
        enable_tracing: Whether to emit OpenTelemetry spans (default True).

    Example:
        >>> config = MigratorConfig(request_timeout=300.0)
        >>> config.blob_page_size
        500
    """

    request_timeout: float | None = 60.0
    blob_page_size: int = 500
    user_agent: str = DEFAULT_USER_AGENT
    enable_tracing: bool = True

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.request_timeout is not None and self.request_timeout <= 0:
            raise ValueError(f"request_timeout must be > 0, got {self.request_timeout}")

        if not 1 <= self.blob_page_size <= 1000:
            raise ValueError(f"blob_page_size must be in 1..1000, got {self.blob_page_size}")

        if not self.user_agent:
            raise ValueError("user_agent must not be empty")

    def to_dict(self) -> dict[str, Any]:
        """
        Convert to dictionary.

        Returns:
            Dictionary representation suitable for JSON serialization.
        """
        return {
            "request_timeout": self.request_timeout,
            "blob_page_size": self.blob_page_size,
            "user_agent": self.user_agent,
            "enable_tracing": self.enable_tracing,
        }


__all__ = ["DEFAULT_USER_AGENT", "MigratorConfig"]
