"""
Syntax checks for migration inputs.

These predicates are shared by the credential model, the interactive
prompts and the public API:

- is_http_url / normalize_url: endpoint URLs
- is_handle / strip_handle_prefix: domain-shaped handles
- is_pds_subdomain: whether a handle lives under a PDS hostname
- is_email: conventional address grammar
"""

from __future__ import annotations

import ipaddress
import re
from urllib.parse import urlsplit

HANDLE_MAX_LENGTH = 253

_LABEL = r"[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?"
_HANDLE_RE = re.compile(
    rf"[a-z0-9][a-z0-9-]{{1,61}}[a-z0-9](?:\.{_LABEL})*\.[a-z](?:[a-z0-9-]{{0,61}}[a-z0-9])?",
    re.IGNORECASE,
)
_HOSTNAME_RE = re.compile(rf"{_LABEL}(?:\.{_LABEL})*", re.IGNORECASE)

# HTML living standard "valid e-mail address", with at least one dot in the domain.
_EMAIL_RE = re.compile(
    r"[A-Za-z0-9.!#$%&'*+/=?^_`{|}~-]+"
    r"@[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?"
    r"(?:\.[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?)+"
)

_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")


def is_http_url(value: object) -> bool:
    """
    Check whether a value is an absolute http or https URL with a host.

    Args:
        value: The value to check.

    Returns:
        True for strings like "https://example.com:8080/path".
    """
    if not isinstance(value, str):
        return False
    try:
        parts = urlsplit(value)
        # Accessing .port validates it
        parts.port  # noqa: B018
    except ValueError:
        return False
    if parts.scheme.lower() not in ("http", "https") or not parts.hostname:
        return False
    if _HOSTNAME_RE.fullmatch(parts.hostname):
        return True
    try:
        ipaddress.ip_address(parts.hostname)
    except ValueError:
        return False
    return True


def normalize_url(value: str) -> str:
    """Prepend ``https://`` to a URL typed without a scheme."""
    value = value.strip()
    if _SCHEME_RE.match(value):
        return value
    return f"https://{value}"


def hostname_of(url: str) -> str:
    """
    Get the lowercase hostname of a URL.

    Raises:
        ValueError: If the URL has no hostname.
    """
    hostname = urlsplit(url).hostname
    if not hostname:
        raise ValueError(f"URL has no hostname: {url!r}")
    return hostname


def is_handle(value: object) -> bool:
    """
    Check a handle against the DNS label chain grammar.

    Each label is 1-63 characters of letters, digits and hyphens, without
    a leading or trailing hyphen. The leftmost label is at least three
    characters long, there are at least two labels, and the top-level
    label starts with a letter. Matching is case-insensitive.

    Args:
        value: The value to check.

    Returns:
        True if the value is a syntactically valid handle.
    """
    if not isinstance(value, str) or len(value) > HANDLE_MAX_LENGTH:
        return False
    return _HANDLE_RE.fullmatch(value) is not None


def strip_handle_prefix(value: str) -> str:
    """Remove the "@" users often type in front of a handle."""
    return value.strip().removeprefix("@")


def is_pds_subdomain(handle: str, pds_hostname: str) -> bool:
    """
    Check whether a handle is a subdomain of a PDS hostname.

    Example:
        >>> is_pds_subdomain("alice.pds.example.com", "pds.example.com")
        True
        >>> is_pds_subdomain("alice.example.com", "pds.example.com")
        False
    """
    return handle.lower().endswith(f".{pds_hostname.lower()}")


def is_email(value: object) -> bool:
    """Check whether a value looks like an email address."""
    return isinstance(value, str) and _EMAIL_RE.fullmatch(value) is not None


__all__ = [
    "HANDLE_MAX_LENGTH",
    "hostname_of",
    "is_email",
    "is_handle",
    "is_http_url",
    "is_pds_subdomain",
    "normalize_url",
    "strip_handle_prefix",
]
