"""
Shared test fixtures for the pdsmigrate tests.

This module provides reusable test data and doubles:
- Credential factories (make_credentials, make_split_credentials, ...)
- Account status factories (make_raw_account_status, make_account_statuses)
- AsyncMock-backed sessions and Operations (make_session_pair, make_operations)
- FakePds, an XRPC server behind httpx.MockTransport
- did:key and base58 decoding for checking generated keys

Usage:
    from tests.fixtures import (
        make_credentials,
        make_operations,
        FakePds,
    )
"""

from tests.fixtures.credentials import (
    ACCOUNT_DID,
    CONFIRMATION_TOKEN,
    FINAL_HANDLE,
    NEW_HANDLE,
    NEW_PDS_HOSTNAME,
    NEW_PDS_URL,
    OLD_HANDLE,
    OLD_PDS_URL,
    PRIVATE_KEY_HEX,
    TEMPORARY_HANDLE,
    make_account_statuses,
    make_credentials,
    make_raw_account_status,
    make_raw_credentials,
    make_split_credentials,
    make_split_raw_credentials,
)
from tests.fixtures.doubles import (
    TEST_CONFIG,
    FakePds,
    logged_in_pair,
    make_factory,
    make_fake_pds_pair,
    make_mock_session,
    make_operations,
    make_session_pair,
)
from tests.fixtures.keys import (
    b58decode,
    public_did_for_private_key,
    secp256k1_public_key_from_did_key,
)

__all__ = [
    # Constants
    "ACCOUNT_DID",
    "CONFIRMATION_TOKEN",
    "FINAL_HANDLE",
    "NEW_HANDLE",
    "NEW_PDS_HOSTNAME",
    "NEW_PDS_URL",
    "OLD_HANDLE",
    "OLD_PDS_URL",
    "PRIVATE_KEY_HEX",
    "TEMPORARY_HANDLE",
    "TEST_CONFIG",
    # Factories
    "make_account_statuses",
    "make_credentials",
    "make_raw_account_status",
    "make_raw_credentials",
    "make_split_credentials",
    "make_split_raw_credentials",
    # Doubles
    "FakePds",
    "logged_in_pair",
    "make_factory",
    "make_fake_pds_pair",
    "make_mock_session",
    "make_operations",
    "make_session_pair",
    # Key decoding
    "b58decode",
    "public_did_for_private_key",
    "secp256k1_public_key_from_did_key",
]
