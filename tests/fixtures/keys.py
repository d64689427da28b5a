"""
Decoding helpers for checking generated recovery keys.

- b58decode: inverse of pdsmigrate.crypto.b58encode
- secp256k1_public_key_from_did_key: did:key back to a compressed point
- public_did_for_private_key: did:key a hex private key should publish
"""

from __future__ import annotations

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from pdsmigrate.crypto import (
    B58_ALPHABET,
    SECP256K1_PUB_MULTICODEC,
    did_key_from_secp256k1_public_key,
)

B58_MAP = {c: i for i, c in enumerate(B58_ALPHABET)}


def b58decode(s: str) -> bytes:
    s_bytes = s.encode("ascii")
    num = 0
    for c in s_bytes:
        if c not in B58_MAP:
            raise ValueError("Invalid base58 character")
        num = num * 58 + B58_MAP[c]
    n_pad = len(s_bytes) - len(s_bytes.lstrip(B58_ALPHABET[:1]))
    full = num.to_bytes((num.bit_length() + 7) // 8, "big") if num else b""
    return b"\x00" * n_pad + full


def secp256k1_public_key_from_did_key(did: str) -> bytes:
    if not did.startswith("did:key:z"):
        raise ValueError("Only did:key:z... supported")
    decoded = b58decode(did[len("did:key:z") :])
    if not decoded.startswith(SECP256K1_PUB_MULTICODEC):
        raise ValueError("did:key multicodec prefix not recognized for secp256k1")
    return decoded[len(SECP256K1_PUB_MULTICODEC) :]


def public_did_for_private_key(private_key_hex: str) -> str:
    private_key = ec.derive_private_key(int(private_key_hex, 16), ec.SECP256K1())
    compressed = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.X962,
        format=serialization.PublicFormat.CompressedPoint,
    )
    return did_key_from_secp256k1_public_key(compressed)
