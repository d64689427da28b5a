"""
Recovery key generation for the migrated identity.

The new recovery key is a secp256k1 keypair. Its public half is published
in the DID document as a ``did:key`` rotation key; the private half is
handed to the user as hex and never stored by this package.

did:key encoding:
    "did:key:z" + base58btc(multicodec secp256k1-pub (0xe7 0x01) + compressed point)
"""

from __future__ import annotations

from dataclasses import dataclass, field

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

SECP256K1_PUB_MULTICODEC = bytes([0xE7, 0x01])

B58_ALPHABET = b"123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"


def b58encode(b: bytes) -> str:
    # Leading zero bytes become leading "1"s
    n_pad = 0
    for c in b:
        if c == 0:
            n_pad += 1
        else:
            break
    num = int.from_bytes(b, "big")
    out = bytearray()
    while num > 0:
        num, rem = divmod(num, 58)
        out.append(B58_ALPHABET[rem])
    out.extend(B58_ALPHABET[0] for _ in range(n_pad))
    out.reverse()
    return out.decode("ascii")


def did_key_from_secp256k1_public_key(compressed: bytes) -> str:
    """
    Encode a compressed secp256k1 public key as a ``did:key``.

    Raises:
        ValueError: If the key is not a 33-byte compressed point.
    """
    if len(compressed) != 33 or compressed[0] not in (0x02, 0x03):
        raise ValueError("Expected a 33-byte compressed secp256k1 public key")
    return "did:key:z" + b58encode(SECP256K1_PUB_MULTICODEC + compressed)


@dataclass(frozen=True)
class RecoveryKey:
    """
    A freshly generated rotation keypair.

    Attributes:
        did: The public key as a ``did:key``.
        private_key_hex: The 32-byte private scalar, lowercase hex.
    """

    did: str
    private_key_hex: str = field(repr=False)


def generate_recovery_key() -> RecoveryKey:
    """
    Generate a new secp256k1 recovery key.

    Returns:
        RecoveryKey with the public did:key and the exportable private key.
    """
    private_key = ec.generate_private_key(ec.SECP256K1())
    scalar = private_key.private_numbers().private_value.to_bytes(32, "big")
    compressed = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.X962,
        format=serialization.PublicFormat.CompressedPoint,
    )
    return RecoveryKey(
        did=did_key_from_secp256k1_public_key(compressed),
        private_key_hex=scalar.hex(),
    )


__all__ = [
    "RecoveryKey",
    "b58encode",
    "did_key_from_secp256k1_public_key",
    "generate_recovery_key",
]
