"""ES256K signing primitives.

Signatures are JOSE-style: the 32-byte ``r`` and ``s`` values of an
ECDSA/SHA-256 signature over secp256k1, concatenated and base64url
encoded.  Public keys arrive from registries as hex strings, with or
without a ``0x`` prefix, in compressed or uncompressed SEC1 form.
"""
from __future__ import annotations

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from jwt.algorithms import get_default_algorithms
from jwt.utils import base64url_encode

ALGORITHM = "ES256K"

_es256k = get_default_algorithms()[ALGORITHM]


def normalize_public_key(public_key: str) -> str:
    """Strip an optional ``0x`` prefix from a hex public key."""
    return public_key[2:] if public_key.startswith("0x") else public_key


def load_public_key(public_key: str) -> ec.EllipticCurvePublicKey:
    """Parse a hex-encoded secp256k1 public key.

    Raises
    ------
    ValueError
        If the value is not hex or not a point on the curve.
    """
    data = bytes.fromhex(normalize_public_key(public_key))
    return ec.EllipticCurvePublicKey.from_encoded_point(ec.SECP256K1(), data)


def verify_es256k(signing_input: str, signature: bytes, public_key: ec.EllipticCurvePublicKey) -> bool:
    """Return ``True`` if *signature* is a valid ES256K signature of *signing_input*."""
    return bool(_es256k.verify(signing_input.encode("ascii"), public_key, signature))


class SimpleSigner:
    """:class:`~credex.core.interfaces.Signer` backed by an in-process secp256k1 key.

    Parameters
    ----------
    private_key:
        The 32-byte private scalar as hex, with or without ``0x``.
    """

    def __init__(self, private_key: str) -> None:
        scalar = int(private_key.removeprefix("0x"), 16)
        self._key = ec.derive_private_key(scalar, ec.SECP256K1())

    @classmethod
    def from_key(cls, key: ec.EllipticCurvePrivateKey) -> SimpleSigner:
        """Wrap an existing ``cryptography`` secp256k1 private key."""
        if not isinstance(key.curve, ec.SECP256K1):
            raise ValueError(f"ES256K requires a secp256k1 key, got {key.curve.name}")
        signer = cls.__new__(cls)
        signer._key = key
        return signer

    @property
    def public_key(self) -> str:
        """Uncompressed public key as ``0x``-prefixed hex, as published in profiles."""
        point = self._key.public_key().public_bytes(
            serialization.Encoding.X962,
            serialization.PublicFormat.UncompressedPoint,
        )
        return "0x" + point.hex()

    async def sign(self, data: bytes) -> str:
        """Sign *data* and return the base64url JOSE signature."""
        raw = _es256k.sign(data, self._key)
        return base64url_encode(raw).decode("ascii")
