"""credex token layer -- codec, issuance, verification and ES256K signing.

Public API
----------
- :func:`encode_unsigned` / :func:`decode` -- compact token serialisation.
- :func:`create_token` -- stamp ``iss``/``iat`` and sign a payload.
- :func:`verify_token` -- 5-step verification against a registry.
- :class:`SimpleSigner` -- in-process secp256k1 signer.
"""
from __future__ import annotations

from credex.token.codec import decode, encode_unsigned, now_ms
from credex.token.issuer import create_token
from credex.token.signing import SimpleSigner, load_public_key, normalize_public_key
from credex.token.verifier import verify_token

__all__ = [
    "SimpleSigner",
    "create_token",
    "decode",
    "encode_unsigned",
    "load_public_key",
    "normalize_public_key",
    "now_ms",
    "verify_token",
]
