"""Token issuance.

Stamps ``iss`` and ``iat`` onto a payload, encodes the signing input and
hands it to the configured signer.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from credex.core.errors import MissingIssuerIdentity, MissingSigner
from credex.core.types import JOSE_HEADER, Payload
from credex.token.codec import encode_unsigned, now_ms

if TYPE_CHECKING:
    from credex.core.interfaces import Signer

logger = logging.getLogger(__name__)


async def create_token(
    issuer_address: str | None,
    signer: Signer | None,
    payload: Payload,
) -> str:
    """Create a signed token whose issuer is *issuer_address*.

    Caller-supplied ``iss`` and ``iat`` claims are overwritten.

    Parameters
    ----------
    issuer_address:
        Identity that becomes the ``iss`` claim.
    signer:
        Capability that signs the encoded ``header.payload`` bytes.
    payload:
        Claims to sign.  Not modified.

    Returns
    -------
    str
        The compact ``header.payload.signature`` token.

    Raises
    ------
    MissingSigner
        If *signer* is ``None``.
    MissingIssuerIdentity
        If *issuer_address* is empty.
    """
    if signer is None:
        raise MissingSigner()
    if not issuer_address:
        raise MissingIssuerIdentity()

    claims: Payload = {**payload, "iss": issuer_address, "iat": now_ms()}
    signing_input = encode_unsigned(JOSE_HEADER, claims)
    signature = await signer.sign(signing_input.encode("ascii"))
    logger.debug("Issued token for %s with claims %s", issuer_address, sorted(claims))
    return f"{signing_input}.{signature}"
