"""credex shared domain types.

Key design decisions:
* ``Address`` is a ``NewType`` wrapper around ``str`` -- either a
  ``0x``-prefixed hex address or an MNID.
* Payloads and profiles stay plain ``dict`` objects: both are open
  mappings whose keys are defined by the peers, not by this package.
* Decoded and verified tokens are frozen Pydantic **v2** models.
"""
from __future__ import annotations

import enum
from typing import Any, NewType

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Value types
# ---------------------------------------------------------------------------

Address = NewType("Address", str)
"""Identity address, hex (``0x...``) or MNID encoded."""

Payload = dict[str, Any]
"""Claim mapping carried by a token."""

Profile = dict[str, Any]
"""Identity document resolved from a registry; must carry ``publicKey``."""

JOSE_HEADER: dict[str, str] = {"typ": "JWT", "alg": "ES256K"}
"""The fixed header of every token issued by this package."""

SHARE_REQUEST_TYPE = "shareReq"


# ---------------------------------------------------------------------------
# Token models
# ---------------------------------------------------------------------------

class DecodedToken(BaseModel):
    """A token split into its parts, *not* verified."""

    model_config = ConfigDict(frozen=True)

    header: dict[str, Any]
    payload: Payload
    signature: bytes
    signing_input: str = Field(
        description="The ``header.payload`` segments the signature covers.",
    )


class VerifiedToken(BaseModel):
    """Result of a successful verification."""

    model_config = ConfigDict(frozen=True)

    payload: Payload
    profile: Profile
    jwt: str


# ---------------------------------------------------------------------------
# Disclosure outcomes
# ---------------------------------------------------------------------------

class UnresolvedReason(enum.StrEnum):
    """Why a disclosure response could not be matched to a request."""

    MISSING_CHALLENGE = "missing_challenge"
    FOREIGN_CHALLENGE = "foreign_challenge"


class UnresolvedResponse(BaseModel):
    """A verified response that does not answer a request issued by us.

    Returned by :meth:`credex.credentials.Credentials.receive` in place of
    a credential mapping.  The response signature itself was valid.
    """

    model_config = ConfigDict(frozen=True)

    reason: UnresolvedReason
    issuer: str | None = None
    challenge_issuer: str | None = None

    def __bool__(self) -> bool:
        return False
