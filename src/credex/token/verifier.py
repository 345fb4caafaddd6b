"""Token verification -- the single point where trust is established.

Steps, in order; the first failing step raises:

1. **Decode** -- the token splits into a JSON header and payload.
2. **Resolve issuer** -- ``payload.iss`` resolves to a profile.
3. **Signature** -- the ``header.payload`` segments verify against the
   profile's ``publicKey`` with the declared algorithm.
4. **Expiry** -- ``exp`` (milliseconds), when present, is in the future.
5. **Audience** -- ``aud``, when present, names us: an address audience
   must equal our own address after normalisation; any other audience
   is a callback URL and must equal the URL the response arrived on.

Apart from the registry lookup, verification has no side effects.
"""
from __future__ import annotations

import logging
from numbers import Real
from typing import TYPE_CHECKING

from credex.core.errors import (
    AudienceMismatch,
    Expired,
    InvalidSignature,
    MalformedToken,
    MissingCallbackUrl,
    MissingOwnIdentity,
    UnknownIssuer,
)
from credex.core.types import Payload, VerifiedToken
from credex.identity.mnid import canonical_address, is_address
from credex.token.codec import decode, now_ms
from credex.token.signing import ALGORITHM, load_public_key, verify_es256k

if TYPE_CHECKING:
    from credex.core.interfaces import Registry

logger = logging.getLogger(__name__)


async def verify_token(
    registry: Registry,
    expected_audience: str | None,
    token: str,
    callback_url: str | None = None,
    *,
    check_audience: bool = True,
) -> VerifiedToken:
    """Verify *token* and return its payload with the issuer's profile.

    Parameters
    ----------
    registry:
        Resolver for the issuer's profile.  Its errors propagate unchanged.
    expected_audience:
        Our own address; required only when the token carries an
        address-shaped ``aud``.
    token:
        The compact token string.
    callback_url:
        The URL the token was delivered to; required only when the token
        carries a URL ``aud``.
    check_audience:
        When ``False``, step 5 is skipped.  Used for third-party
        credentials that were never addressed to us.

    Raises
    ------
    MalformedToken
        Step 1: the token cannot be decoded.
    UnknownIssuer
        Step 2: no profile (or no public key) for ``iss``.
    InvalidSignature
        Step 3: the signature does not verify.
    Expired
        Step 4: ``exp`` has passed.
    MissingOwnIdentity, AudienceMismatch, MissingCallbackUrl
        Step 5: the token is not addressed to us.
    """
    # Step 1: Decode
    decoded = decode(token)
    payload = decoded.payload

    # Step 2: Resolve the issuer
    issuer = payload.get("iss")
    if not issuer or not isinstance(issuer, str):
        raise UnknownIssuer(
            "Token has no issuer",
            details={"step": 2},
        )
    profile = await registry.resolve(issuer)
    if not profile:
        raise UnknownIssuer(
            details={"issuer": issuer, "step": 2},
        )
    public_key = profile.get("publicKey")
    if not public_key or not isinstance(public_key, str):
        raise UnknownIssuer(
            "Issuer profile has no publicKey, unable to verify token",
            details={"issuer": issuer, "step": 2},
        )

    # Step 3: Signature over the pre-signature segments
    algorithm = decoded.header.get("alg")
    if algorithm != ALGORITHM:
        raise InvalidSignature(
            f"Unsupported token algorithm: {algorithm!r}",
            details={"issuer": issuer, "alg": algorithm, "step": 3},
        )
    try:
        key = load_public_key(public_key)
    except ValueError as exc:
        raise InvalidSignature(
            f"Issuer public key is not a valid secp256k1 key: {exc}",
            details={"issuer": issuer, "step": 3},
        ) from exc
    if not verify_es256k(decoded.signing_input, decoded.signature, key):
        raise InvalidSignature(
            details={"issuer": issuer, "step": 3},
        )

    # Step 4: Expiry
    _check_expiry(payload)

    # Step 5: Audience
    if check_audience and payload.get("aud") is not None:
        _check_audience(payload["aud"], expected_audience, callback_url)

    logger.debug("Verified token from %s", issuer)
    return VerifiedToken(payload=payload, profile=profile, jwt=token)


def _check_expiry(payload: Payload) -> None:
    exp = payload.get("exp")
    if exp is None:
        return
    if isinstance(exp, bool) or not isinstance(exp, Real):
        raise MalformedToken(
            f"Token exp claim must be a number, got {type(exp).__name__}",
            details={"step": 4},
        )
    now = now_ms()
    if exp <= now:
        raise Expired(
            details={"exp": exp, "current_time": now, "step": 4},
        )


def _check_audience(
    audience: object,
    expected_audience: str | None,
    callback_url: str | None,
) -> None:
    if not isinstance(audience, str):
        raise AudienceMismatch(
            "Token audience must be a single address or URL",
            details={"step": 5},
        )

    if is_address(audience):
        if not expected_audience:
            raise MissingOwnIdentity(details={"aud": audience, "step": 5})
        try:
            matches = canonical_address(audience) == canonical_address(expected_audience)
        except ValueError as exc:
            raise AudienceMismatch(
                f"Token audience cannot be decoded: {exc}",
                details={"aud": audience, "step": 5},
            ) from exc
        if not matches:
            raise AudienceMismatch(
                "Token audience does not match your address",
                details={"aud": audience, "expected": expected_audience, "step": 5},
            )
        return

    if not callback_url:
        raise MissingCallbackUrl(details={"aud": audience, "step": 5})
    if audience != callback_url:
        raise AudienceMismatch(
            "Token audience does not match the callback url",
            details={"aud": audience, "callback_url": callback_url, "step": 5},
        )
