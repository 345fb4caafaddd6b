"""Token codec -- compact ``header.payload.signature`` serialisation.

Encoding produces the *signing input*: the base64url JSON header and
payload joined by a dot.  The signature is always computed over exactly
that string, never over the full three-part token.
"""
from __future__ import annotations

import binascii
import json
from datetime import UTC, datetime
from typing import Any

from jwt.utils import base64url_decode, base64url_encode

from credex.core.errors import MalformedToken
from credex.core.types import DecodedToken, Payload


def now_ms() -> int:
    """Current time in milliseconds since the epoch (the unit of ``iat``/``exp``)."""
    return int(datetime.now(UTC).timestamp() * 1000)


def _encode_segment(value: dict[str, Any]) -> str:
    data = json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    return base64url_encode(data.encode("utf-8")).decode("ascii")


def encode_unsigned(header: dict[str, Any], payload: Payload) -> str:
    """Return the signing input ``b64(header) + "." + b64(payload)``.

    Raises
    ------
    TypeError
        If the payload contains values JSON cannot represent.
    """
    return f"{_encode_segment(header)}.{_encode_segment(payload)}"


def _decode_json_segment(segment: str, name: str) -> dict[str, Any]:
    try:
        value = json.loads(base64url_decode(segment).decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError, ValueError) as exc:
        raise MalformedToken(
            f"Token {name} segment cannot be decoded: {exc}",
            details={"segment": name},
        ) from exc
    if not isinstance(value, dict):
        raise MalformedToken(
            f"Token {name} segment is not a JSON object",
            details={"segment": name},
        )
    return value


def decode(token: str) -> DecodedToken:
    """Split *token* into header, payload and raw signature without verifying it.

    Raises
    ------
    MalformedToken
        If *token* does not have exactly three segments or any segment
        fails to decode.
    """
    if not isinstance(token, str):
        raise MalformedToken("Token must be a string")
    parts = token.split(".")
    if len(parts) != 3:
        raise MalformedToken(
            f"Token must have 3 segments, found {len(parts)}",
            details={"segments": len(parts)},
        )
    header_segment, payload_segment, signature_segment = parts
    header = _decode_json_segment(header_segment, "header")
    payload = _decode_json_segment(payload_segment, "payload")
    try:
        signature = base64url_decode(signature_segment)
    except (binascii.Error, ValueError) as exc:
        raise MalformedToken(
            f"Token signature segment cannot be decoded: {exc}",
            details={"segment": "signature"},
        ) from exc
    return DecodedToken(
        header=header,
        payload=payload,
        signature=signature,
        signing_input=f"{header_segment}.{payload_segment}",
    )
