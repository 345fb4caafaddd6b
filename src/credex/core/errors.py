"""credex error-code hierarchy.

Every failure the token protocol can report is a concrete exception
class carrying a stable error code.

Hierarchy
---------
::

    CredexError
    +-- TokenError            (CX-E1xx)
    +-- IssuanceError         (CX-E2xx)
    +-- ConfigurationError    (CX-E3xx)
    +-- PushError             (CX-E4xx)
    +-- RegistryError         (CX-E5xx)

Usage
-----
Raise concrete subclasses directly::

    raise UnknownIssuer("0xbc3a...")

Catch by category::

    try:
        ...
    except TokenError:
        # handles MalformedToken, InvalidSignature, Expired, etc.
        ...

Errors raised by external capabilities (signers, registries, HTTP
transports) are never wrapped in these classes; they propagate as-is.
"""
from __future__ import annotations

from typing import Any

# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------

class CredexError(Exception):
    """Base exception for all credex errors.

    Attributes
    ----------
    code : str
        Error code, e.g. ``"CX-E100"``.
    message : str
        Human-readable description.
    details : dict[str, Any]
        Machine-readable context specific to the error instance.
    resolution : str
        Suggested action for the caller.
    """

    code: str = "CX-E000"
    message: str = "Unknown credex error"
    resolution: str = ""

    def __init__(
        self,
        message: str | None = None,
        *,
        details: dict[str, Any] | None = None,
        resolution: str | None = None,
    ) -> None:
        self.details: dict[str, Any] = details or {}
        if message is not None:
            self.message = message
        if resolution is not None:
            self.resolution = resolution
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Serialise the error to a JSON-friendly mapping."""
        payload: dict[str, Any] = {
            "code": self.code,
            "message": self.message,
        }
        if self.details:
            payload["detail"] = self.details
        if self.resolution:
            payload["resolution"] = self.resolution
        return {"error": payload}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


# ===================================================================
# Category base classes
# ===================================================================

class TokenError(CredexError):
    """CX-E1xx -- A received token could not be decoded or trusted."""

    code = "CX-E1XX"


class IssuanceError(CredexError):
    """CX-E2xx -- A token could not be issued."""

    code = "CX-E2XX"


class ConfigurationError(CredexError):
    """CX-E3xx -- Settings are incomplete or malformed."""

    code = "CX-E3XX"


class PushError(CredexError):
    """CX-E4xx -- A push notification could not be delivered."""

    code = "CX-E4XX"


class RegistryError(CredexError):
    """CX-E5xx -- The default network registry could not answer."""

    code = "CX-E5XX"


# ===================================================================
# CX-E1xx  Token decoding and verification
# ===================================================================

class MalformedToken(TokenError):
    """CX-E100 -- The token is not three decodable base64url segments."""

    code = "CX-E100"
    message = "Token is malformed"
    resolution = "Send a compact token of the form header.payload.signature."


class UnknownIssuer(TokenError):
    """CX-E101 -- The registry returned no profile for the issuer."""

    code = "CX-E101"
    message = "No profile found, unable to verify token"
    resolution = "Make sure the issuer identity is published in the registry."


class InvalidSignature(TokenError):
    """CX-E102 -- The signature does not match the issuer's public key."""

    code = "CX-E102"
    message = "Signature invalid for token"
    resolution = "The token was altered or not signed by its declared issuer."


class Expired(TokenError):
    """CX-E103 -- The token's ``exp`` claim has passed."""

    code = "CX-E103"
    message = "Token has expired"
    resolution = "Request a freshly issued token."


class MissingOwnIdentity(TokenError):
    """CX-E104 -- The token names an address audience but no own address is set."""

    code = "CX-E104"
    message = "Token audience is required but your app address has not been configured"
    resolution = "Configure 'address' on the credentials settings."


class AudienceMismatch(TokenError):
    """CX-E105 -- The token was intended for a different recipient."""

    code = "CX-E105"
    message = "Token audience does not match"


class MissingCallbackUrl(TokenError):
    """CX-E106 -- The token names a URL audience but no callback URL was given."""

    code = "CX-E106"
    message = "Token audience matching your callback url is required but one wasn't passed in"
    resolution = "Pass the callback URL the response was delivered to."


# ===================================================================
# CX-E2xx  Issuance
# ===================================================================

class MissingSigner(IssuanceError):
    """CX-E200 -- No signer capability has been configured."""

    code = "CX-E200"
    message = "No Signer functionality has been configured"
    resolution = "Configure 'signer' on the credentials settings."


class MissingIssuerIdentity(IssuanceError):
    """CX-E201 -- No issuer address has been configured."""

    code = "CX-E201"
    message = "No application identity address has been configured"
    resolution = "Configure 'address' on the credentials settings."


# ===================================================================
# CX-E3xx  Configuration
# ===================================================================

class MalformedNetworkConfig(ConfigurationError):
    """CX-E300 -- A network configuration entry is not usable."""

    code = "CX-E300"
    message = "Malformed network config object"
    resolution = "Every network entry must be an object with 'registry' and 'rpcUrl' keys."


# ===================================================================
# CX-E4xx  Push notifications
# ===================================================================

class MissingPushToken(PushError):
    """CX-E400 -- No push token was supplied."""

    code = "CX-E400"
    message = "Missing push notification token"
    resolution = "Request the 'notifications' permission to obtain a push token."


class MissingPushUrl(PushError):
    """CX-E401 -- No URL was supplied for the device to open."""

    code = "CX-E401"
    message = "Missing payload url for sending to users device"


class InvalidPushToken(PushError):
    """CX-E402 -- The relay rejected the push token (HTTP 403)."""

    code = "CX-E402"
    message = "Error sending push notification to user: Invalid Token"


class PushFailed(PushError):
    """CX-E403 -- The relay answered with an unexpected status."""

    code = "CX-E403"
    message = "Error sending push notification to user"

    def __init__(self, status_code: int, body: str) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(
            f"Error sending push notification to user: {status_code} {body}",
            details={"status_code": status_code, "body": body},
        )


# ===================================================================
# CX-E5xx  Default registry
# ===================================================================

class UnknownNetwork(RegistryError):
    """CX-E500 -- The address belongs to a network with no configuration."""

    code = "CX-E500"
    message = "No network configuration for address"
    resolution = "Add the network to the 'networks' settings."


class RegistryLookupFailed(RegistryError):
    """CX-E501 -- The registry contract or profile store gave an unusable reply."""

    code = "CX-E501"
    message = "Registry lookup failed"


# ---------------------------------------------------------------------------
# Lookup helper
# ---------------------------------------------------------------------------

_CODE_MAP: dict[str, type[CredexError]] = {
    cls.code: cls
    for cls in [
        # E1xx
        MalformedToken,
        UnknownIssuer,
        InvalidSignature,
        Expired,
        MissingOwnIdentity,
        AudienceMismatch,
        MissingCallbackUrl,
        # E2xx
        MissingSigner,
        MissingIssuerIdentity,
        # E3xx
        MalformedNetworkConfig,
        # E4xx
        MissingPushToken,
        MissingPushUrl,
        InvalidPushToken,
        # E5xx
        UnknownNetwork,
        RegistryLookupFailed,
    ]
}


def error_from_code(code: str, message: str | None = None) -> CredexError:
    """Instantiate the exception class registered for *code*.

    ``PushFailed`` is not included because it requires the relay status
    and body.

    Raises
    ------
    KeyError
        If *code* is not a recognised error code.
    """
    cls = _CODE_MAP[code]
    return cls(message) if message else cls()
