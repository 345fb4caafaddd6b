"""credex -- signed identity tokens for selective disclosure.

Issue and verify ES256K-signed tokens that request and disclose
personal attributes between a relying application and an identity
holder.

Layers
------
* Token codec, issuer and verifier (:mod:`credex.token`)
* Identity addresses and the default registry (:mod:`credex.identity`)
* Push relay transport (:mod:`credex.wire`)
* Credential-exchange orchestrator (:mod:`credex.credentials`)
"""
from __future__ import annotations

__version__ = "0.1.0"

# ---------------------------------------------------------------------------
# Core types, errors, config, interfaces
# ---------------------------------------------------------------------------
from credex.core.config import CredentialsSettings, NetworkConfig, configure_networks
from credex.core.errors import (
    AudienceMismatch,
    ConfigurationError,
    CredexError,
    Expired,
    InvalidPushToken,
    InvalidSignature,
    IssuanceError,
    MalformedNetworkConfig,
    MalformedToken,
    MissingCallbackUrl,
    MissingIssuerIdentity,
    MissingOwnIdentity,
    MissingPushToken,
    MissingPushUrl,
    MissingSigner,
    PushError,
    PushFailed,
    RegistryError,
    TokenError,
    UnknownIssuer,
)
from credex.core.interfaces import InMemoryRegistry, Registry, Signer
from credex.core.types import (
    JOSE_HEADER,
    Address,
    DecodedToken,
    UnresolvedReason,
    UnresolvedResponse,
    VerifiedToken,
)

# ---------------------------------------------------------------------------
# Main orchestrator
# ---------------------------------------------------------------------------
from credex.credentials import Credentials

# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------
from credex.identity import NetworkRegistry

# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------
from credex.token import (
    SimpleSigner,
    create_token,
    decode,
    encode_unsigned,
    verify_token,
)

# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------
from credex.wire import PushClient

__all__ = [
    # Meta
    "__version__",
    # Core types
    "Address",
    "DecodedToken",
    "VerifiedToken",
    "UnresolvedReason",
    "UnresolvedResponse",
    "JOSE_HEADER",
    # Config
    "CredentialsSettings",
    "NetworkConfig",
    "configure_networks",
    # Interfaces
    "Signer",
    "Registry",
    "InMemoryRegistry",
    # Error hierarchy
    "CredexError",
    "TokenError",
    "IssuanceError",
    "ConfigurationError",
    "PushError",
    "RegistryError",
    "MalformedToken",
    "UnknownIssuer",
    "InvalidSignature",
    "Expired",
    "MissingOwnIdentity",
    "AudienceMismatch",
    "MissingCallbackUrl",
    "MissingSigner",
    "MissingIssuerIdentity",
    "MalformedNetworkConfig",
    "MissingPushToken",
    "MissingPushUrl",
    "InvalidPushToken",
    "PushFailed",
    # Tokens
    "SimpleSigner",
    "create_token",
    "decode",
    "encode_unsigned",
    "verify_token",
    # Identity
    "NetworkRegistry",
    # Transport
    "PushClient",
    # Orchestrator
    "Credentials",
]
