"""Shared fixtures for credex conformance tests.

Provides a small cast of identities -- a relying app, a user and a
credential issuer -- each with its own secp256k1 key, all published in
one in-memory registry.
"""
from __future__ import annotations

from dataclasses import dataclass

import httpx
import pytest
from cryptography.hazmat.primitives.asymmetric import ec

from credex.core.interfaces import InMemoryRegistry
from credex.credentials import Credentials
from credex.identity import mnid
from credex.token.signing import SimpleSigner
from credex.wire.push import PushClient

# ---------------------------------------------------------------------------
# Common addresses
# ---------------------------------------------------------------------------
APP_HEX = "0x" + "a1" * 20
USER_HEX = "0x" + "b2" * 20
ISSUER_HEX = "0x" + "c3" * 20
STRANGER_HEX = "0x" + "d4" * 20


@dataclass(frozen=True)
class Party:
    """An identity taking part in an exchange."""

    address: str
    signer: SimpleSigner


def make_party(account: str, network: str = "0x4") -> Party:
    key = ec.generate_private_key(ec.SECP256K1())
    return Party(address=mnid.encode(network, account), signer=SimpleSigner.from_key(key))


# ---------------------------------------------------------------------------
# Identity fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def app() -> Party:
    return make_party(APP_HEX)


@pytest.fixture()
def user() -> Party:
    return make_party(USER_HEX)


@pytest.fixture()
def issuer() -> Party:
    return make_party(ISSUER_HEX)


@pytest.fixture()
def stranger() -> Party:
    return make_party(STRANGER_HEX)


@pytest.fixture()
def registry(app: Party, user: Party, issuer: Party, stranger: Party) -> InMemoryRegistry:
    registry = InMemoryRegistry()
    for name, party in (("App", app), ("User", user), ("Issuer", issuer), ("Stranger", stranger)):
        registry.add(party.address, {"name": name, "publicKey": party.signer.public_key})
    return registry


# ---------------------------------------------------------------------------
# Orchestrator fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def relay_requests() -> list[httpx.Request]:
    """Requests that reached the mocked push relay."""
    return []


@pytest.fixture()
def credentials(
    app: Party,
    registry: InMemoryRegistry,
    relay_requests: list[httpx.Request],
) -> Credentials:
    def handler(request: httpx.Request) -> httpx.Response:
        relay_requests.append(request)
        return httpx.Response(200, json={"status": "success"})

    return Credentials(
        address=app.address,
        signer=app.signer,
        registry=registry,
        push_client=PushClient(transport=httpx.MockTransport(handler)),
    )
