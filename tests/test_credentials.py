"""Tests for the Credentials orchestrator.

Covers:

1. **create_request** -- claim mapping, dropped parameters, permissions.
2. **attest** -- subject/claim/expiry payloads.
3. **receive** -- challenge matching, identity assembly, nested
   credential verification.
4. **lookup / push** -- delegation to the registry and the push relay.
"""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import httpx
import pytest
from cryptography.hazmat.primitives.asymmetric import ec

from credex.core.config import CredentialsSettings
from credex.core.errors import (
    AudienceMismatch,
    Expired,
    InvalidPushToken,
    InvalidSignature,
    MalformedNetworkConfig,
    MissingIssuerIdentity,
    MissingPushToken,
    MissingPushUrl,
    MissingSigner,
    UnknownIssuer,
)
from credex.core.interfaces import InMemoryRegistry
from credex.core.types import UnresolvedReason, UnresolvedResponse
from credex.credentials import Credentials
from credex.identity import mnid
from credex.identity.registry import NetworkRegistry
from credex.token.codec import decode, now_ms
from credex.token.issuer import create_token
from credex.token.signing import SimpleSigner
from credex.token.verifier import verify_token
from credex.wire.push import PushClient

APP_ADDRESS = mnid.encode("0x4", "0x" + "a1" * 20)
USER_ADDRESS = mnid.encode("0x4", "0x" + "b2" * 20)
ISSUER_ADDRESS = mnid.encode("0x4", "0x" + "c3" * 20)
OTHER_APP_ADDRESS = mnid.encode("0x4", "0x" + "d4" * 20)
CALLBACK = "https://app.example/cb"
PUSH_TOKEN = "arn:aws:sns:us-west-2:123456789:endpoint/GCM/uPort/abc"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


def _new_signer() -> SimpleSigner:
    return SimpleSigner.from_key(ec.generate_private_key(ec.SECP256K1()))


@pytest.fixture()
def app_signer() -> SimpleSigner:
    return _new_signer()


@pytest.fixture()
def user_signer() -> SimpleSigner:
    return _new_signer()


@pytest.fixture()
def issuer_signer() -> SimpleSigner:
    return _new_signer()


@pytest.fixture()
def other_app_signer() -> SimpleSigner:
    return _new_signer()


@pytest.fixture()
def registry(
    app_signer: SimpleSigner,
    user_signer: SimpleSigner,
    issuer_signer: SimpleSigner,
    other_app_signer: SimpleSigner,
) -> InMemoryRegistry:
    """A registry knowing the app, the user, a credential issuer and a second app."""
    return InMemoryRegistry(
        {
            APP_ADDRESS: {"name": "Test App", "publicKey": app_signer.public_key},
            USER_ADDRESS: {
                "name": "Profile Name",
                "country": "NZ",
                "publicKey": user_signer.public_key,
            },
            ISSUER_ADDRESS: {"name": "Issuer", "publicKey": issuer_signer.public_key},
            OTHER_APP_ADDRESS: {"name": "Other", "publicKey": other_app_signer.public_key},
        }
    )


@pytest.fixture()
def credentials(app_signer: SimpleSigner, registry: InMemoryRegistry) -> Credentials:
    """Credentials for an app with its own address."""
    return Credentials(address=APP_ADDRESS, signer=app_signer, registry=registry)


@pytest.fixture()
def anonymous(registry: InMemoryRegistry) -> Credentials:
    """Credentials configured without an own address or signer."""
    return Credentials(registry=registry)


async def _respond(
    signer: SimpleSigner, payload: dict[str, Any], issuer: str = USER_ADDRESS
) -> str:
    """Sign a disclosure response the way an identity holder's device does."""
    return await create_token(issuer, signer, payload)


class _Relay:
    def __init__(self, response: httpx.Response) -> None:
        self.response = response
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.response

    def client(self) -> PushClient:
        return PushClient(transport=httpx.MockTransport(self.handler))


# ===================================================================
# Construction
# ===================================================================


class TestConstruction:
    """Tests for Credentials construction."""

    def test_defaults_to_network_registry(self) -> None:
        credentials = Credentials(address=APP_ADDRESS)
        assert isinstance(credentials.settings.registry, NetworkRegistry)

    def test_rejects_malformed_networks(self) -> None:
        with pytest.raises(MalformedNetworkConfig):
            Credentials(networks={"0x4": {"rpcUrl": "https://rinkeby.infura.io"}})

    def test_accepts_prebuilt_settings(self, registry: InMemoryRegistry) -> None:
        settings = CredentialsSettings(address=APP_ADDRESS, registry=registry)
        assert Credentials(settings).settings is settings

    def test_prebuilt_settings_get_default_registry(self) -> None:
        credentials = Credentials(CredentialsSettings(address=APP_ADDRESS))
        assert isinstance(credentials.settings.registry, NetworkRegistry)

    def test_prebuilt_settings_reject_malformed_networks(self) -> None:
        with pytest.raises(MalformedNetworkConfig, match="rpcUrl"):
            Credentials(CredentialsSettings(networks={"0x4": {"registry": "0xabc"}}))

    @pytest.mark.asyncio
    async def test_prebuilt_settings_resolve_through_registry(
        self, registry: InMemoryRegistry
    ) -> None:
        credentials = Credentials(CredentialsSettings(address=APP_ADDRESS, registry=registry))
        profile = await credentials.lookup(USER_ADDRESS)
        assert profile is not None
        assert registry.lookups == [USER_ADDRESS]


# ===================================================================
# create_request
# ===================================================================


class TestCreateRequest:
    """Tests for Credentials.create_request."""

    @pytest.mark.asyncio
    async def test_payload(self, credentials: Credentials) -> None:
        token = await credentials.create_request(
            {
                "requested": ["name", "phone"],
                "verified": ["email"],
                "callbackUrl": CALLBACK,
                "network_id": "0x4",
                "notifications": True,
            }
        )
        payload = decode(token).payload
        iat = payload.pop("iat")

        assert isinstance(iat, int)
        assert payload == {
            "iss": APP_ADDRESS,
            "requested": ["name", "phone"],
            "verified": ["email"],
            "callback": CALLBACK,
            "net": "0x4",
            "permissions": ["notifications"],
            "type": "shareReq",
        }

    @pytest.mark.asyncio
    async def test_without_params(self, credentials: Credentials) -> None:
        payload = decode(await credentials.create_request()).payload
        assert set(payload) == {"iss", "iat", "type"}

    @pytest.mark.asyncio
    async def test_drops_unrecognised_params(self, credentials: Credentials) -> None:
        token = await credentials.create_request(
            {"requested": ["name"], "exp": 1, "aud": "x", "callback": "y"}
        )
        payload = decode(token).payload
        assert "exp" not in payload
        assert "aud" not in payload
        assert "callback" not in payload

    @pytest.mark.asyncio
    async def test_notifications_false(self, credentials: Credentials) -> None:
        token = await credentials.create_request({"notifications": False})
        assert "permissions" not in decode(token).payload

    @pytest.mark.asyncio
    async def test_request_verifies(
        self, credentials: Credentials, registry: InMemoryRegistry
    ) -> None:
        token = await credentials.create_request({"requested": ["name"]})
        result = await verify_token(registry, APP_ADDRESS, token)
        assert result.payload["type"] == "shareReq"
        assert result.profile["name"] == "Test App"

    @pytest.mark.asyncio
    async def test_requires_signer(self, registry: InMemoryRegistry) -> None:
        credentials = Credentials(address=APP_ADDRESS, registry=registry)
        with pytest.raises(MissingSigner):
            await credentials.create_request({"requested": ["name"]})

    @pytest.mark.asyncio
    async def test_requires_address(
        self, app_signer: SimpleSigner, registry: InMemoryRegistry
    ) -> None:
        credentials = Credentials(signer=app_signer, registry=registry)
        with pytest.raises(MissingIssuerIdentity):
            await credentials.create_request({"requested": ["name"]})


# ===================================================================
# attest
# ===================================================================


class TestAttest:
    """Tests for Credentials.attest."""

    @pytest.mark.asyncio
    async def test_payload(self, credentials: Credentials) -> None:
        exp = now_ms() + 30 * 24 * 3600 * 1000
        token = await credentials.attest(
            {"sub": USER_ADDRESS, "claim": {"email": "alice@example.com"}, "exp": exp}
        )
        payload = decode(token).payload
        assert payload["iss"] == APP_ADDRESS
        assert payload["sub"] == USER_ADDRESS
        assert payload["claim"] == {"email": "alice@example.com"}
        assert payload["exp"] == exp

    @pytest.mark.asyncio
    async def test_nested_claim(self, credentials: Credentials) -> None:
        claim = {"employer": {"name": "Acme", "since": 2015}}
        token = await credentials.attest({"sub": USER_ADDRESS, "claim": claim})
        payload = decode(token).payload
        assert payload["claim"] == claim
        assert "exp" not in payload

    @pytest.mark.asyncio
    async def test_requires_signer(self, anonymous: Credentials) -> None:
        with pytest.raises(MissingSigner):
            await anonymous.attest({"sub": USER_ADDRESS, "claim": {"name": "x"}})


# ===================================================================
# receive
# ===================================================================


class TestReceive:
    """Tests for Credentials.receive."""

    @pytest.mark.asyncio
    async def test_answers_own_request(
        self, credentials: Credentials, user_signer: SimpleSigner
    ) -> None:
        request = await credentials.create_request({"requested": ["name"]})
        response = await _respond(
            user_signer, {"req": request, "own": {"name": "Davie"}, "aud": APP_ADDRESS}
        )

        identity = await credentials.receive(response)

        assert identity["address"] == USER_ADDRESS
        assert identity["name"] == "Davie"
        assert identity["country"] == "NZ"
        assert identity["publicKey"]

    @pytest.mark.asyncio
    async def test_missing_challenge(
        self,
        credentials: Credentials,
        user_signer: SimpleSigner,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        response = await _respond(user_signer, {"own": {"name": "Davie"}})

        with caplog.at_level(logging.WARNING, logger="credex.credentials"):
            result = await credentials.receive(response)

        assert isinstance(result, UnresolvedResponse)
        assert not result
        assert result.reason is UnresolvedReason.MISSING_CHALLENGE
        assert result.issuer == USER_ADDRESS
        assert "Challenge was not included" in caplog.text

    @pytest.mark.asyncio
    async def test_foreign_challenge(
        self,
        credentials: Credentials,
        user_signer: SimpleSigner,
        other_app_signer: SimpleSigner,
    ) -> None:
        foreign_request = await create_token(
            OTHER_APP_ADDRESS, other_app_signer, {"type": "shareReq"}
        )
        response = await _respond(user_signer, {"req": foreign_request})

        result = await credentials.receive(response)

        assert isinstance(result, UnresolvedResponse)
        assert result.reason is UnresolvedReason.FOREIGN_CHALLENGE
        assert result.challenge_issuer == OTHER_APP_ADDRESS

    @pytest.mark.asyncio
    async def test_challenge_must_verify(
        self, credentials: Credentials, user_signer: SimpleSigner
    ) -> None:
        request = await credentials.create_request({"requested": ["name"]})
        header, payload, signature = request.split(".")
        tampered = f"{header}.{payload}.{signature[::-1]}"
        response = await _respond(user_signer, {"req": tampered})

        with pytest.raises(InvalidSignature):
            await credentials.receive(response)

    @pytest.mark.asyncio
    async def test_expired_challenge(
        self, credentials: Credentials, app_signer: SimpleSigner, user_signer: SimpleSigner
    ) -> None:
        request = await create_token(
            APP_ADDRESS, app_signer, {"type": "shareReq", "exp": now_ms() - 1}
        )
        response = await _respond(user_signer, {"req": request})

        with pytest.raises(Expired):
            await credentials.receive(response)

    @pytest.mark.asyncio
    async def test_without_own_address_skips_challenge(
        self, anonymous: Credentials, user_signer: SimpleSigner
    ) -> None:
        response = await _respond(user_signer, {"own": {"name": "Davie"}})
        identity = await anonymous.receive(response)
        assert identity["name"] == "Davie"
        assert identity["address"] == USER_ADDRESS

    @pytest.mark.asyncio
    async def test_callback_audience(
        self, credentials: Credentials, user_signer: SimpleSigner
    ) -> None:
        request = await credentials.create_request({"callbackUrl": CALLBACK})
        response = await _respond(user_signer, {"req": request, "aud": CALLBACK})

        assert (await credentials.receive(response, CALLBACK))["address"] == USER_ADDRESS
        with pytest.raises(AudienceMismatch):
            await credentials.receive(response, "https://elsewhere.example/cb")

    @pytest.mark.asyncio
    async def test_unknown_responder(
        self, credentials: Credentials, registry: InMemoryRegistry, user_signer: SimpleSigner
    ) -> None:
        registry.remove(USER_ADDRESS)
        response = await _respond(user_signer, {})
        with pytest.raises(UnknownIssuer):
            await credentials.receive(response)

    @pytest.mark.asyncio
    async def test_push_token_and_network_address(
        self, anonymous: Credentials, user_signer: SimpleSigner
    ) -> None:
        network_address = mnid.encode("0x4", "0x" + "e5" * 20)
        response = await _respond(
            user_signer, {"capabilities": [PUSH_TOKEN], "nad": network_address}
        )
        identity = await anonymous.receive(response)
        assert identity["pushToken"] == PUSH_TOKEN
        assert identity["networkAddress"] == network_address

    @pytest.mark.asyncio
    @pytest.mark.parametrize("capabilities", [[], [PUSH_TOKEN, "other"], PUSH_TOKEN])
    async def test_push_token_needs_exactly_one_capability(
        self, anonymous: Credentials, user_signer: SimpleSigner, capabilities: Any
    ) -> None:
        response = await _respond(user_signer, {"capabilities": capabilities})
        identity = await anonymous.receive(response)
        assert "pushToken" not in identity

    @pytest.mark.asyncio
    @pytest.mark.parametrize("own", [["x"], "Davie", 42])
    async def test_ignores_own_claim_that_is_not_a_mapping(
        self, anonymous: Credentials, user_signer: SimpleSigner, own: Any
    ) -> None:
        response = await _respond(user_signer, {"own": own})
        identity = await anonymous.receive(response)
        assert identity["name"] == "Profile Name"
        assert identity["address"] == USER_ADDRESS

    @pytest.mark.asyncio
    async def test_address_not_overridden_by_own(
        self, anonymous: Credentials, user_signer: SimpleSigner
    ) -> None:
        response = await _respond(user_signer, {"own": {"address": "0xspoofed"}})
        assert (await anonymous.receive(response))["address"] == USER_ADDRESS

    @pytest.mark.asyncio
    async def test_nested_credentials(
        self,
        anonymous: Credentials,
        user_signer: SimpleSigner,
        issuer_signer: SimpleSigner,
    ) -> None:
        attestations = [
            await create_token(
                ISSUER_ADDRESS,
                issuer_signer,
                {"sub": USER_ADDRESS, "claim": {"email": f"user{i}@example.com"}},
            )
            for i in range(3)
        ]
        response = await _respond(user_signer, {"verified": attestations})

        identity = await anonymous.receive(response)

        verified = identity["verified"]
        assert [item["claim"]["email"] for item in verified] == [
            "user0@example.com",
            "user1@example.com",
            "user2@example.com",
        ]
        assert [item["jwt"] for item in verified] == attestations
        assert all(item["iss"] == ISSUER_ADDRESS for item in verified)

    @pytest.mark.asyncio
    async def test_nested_credentials_ignore_audience(
        self,
        credentials: Credentials,
        user_signer: SimpleSigner,
        issuer_signer: SimpleSigner,
    ) -> None:
        attestation = await create_token(
            ISSUER_ADDRESS, issuer_signer, {"sub": USER_ADDRESS, "aud": OTHER_APP_ADDRESS}
        )
        request = await credentials.create_request({"verified": ["email"]})
        response = await _respond(user_signer, {"req": request, "verified": [attestation]})

        identity = await credentials.receive(response)
        assert identity["verified"][0]["aud"] == OTHER_APP_ADDRESS

    @pytest.mark.asyncio
    async def test_nested_credential_failure(
        self, anonymous: Credentials, user_signer: SimpleSigner, issuer_signer: SimpleSigner
    ) -> None:
        good = await create_token(ISSUER_ADDRESS, issuer_signer, {"sub": USER_ADDRESS})
        forged = await create_token(ISSUER_ADDRESS, _new_signer(), {"sub": USER_ADDRESS})
        response = await _respond(user_signer, {"verified": [good, forged]})

        with pytest.raises(InvalidSignature):
            await anonymous.receive(response)

    @pytest.mark.asyncio
    async def test_nested_credentials_resolve_concurrently(
        self,
        user_signer: SimpleSigner,
        issuer_signer: SimpleSigner,
        registry: InMemoryRegistry,
    ) -> None:
        class SlowRegistry:
            """Counts lookups in flight at the same time."""

            def __init__(self) -> None:
                self.in_flight = 0
                self.peak = 0

            async def resolve(self, address: str) -> dict[str, Any] | None:
                self.in_flight += 1
                self.peak = max(self.peak, self.in_flight)
                await asyncio.sleep(0.01)
                self.in_flight -= 1
                return await registry.resolve(address)

        slow = SlowRegistry()
        credentials = Credentials(registry=slow)
        attestations = [
            await create_token(ISSUER_ADDRESS, issuer_signer, {"sub": USER_ADDRESS})
            for _ in range(4)
        ]
        response = await _respond(user_signer, {"verified": attestations})

        identity = await credentials.receive(response)

        assert len(identity["verified"]) == 4
        assert slow.peak == 4


# ===================================================================
# lookup / push
# ===================================================================


class TestLookupAndPush:
    """Tests for Credentials.lookup and Credentials.push."""

    @pytest.mark.asyncio
    async def test_lookup(self, credentials: Credentials, registry: InMemoryRegistry) -> None:
        profile = await credentials.lookup(USER_ADDRESS)
        assert profile is not None
        assert profile["name"] == "Profile Name"
        assert registry.lookups == [USER_ADDRESS]

    @pytest.mark.asyncio
    async def test_lookup_unknown(self, credentials: Credentials) -> None:
        assert await credentials.lookup(mnid.encode("0x4", "0x" + "ff" * 20)) is None

    @pytest.mark.asyncio
    async def test_push(self, registry: InMemoryRegistry) -> None:
        relay = _Relay(httpx.Response(200, json={"status": "success"}))
        credentials = Credentials(registry=registry, push_client=relay.client())

        result = await credentials.push(PUSH_TOKEN, {"url": "me.uport:me?requestToken=abc"})

        assert result == {"status": "success"}
        assert json.loads(relay.requests[0].content) == {"url": "me.uport:me?requestToken=abc"}

    @pytest.mark.asyncio
    async def test_push_invalid_token(self, registry: InMemoryRegistry) -> None:
        relay = _Relay(httpx.Response(403))
        credentials = Credentials(registry=registry, push_client=relay.client())
        with pytest.raises(InvalidPushToken):
            await credentials.push(PUSH_TOKEN, {"url": "me.uport:me"})

    @pytest.mark.asyncio
    async def test_push_preconditions(self, registry: InMemoryRegistry) -> None:
        relay = _Relay(httpx.Response(200))
        credentials = Credentials(registry=registry, push_client=relay.client())

        with pytest.raises(MissingPushToken):
            await credentials.push(None, {"url": "me.uport:me"})
        with pytest.raises(MissingPushUrl):
            await credentials.push(PUSH_TOKEN, {})
        with pytest.raises(MissingPushUrl):
            await credentials.push(PUSH_TOKEN, None)
        with pytest.raises(MissingPushToken):
            await credentials.push(None, None)
        assert relay.requests == []
