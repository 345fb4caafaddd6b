"""credex Credentials -- the credential-exchange orchestrator.

This module implements :class:`Credentials`, the primary entry point of
the package.  It builds signed disclosure requests and attestations,
verifies disclosure responses (including the challenge they answer and
any third-party credentials nested in them), looks up identity
profiles, and sends push notifications.

Usage
-----
::

    from credex import Credentials, SimpleSigner

    credentials = Credentials(
        address="2oDZvNUgn77w2BKTkd9qKpMeUo8EL94QL5V",
        signer=SimpleSigner(private_key_hex),
    )

    request = await credentials.create_request(
        {"requested": ["name", "phone"], "callbackUrl": "https://app.example/cb"}
    )
    ...
    identity = await credentials.receive(response_token, "https://app.example/cb")
    if identity:
        name = identity["name"]
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any

from credex.core.config import CredentialsSettings
from credex.core.types import (
    SHARE_REQUEST_TYPE,
    Payload,
    Profile,
    UnresolvedReason,
    UnresolvedResponse,
    VerifiedToken,
)
from credex.identity.registry import NetworkRegistry
from credex.token.issuer import create_token
from credex.token.verifier import verify_token
from credex.wire.push import PushClient

if TYPE_CHECKING:
    from credex.core.interfaces import Registry, Signer

logger = logging.getLogger(__name__)

# request param -> payload claim
_REQUEST_FIELDS: dict[str, str] = {
    "requested": "requested",
    "verified": "verified",
    "callbackUrl": "callback",
    "network_id": "net",
}


class Credentials:
    """Issues requests and attestations, and verifies disclosure responses.

    Parameters
    ----------
    settings:
        Pre-built settings.  When omitted they are built from the keyword
        arguments with :meth:`CredentialsSettings.build`.
    address:
        Own identity address.  Without it, responses are accepted without
        matching them to a request we issued.
    signer:
        Signing capability; required for :meth:`create_request` and
        :meth:`attest`.
    registry:
        Profile resolver.  Defaults to a
        :class:`~credex.identity.registry.NetworkRegistry` over *networks*.
    networks:
        ``network-id -> {registry, rpcUrl}``; validated immediately.
    push_client:
        Push relay client; defaults to one built from the settings.

    Raises
    ------
    MalformedNetworkConfig
        If *networks* contains an unusable entry.
    """

    def __init__(
        self,
        settings: CredentialsSettings | None = None,
        *,
        address: str | None = None,
        signer: Signer | None = None,
        registry: Registry | None = None,
        networks: Mapping[str, Any] | None = None,
        push_client: PushClient | None = None,
        **options: Any,
    ) -> None:
        if settings is None:
            settings = CredentialsSettings.build(
                address=address,
                signer=signer,
                registry=registry,
                networks=networks,
                **options,
            )
        registry = settings.registry
        if registry is None:
            registry = NetworkRegistry(settings.networks, timeout=settings.http_timeout)
            settings = settings.model_copy(update={"registry": registry})
        self._settings = settings
        self._registry: Registry = registry
        self._push_client = push_client or PushClient(
            settings.push_endpoint,
            timeout=settings.http_timeout,
        )

    @property
    def settings(self) -> CredentialsSettings:
        return self._settings

    # ------------------------------------------------------------------
    # Outbound tokens
    # ------------------------------------------------------------------

    async def create_request(self, params: Mapping[str, Any] | None = None) -> str:
        """Create a signed selective-disclosure request.

        Only ``requested``, ``verified``, ``callbackUrl``, ``network_id``
        and ``notifications`` are read from *params*; anything else is
        dropped so the request carries no more than it has to.

        Example::

            await credentials.create_request({
                "requested": ["name", "country"],
                "callbackUrl": "https://myserver.example/cb",
                "notifications": True,
            })
        """
        params = params or {}
        payload: Payload = {}
        for param, claim in _REQUEST_FIELDS.items():
            if params.get(param):
                payload[claim] = params[param]
        if params.get("notifications"):
            payload["permissions"] = ["notifications"]
        payload["type"] = SHARE_REQUEST_TYPE
        return await create_token(self._settings.address, self._settings.signer, payload)

    async def attest(self, credential: Mapping[str, Any]) -> str:
        """Create a signed attestation of ``claim`` about subject ``sub``.

        Parameters
        ----------
        credential:
            ``sub`` (subject address), ``claim`` (a single key/value or a
            nested mapping) and an optional ``exp`` in milliseconds.
        """
        payload: Payload = {
            key: credential[key]
            for key in ("sub", "claim", "exp")
            if credential.get(key) is not None
        }
        return await create_token(self._settings.address, self._settings.signer, payload)

    # ------------------------------------------------------------------
    # Inbound tokens
    # ------------------------------------------------------------------

    async def receive(
        self,
        token: str,
        callback_url: str | None = None,
    ) -> dict[str, Any] | UnresolvedResponse:
        """Verify a disclosure response and return the disclosed identity.

        With an own address configured, the response must carry the
        request it answers (``req``) and that request must have been
        issued by us; otherwise an :class:`UnresolvedResponse` (falsy) is
        returned.

        Returns
        -------
        dict[str, Any] | UnresolvedResponse
            Profile fields, overridden by the response's ``own`` claims,
            plus ``address``, ``pushToken`` / ``networkAddress`` when
            available, and ``verified`` -- the nested credentials, each
            with its ``jwt``.

        Raises
        ------
        TokenError
            If the response, its challenge, or any nested credential
            fails verification.
        """
        response = await verify_token(
            self._registry, self._settings.address, token, callback_url
        )
        payload = response.payload
        address = self._settings.address

        if address:
            challenge_token = payload.get("req")
            if not challenge_token:
                logger.warning(
                    "Challenge was not included in response from %s", payload.get("iss")
                )
                return UnresolvedResponse(
                    reason=UnresolvedReason.MISSING_CHALLENGE,
                    issuer=payload.get("iss"),
                )
            challenge = await verify_token(self._registry, address, challenge_token)
            challenge_issuer = challenge.payload.get("iss")
            if challenge_issuer != address:
                logger.warning(
                    "Response from %s answers a request issued by %s",
                    payload.get("iss"),
                    challenge_issuer,
                )
                return UnresolvedResponse(
                    reason=UnresolvedReason.FOREIGN_CHALLENGE,
                    issuer=payload.get("iss"),
                    challenge_issuer=challenge_issuer,
                )

        return await self._disclosed_identity(response)

    async def _disclosed_identity(self, response: VerifiedToken) -> dict[str, Any]:
        payload = response.payload
        identity: dict[str, Any] = dict(response.profile)
        own = payload.get("own")
        if isinstance(own, Mapping):
            identity.update(own)
        capabilities = payload.get("capabilities")
        if isinstance(capabilities, list) and len(capabilities) == 1:
            identity["pushToken"] = capabilities[0]
        identity["address"] = payload["iss"]
        if payload.get("nad"):
            identity["networkAddress"] = payload["nad"]
        if payload.get("verified"):
            nested = await self._verify_nested(payload["verified"])
            identity["verified"] = [{**item.payload, "jwt": item.jwt} for item in nested]
        return identity

    async def _verify_nested(self, tokens: Sequence[str]) -> list[VerifiedToken]:
        """Verify third-party credentials concurrently; the first failure cancels the rest."""
        try:
            async with asyncio.TaskGroup() as group:
                tasks = [
                    group.create_task(
                        verify_token(
                            self._registry,
                            self._settings.address,
                            nested,
                            check_audience=False,
                        )
                    )
                    for nested in tokens
                ]
        except ExceptionGroup as failures:
            raise failures.exceptions[0] from None
        return [task.result() for task in tasks]

    # ------------------------------------------------------------------
    # Registry and push
    # ------------------------------------------------------------------

    async def lookup(self, address: str) -> Profile | None:
        """Return the registry profile for *address*."""
        return await self._registry.resolve(address)

    async def push(
        self, push_token: str | None, message: Mapping[str, Any] | None
    ) -> Any:
        """Send ``message["url"]`` to the device behind *push_token*.

        Raises
        ------
        MissingPushToken, MissingPushUrl
            Before any network call.
        InvalidPushToken
            If the relay rejects the token.
        PushFailed
            For any other relay failure status.
        """
        url = message.get("url") if isinstance(message, Mapping) else None
        return await self._push_client.send(push_token, url)
