"""Default read-only registry built from the network configuration.

Profiles are published as a registry-contract record named
``uPortProfileIPFS1220`` whose value is the SHA2-256 digest of a JSON
document stored on IPFS.  Resolution therefore takes two requests:

1. a JSON-RPC ``eth_call`` to the network's registry contract, reading
   the record the address published about itself;
2. a gateway fetch of the IPFS document the record points to.

Only reads are supported; publishing a profile is out of scope.
"""
from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import base58
import httpx

from credex.core.config import NetworkConfig
from credex.core.errors import RegistryLookupFailed, UnknownNetwork
from credex.core.types import Profile
from credex.identity.mnid import decode, is_mnid

logger = logging.getLogger(__name__)

DEFAULT_NETWORK = "0x1"

DEFAULT_NETWORKS: dict[str, NetworkConfig] = {
    "0x1": NetworkConfig(
        registry="0xab5c8051b9a1df1aab0149f8b0630848b7ecabf6",
        rpc_url="https://mainnet.infura.io",
    ),
    "0x3": NetworkConfig(
        registry="0x41566e3a081f5032bdcad470adb797635ddfe1f0",
        rpc_url="https://ropsten.infura.io",
    ),
    "0x2a": NetworkConfig(
        registry="0x5f8e9351dc2d238fb878b6ae43aa740d62fc9758",
        rpc_url="https://kovan.infura.io",
    ),
    "0x4": NetworkConfig(
        registry="0x2cc31912b2b0f3075a87b3640923d45a26cef3ee",
        rpc_url="https://rinkeby.infura.io",
    ),
}

IPFS_GATEWAY = "https://ipfs.infura.io/ipfs/"

# get(bytes32 registrationIdentifier, address issuer, address subject)
_GET_SELECTOR = "447885f0"
_PROFILE_RECORD = b"uPortProfileIPFS1220".hex().ljust(64, "0")
_SHA2_256_MULTIHASH_PREFIX = "1220"


def network_key(network_id: str) -> str:
    """Normalise a hex network id so ``0x04`` and ``0x4`` name the same network."""
    return hex(int(network_id, 16))


def _pad_address(address: str) -> str:
    return address.removeprefix("0x").lower().rjust(64, "0")


def profile_call_data(address: str) -> str:
    """ABI-encode the ``get`` call reading *address*'s self-published profile record."""
    padded = _pad_address(address)
    return f"0x{_GET_SELECTOR}{_PROFILE_RECORD}{padded}{padded}"


def ipfs_hash_from_record(record: str) -> str | None:
    """Turn a 32-byte record value into a base58 IPFS hash, or ``None`` if unset."""
    digits = record.removeprefix("0x")
    if not digits or int(digits, 16) == 0:
        return None
    return base58.b58encode(bytes.fromhex(_SHA2_256_MULTIHASH_PREFIX + digits)).decode("ascii")


class NetworkRegistry:
    """:class:`~credex.core.interfaces.Registry` reading profiles from registry contracts.

    Parameters
    ----------
    networks:
        Validated network configuration; merged over :data:`DEFAULT_NETWORKS`.
    timeout:
        HTTP timeout in seconds for both requests.
    ipfs_gateway:
        Base URL of the IPFS gateway; the hash is appended.
    transport:
        Optional ``httpx`` transport, mainly for tests.
    """

    def __init__(
        self,
        networks: Mapping[str, NetworkConfig] | None = None,
        *,
        timeout: float = 30.0,
        ipfs_gateway: str = IPFS_GATEWAY,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._networks: dict[str, NetworkConfig] = {
            network_key(network_id): network
            for network_id, network in {**DEFAULT_NETWORKS, **(networks or {})}.items()
        }
        self._timeout = timeout
        self._ipfs_gateway = ipfs_gateway.rstrip("/") + "/"
        self._transport = transport

    @property
    def networks(self) -> dict[str, NetworkConfig]:
        return dict(self._networks)

    def network_for(self, address: str) -> tuple[NetworkConfig, str]:
        """Return the network configuration and hex account for *address*.

        Hex addresses are assumed to live on :data:`DEFAULT_NETWORK`.

        Raises
        ------
        UnknownNetwork
            If the MNID names a network with no configuration.
        ValueError
            If *address* is an MNID with a bad checksum.
        """
        if is_mnid(address):
            decoded = decode(address)
            network_id, account = decoded.network, decoded.address
        else:
            network_id, account = DEFAULT_NETWORK, address
        network = self._networks.get(network_key(network_id))
        if network is None:
            raise UnknownNetwork(
                f"No network configuration for {network_id}",
                details={"address": address, "network": network_id},
            )
        return network, account

    async def resolve(self, address: str) -> Profile | None:
        """Fetch the profile *address* published about itself, or ``None``."""
        network, account = self.network_for(address)
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            record = await self._read_record(client, network, account)
            ipfs_hash = ipfs_hash_from_record(record)
            if ipfs_hash is None:
                logger.debug("No profile record for %s", address)
                return None
            response = await client.get(f"{self._ipfs_gateway}{ipfs_hash}")
            response.raise_for_status()
            profile = response.json()

        if not isinstance(profile, dict):
            raise RegistryLookupFailed(
                "Profile document is not a JSON object",
                details={"address": address, "ipfs_hash": ipfs_hash},
            )
        return profile

    async def _read_record(
        self,
        client: httpx.AsyncClient,
        network: NetworkConfig,
        account: str,
    ) -> str:
        request: dict[str, Any] = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "eth_call",
            "params": [
                {"to": network.registry, "data": profile_call_data(account)},
                "latest",
            ],
        }
        response = await client.post(network.rpc_url, json=request)
        response.raise_for_status()
        reply = response.json()
        if "error" in reply:
            raise RegistryLookupFailed(
                f"Registry call failed: {reply['error']}",
                details={"rpc_url": network.rpc_url, "error": reply["error"]},
            )
        result = reply.get("result")
        if not isinstance(result, str):
            raise RegistryLookupFailed(
                "Registry call returned no result",
                details={"rpc_url": network.rpc_url},
            )
        return result
