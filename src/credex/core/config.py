"""credex settings.

Defines the validated, immutable configuration owned by a single
:class:`~credex.credentials.Credentials` instance.  Network entries are
validated eagerly, and when no registry is supplied one is built from
the network configuration before the settings object is returned.
"""
from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from credex.core.errors import MalformedNetworkConfig
from credex.core.interfaces import Registry, Signer

PUSH_ENDPOINT = "https://pututu.uport.me/api/v1/sns"
"""Push relay accepting ``{url}`` bodies with a bearer push token."""

_REQUIRED_NETWORK_KEYS: tuple[str, ...] = ("registry", "rpcUrl")
_NETWORK_ID_RE = re.compile(r"^0x[0-9a-fA-F]+$")


class NetworkConfig(BaseModel):
    """Where to find the identity registry on one network."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    registry: str = Field(
        description="Address of the registry contract on this network.",
    )
    rpc_url: str = Field(
        alias="rpcUrl",
        description="JSON-RPC endpoint used for registry reads.",
    )


def configure_networks(networks: Mapping[str, Any]) -> dict[str, NetworkConfig]:
    """Validate a raw ``network-id -> {registry, rpcUrl}`` mapping.

    Raises
    ------
    MalformedNetworkConfig
        If an entry is not a mapping, lacks one of the required keys, or
        carries non-string values.
    """
    if not isinstance(networks, Mapping):
        raise MalformedNetworkConfig(
            "Networks must map network ids to configuration objects",
            details={"networks": type(networks).__name__},
        )
    configured: dict[str, NetworkConfig] = {}
    for network_id, entry in networks.items():
        if not isinstance(network_id, str) or not _NETWORK_ID_RE.match(network_id):
            raise MalformedNetworkConfig(
                f"Network id must be a hex string such as '0x4', got {network_id!r}",
                details={"network": network_id},
            )
        if isinstance(entry, NetworkConfig):
            configured[network_id] = entry
            continue
        if not isinstance(entry, Mapping):
            raise MalformedNetworkConfig(
                "Network configuration object required",
                details={"network": network_id},
            )
        for key in _REQUIRED_NETWORK_KEYS:
            if key not in entry:
                raise MalformedNetworkConfig(
                    "Malformed network config object, object must have "
                    f"'{key}' key specified.",
                    details={"network": network_id, "missing": key},
                )
        try:
            configured[network_id] = NetworkConfig.model_validate(dict(entry))
        except ValidationError as exc:
            raise MalformedNetworkConfig(
                f"Malformed network config object for '{network_id}': {exc}",
                details={"network": network_id},
            ) from exc
    return configured


class CredentialsSettings(BaseModel):
    """Configuration for one credentials orchestrator.

    Network entries are validated on every construction path.  Build
    instances with :meth:`build` to also fill in the default registry.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    address: str | None = Field(
        default=None,
        description="Own identity: issuer of our tokens, expected audience of theirs.",
    )
    signer: Signer | None = Field(
        default=None,
        description="Signing capability used for every issued token.",
    )
    registry: Registry | None = Field(
        default=None,
        description="Resolver used to look up issuer profiles.",
    )
    networks: dict[str, NetworkConfig] = Field(
        default_factory=dict,
        description="Network id (e.g. ``0x4``) to registry location.",
    )
    push_endpoint: str = Field(
        default=PUSH_ENDPOINT,
        description="Push relay endpoint.",
    )
    http_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Timeout in seconds for push and default-registry requests.",
    )

    @field_validator("networks", mode="before")
    @classmethod
    def validate_networks(cls, v: Mapping[str, Any] | None) -> dict[str, NetworkConfig]:
        return configure_networks(v or {})

    @classmethod
    def build(
        cls,
        *,
        address: str | None = None,
        signer: Signer | None = None,
        registry: Registry | None = None,
        networks: Mapping[str, Any] | None = None,
        **options: Any,
    ) -> CredentialsSettings:
        """Validate *networks* and default the registry from them."""
        settings = cls(
            address=address,
            signer=signer,
            registry=registry,
            networks=networks or {},
            **options,
        )
        return settings.with_default_registry()

    def with_default_registry(self) -> CredentialsSettings:
        """Return these settings with a network registry filled in if none is set."""
        if self.registry is not None:
            return self
        from credex.identity.registry import NetworkRegistry

        default = NetworkRegistry(self.networks, timeout=self.http_timeout)
        return self.model_copy(update={"registry": default})
