"""credex identity addresses and the default profile registry.

* **mnid** -- encoding of network-qualified addresses.
* **NetworkRegistry** -- read-only resolver over registry contracts.
"""
from __future__ import annotations

from credex.identity.mnid import NetworkAddress, canonical_address, is_address, is_mnid
from credex.identity.registry import DEFAULT_NETWORKS, NetworkRegistry

__all__ = [
    "DEFAULT_NETWORKS",
    "NetworkAddress",
    "NetworkRegistry",
    "canonical_address",
    "is_address",
    "is_mnid",
]
