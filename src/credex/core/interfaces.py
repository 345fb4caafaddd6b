"""credex capability interfaces and in-memory implementations.

This module defines the *structural* interfaces (``typing.Protocol``)
for the two external capabilities the token protocol depends on, plus a
lightweight in-memory registry suitable for testing and local
development.

Every Protocol class is decorated with ``@runtime_checkable`` so that
``isinstance`` checks work at run-time in addition to static analysis.
"""
from __future__ import annotations

import copy
from typing import Protocol, runtime_checkable

from credex.core.types import Profile

# ===================================================================
# Protocol (interface) definitions
# ===================================================================

@runtime_checkable
class Signer(Protocol):
    """Signing capability supplied by the embedding application.

    The private key never enters this package; it may live in a
    hardware module or behind a remote signing service.
    """

    async def sign(self, data: bytes) -> str:
        """Sign *data* and return the base64url-encoded ES256K signature.

        Any exception raised here propagates to the caller of the issuer
        unchanged.
        """
        ...


@runtime_checkable
class Registry(Protocol):
    """Resolver mapping an identity address to its public profile."""

    async def resolve(self, address: str) -> Profile | None:
        """Return the profile for *address*, or ``None`` if unpublished."""
        ...


# ===================================================================
# In-memory implementations (testing / development)
# ===================================================================

class InMemoryRegistry:
    """In-memory registry for testing and development.

    Profiles are held in a plain ``dict`` keyed by the address exactly as
    given.  Every resolve returns a copy so callers cannot mutate the
    stored document.
    """

    def __init__(self, profiles: dict[str, Profile] | None = None) -> None:
        self._profiles: dict[str, Profile] = dict(profiles or {})
        self.lookups: list[str] = []

    # -- mutation helpers (not part of the Protocol) --------------------

    def add(self, address: str, profile: Profile) -> None:
        """Publish *profile* under *address* (test helper)."""
        self._profiles[address] = profile

    def remove(self, address: str) -> None:
        """Unpublish *address* (test helper)."""
        self._profiles.pop(address, None)

    # -- Protocol implementation ---------------------------------------

    async def resolve(self, address: str) -> Profile | None:
        """Return a copy of the profile for *address*, or ``None``."""
        self.lookups.append(address)
        profile = self._profiles.get(address)
        if profile is None:
            return None
        return copy.deepcopy(profile)
