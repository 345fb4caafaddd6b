#!/usr/bin/env python3
"""credex quickstart -- a complete selective-disclosure exchange.

Demonstrates the core workflow:

1. Create identities for an app, a user and a credential issuer.
2. Publish their profiles in an in-memory registry.
3. The app creates a disclosure request.
4. The issuer attests a claim about the user.
5. The user's device answers the request, nesting the attestation.
6. The app receives and verifies the response.

Run:
    python examples/quickstart.py
"""
from __future__ import annotations

import asyncio

from cryptography.hazmat.primitives.asymmetric import ec

from credex import Credentials, CredexError, InMemoryRegistry, SimpleSigner, create_token
from credex.identity import mnid


def new_identity(account: str) -> tuple[str, SimpleSigner]:
    signer = SimpleSigner.from_key(ec.generate_private_key(ec.SECP256K1()))
    return mnid.encode("0x4", account), signer


async def main() -> None:
    # -- Step 1: Identities ---------------------------------------------------
    app_address, app_signer = new_identity("0x" + "a1" * 20)
    user_address, user_signer = new_identity("0x" + "b2" * 20)
    issuer_address, issuer_signer = new_identity("0x" + "c3" * 20)
    print(f"[1] App address:    {app_address}")
    print(f"    User address:   {user_address}")

    # -- Step 2: Registry -----------------------------------------------------
    registry = InMemoryRegistry()
    registry.add(app_address, {"name": "Quickstart App", "publicKey": app_signer.public_key})
    registry.add(user_address, {"name": "Alice", "publicKey": user_signer.public_key})
    registry.add(issuer_address, {"name": "Acme Corp", "publicKey": issuer_signer.public_key})

    app = Credentials(address=app_address, signer=app_signer, registry=registry)
    issuer = Credentials(address=issuer_address, signer=issuer_signer, registry=registry)

    # -- Step 3: Disclosure request -------------------------------------------
    request = await app.create_request(
        {
            "requested": ["name", "country"],
            "verified": ["employer"],
            "callbackUrl": "https://app.example/cb",
            "notifications": True,
        }
    )
    print(f"[3] Request token:  {request[:48]}...")

    # -- Step 4: Attestation --------------------------------------------------
    attestation = await issuer.attest(
        {"sub": user_address, "claim": {"employer": "Acme Corp"}}
    )
    print(f"[4] Attestation:    {attestation[:48]}...")

    # -- Step 5: The user's device answers ------------------------------------
    response = await create_token(
        user_address,
        user_signer,
        {
            "req": request,
            "aud": "https://app.example/cb",
            "own": {"country": "NZ"},
            "verified": [attestation],
            "capabilities": ["arn:aws:sns:us-west-2:123456789:endpoint/GCM/uPort/abc"],
        },
    )

    # -- Step 6: Receive ------------------------------------------------------
    try:
        identity = await app.receive(response, "https://app.example/cb")
    except CredexError as exc:
        print(f"[6] Rejected: [{exc.code}] {exc.message}")
        return

    if not identity:
        print(f"[6] Response did not answer our request: {identity.reason}")
        return

    print(f"[6] Verified {identity['name']} ({identity['address']})")
    print(f"    country:   {identity['country']}")
    print(f"    pushToken: {identity['pushToken']}")
    for credential in identity["verified"]:
        print(f"    verified:  {credential['claim']} by {credential['iss']}")


if __name__ == "__main__":
    asyncio.run(main())
