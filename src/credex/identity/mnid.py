"""Multi-network identifiers (MNID).

An MNID packs a network id and a 20-byte account address into one
base58 string so the address cannot be used on the wrong network::

    base58( 0x01 | network-id bytes | address (20 bytes) | checksum (4 bytes) )

The checksum is the first four bytes of the SHA3-256 digest of the
preceding bytes.
"""
from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass

import base58

_VERSION = b"\x01"
_ADDRESS_LENGTH = 20
_CHECKSUM_LENGTH = 4

HEX_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]+$")


@dataclass(frozen=True)
class NetworkAddress:
    """An account address together with the network it lives on."""

    network: str
    address: str


def _hex_to_bytes(value: str) -> bytes:
    digits = value.removeprefix("0x")
    if len(digits) % 2:
        digits = "0" + digits
    return bytes.fromhex(digits)


def _checksum(*parts: bytes) -> bytes:
    return hashlib.sha3_256(b"".join(parts)).digest()[:_CHECKSUM_LENGTH]


def encode(network: str, address: str) -> str:
    """Encode a hex *network* id and hex *address* as an MNID."""
    payload = [_VERSION, _hex_to_bytes(network), _hex_to_bytes(address)]
    payload.append(_checksum(*payload))
    return base58.b58encode(b"".join(payload)).decode("ascii")


def decode(mnid: str) -> NetworkAddress:
    """Decode an MNID into its network id and address.

    Raises
    ------
    ValueError
        If the value is not base58 or the checksum does not match.
    """
    data = base58.b58decode(mnid)
    network_end = len(data) - _ADDRESS_LENGTH - _CHECKSUM_LENGTH
    if network_end < 2:
        raise ValueError(f"Not an MNID: {mnid!r}")
    version = data[:1]
    network = data[1:network_end]
    address = data[network_end:network_end + _ADDRESS_LENGTH]
    check = data[network_end + _ADDRESS_LENGTH:]
    if check != _checksum(version, network, address):
        raise ValueError("Invalid address checksum")
    return NetworkAddress(network="0x" + network.hex(), address="0x" + address.hex())


def is_mnid(value: str) -> bool:
    """Return ``True`` if *value* looks like an MNID (version byte and length)."""
    try:
        data = base58.b58decode(value)
    except ValueError:
        return False
    return len(data) > _ADDRESS_LENGTH + _CHECKSUM_LENGTH and data[:1] == _VERSION


def is_address(value: str) -> bool:
    """Return ``True`` for hex addresses and MNIDs, ``False`` for anything else (e.g. URLs)."""
    return bool(HEX_ADDRESS_RE.match(value)) or is_mnid(value)


def canonical_address(value: str) -> str:
    """Reduce a hex address or MNID to its lower-case hex account address.

    Raises
    ------
    ValueError
        If *value* is an MNID with a bad checksum.
    """
    if is_mnid(value):
        value = decode(value).address
    return value.lower()
