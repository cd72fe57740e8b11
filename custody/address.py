"""Algorand account address codec.

Addresses are delegated to ``algosdk``: unpadded base32 of the public key
followed by a four-byte SHA-512/256 checksum.
"""

from __future__ import annotations

from algosdk import constants, encoding

PUBLIC_KEY_LENGTH = constants.key_len_bytes
ADDRESS_LENGTH = constants.address_len


def encode(public_key: bytes) -> str:
    if len(public_key) != PUBLIC_KEY_LENGTH:
        raise ValueError(f"public key must be {PUBLIC_KEY_LENGTH} bytes, got {len(public_key)}")
    return encoding.encode_address(bytes(public_key))


def decode(address: str) -> bytes:
    """Return the public key behind ``address``."""
    if not encoding.is_valid_address(address):
        raise ValueError(f"invalid address {address!r}: bad length, alphabet or checksum")
    return encoding.decode_address(address)


def is_valid(address: str) -> bool:
    return encoding.is_valid_address(address)


__all__ = ["ADDRESS_LENGTH", "PUBLIC_KEY_LENGTH", "decode", "encode", "is_valid"]
