from __future__ import annotations

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey

from custody.address import PUBLIC_KEY_LENGTH


def verify_signature(public_key: bytes, payload: bytes, signature: bytes) -> tuple[bool, str]:
    """Check a Vault-produced Ed25519 signature locally against the public key.

    Lets a wallet confirm a signature before broadcasting it without another
    round trip to Vault.
    """
    if len(public_key) != PUBLIC_KEY_LENGTH:
        return False, "Invalid public key length"

    try:
        key = Ed25519PublicKey.from_public_bytes(public_key)
        key.verify(signature, payload)
    except InvalidSignature:
        return False, "Invalid signature"
    except ValueError as exc:
        return False, str(exc)

    return True, "Valid"


__all__ = ["verify_signature"]
