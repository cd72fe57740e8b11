"""Vault-backed key custody for wallet backends."""

from custody.errors import CustodyError, ErrorKind
from custody.gateway import KeyCustodyGateway
from custody.models import KeyInfo, SignatureEnvelope, SigningKeyHandle
from custody.token import TokenValidator
from custody.transport import VaultTransport
from custody.verify import verify_signature

__version__ = "0.1.0"

__all__ = [
    "CustodyError",
    "ErrorKind",
    "KeyCustodyGateway",
    "KeyInfo",
    "SignatureEnvelope",
    "SigningKeyHandle",
    "TokenValidator",
    "VaultTransport",
    "verify_signature",
]
