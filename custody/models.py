"""Value types and Vault transit wire shapes."""

from __future__ import annotations

import base64
import binascii
import re
from dataclasses import dataclass
from typing import Any, Self, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from custody.address import PUBLIC_KEY_LENGTH
from custody.errors import protocol_error

_VERSION_RE = re.compile(r"^v?([0-9]+)$")


@dataclass(frozen=True, slots=True)
class SigningKeyHandle:
    """Names a key that lives in the remote store; holds no key material."""

    key_name: str
    base_path: str

    def __post_init__(self) -> None:
        if not self.key_name or "/" in self.key_name:
            raise ValueError(f"invalid key name: {self.key_name!r}")
        object.__setattr__(self, "base_path", normalize_path(self.base_path))

    @property
    def key_path(self) -> str:
        return f"{self.base_path}/keys/{self.key_name}"

    @property
    def sign_path(self) -> str:
        return f"{self.base_path}/sign/{self.key_name}"


def normalize_path(path: str) -> str:
    normalized = path.strip().strip("/")
    if not normalized:
        raise ValueError("base path must not be empty")
    return normalized


class KeyInfo(BaseModel):
    """Public view of a custody key: its name, raw public key and address."""

    model_config = ConfigDict(frozen=True)

    name: str
    public_key: bytes
    address: str


# -- Vault response bodies -------------------------------------------------


class _VaultModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class KeyVersion(_VaultModel):
    public_key: str


class KeyReadData(_VaultModel):
    keys: dict[str, KeyVersion] = Field(min_length=1)


class KeyReadResponse(_VaultModel):
    data: KeyReadData

    def latest_public_key(self) -> bytes:
        """Decode the public key of the highest-numbered version."""
        versions: dict[int, KeyVersion] = {}
        for label, entry in self.data.keys.items():
            match = _VERSION_RE.match(label)
            if match is None:
                raise protocol_error(f"non-numeric key version {label!r}", version=label)
            versions[int(match.group(1))] = entry
        latest = max(versions)
        raw = b64decode_strict(versions[latest].public_key, field="public_key")
        if len(raw) != PUBLIC_KEY_LENGTH:
            raise protocol_error(
                f"public key has {len(raw)} bytes, expected {PUBLIC_KEY_LENGTH}",
                version=latest,
            )
        return raw


class KeyListData(_VaultModel):
    keys: list[str]

    @field_validator("keys")
    @classmethod
    def _validate_names(cls, value: list[str]) -> list[str]:
        for name in value:
            if not name or "/" in name:
                raise ValueError(f"invalid key name in listing: {name!r}")
        return value


class KeyListResponse(_VaultModel):
    data: KeyListData


class SignData(_VaultModel):
    signature: str


class SignResponse(_VaultModel):
    data: SignData


ModelT = TypeVar("ModelT", bound=BaseModel)


def parse_response(model: type[ModelT], body: Any, *, operation: str) -> ModelT:
    """Validate a decoded JSON body, turning shape mismatches into protocol errors."""
    try:
        return model.model_validate(body)
    except ValidationError as exc:
        raise protocol_error(
            f"unexpected response shape for {operation}: {exc.error_count()} error(s)",
            operation=operation,
        ) from exc


# -- signature envelope ----------------------------------------------------


class SignatureEnvelope(BaseModel):
    """``<scheme>:<version>:<base64-payload>`` as returned by the sign endpoint."""

    model_config = ConfigDict(frozen=True)

    scheme: str
    version: int
    signature: bytes

    @classmethod
    def parse(cls, raw: str) -> Self:
        fields = raw.split(":")
        if len(fields) != 3:
            raise protocol_error(
                f"signature envelope has {len(fields)} field(s), expected 3",
                fields=len(fields),
            )
        scheme, version, payload = fields
        if not scheme:
            raise protocol_error("signature envelope has an empty scheme")
        match = _VERSION_RE.match(version)
        if match is None or int(match.group(1)) < 1:
            raise protocol_error(f"invalid signature envelope version {version!r}")
        signature = b64decode_strict(payload, field="signature")
        if not signature:
            raise protocol_error("signature envelope carries an empty payload")
        return cls(scheme=scheme, version=int(match.group(1)), signature=signature)


def b64encode(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def b64decode_strict(value: str, *, field: str) -> bytes:
    try:
        return base64.b64decode(value.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as exc:
        raise protocol_error(f"{field} is not valid base64", field=field) from exc


__all__ = [
    "PUBLIC_KEY_LENGTH",
    "KeyInfo",
    "KeyListResponse",
    "KeyReadResponse",
    "SignResponse",
    "SignatureEnvelope",
    "SigningKeyHandle",
    "b64decode_strict",
    "b64encode",
    "normalize_path",
    "parse_response",
]
