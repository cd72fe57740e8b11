"""Key custody gateway over the Vault transit engine.

Private keys never leave Vault: this module only reads public keys, asks
Vault to create keys, and asks Vault to sign. Every method is a short,
stateless round trip; concurrent callers share nothing but the transport's
connection pool.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Self

import httpx

from custody import address
from custody.config import CustodySettings, VaultConfig
from custody.errors import CustodyError, ErrorKind
from custody.logging import correlation_scope
from custody.models import (
    KeyInfo,
    KeyListResponse,
    KeyReadResponse,
    SignatureEnvelope,
    SigningKeyHandle,
    SignResponse,
    b64encode,
    normalize_path,
    parse_response,
)
from custody.token import TokenValidator
from custody.transport import VaultTransport

logger = logging.getLogger(__name__)


class KeyCustodyGateway:
    """Looks up, lazily creates and signs with keys held by Vault."""

    def __init__(self, transport: VaultTransport, config: VaultConfig) -> None:
        self._transport = transport
        self._config = config
        self._validator = TokenValidator(transport)

    @classmethod
    def from_settings(
        cls,
        settings: CustodySettings,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> Self:
        vault = settings.vault
        transport = VaultTransport(vault.base_url, timeout=vault.timeout_s, client=client)
        return cls(transport, vault)

    @property
    def config(self) -> VaultConfig:
        return self._config

    async def aclose(self) -> None:
        await self._transport.aclose()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # -- core operations ----------------------------------------------------

    async def check_token(self, token: str) -> bool:
        return await self._validator.validate(token)

    async def get_key(self, name: str, base_path: str, token: str) -> bytes:
        """Return the latest public key of an existing key; NotFound if absent."""
        handle = SigningKeyHandle(name, base_path)
        body = await self._transport.get(handle.key_path, token)
        return self._latest_public_key(body)

    async def get_or_create_key(self, name: str, base_path: str, token: str) -> bytes:
        """Return the latest public key of ``name``, creating the key on first use.

        Only a 404 on the initial read triggers creation. Vault's create is
        idempotent, so two callers racing on first use both end up reading
        the same key.
        """
        handle = SigningKeyHandle(name, base_path)
        with correlation_scope(operation="get_or_create_key"):
            try:
                body = await self._transport.get(handle.key_path, token)
            except CustodyError as exc:
                if exc.kind is not ErrorKind.not_found:
                    raise
                logger.info("key %s absent under %s, creating", handle.key_name, handle.base_path)
                await self._transport.post(
                    handle.key_path,
                    token,
                    json={"type": self._config.key_type},
                )
                body = await self._transport.get(handle.key_path, token)
            return self._latest_public_key(body)

    async def list_keys(self, base_path: str, token: str) -> list[KeyInfo]:
        """List every key under ``base_path`` in the order Vault returns them.

        Per-key reads run concurrently; if any fails the others are
        cancelled and that single error is raised.
        """
        path = normalize_path(base_path)
        with correlation_scope(operation="list_keys"):
            try:
                body = await self._transport.list(f"{path}/keys", token)
            except CustodyError as exc:
                # Vault answers LIST on an empty mount with 404.
                if exc.kind is ErrorKind.not_found:
                    return []
                raise
            names = parse_response(KeyListResponse, body, operation="list keys").data.keys

            try:
                async with asyncio.TaskGroup() as group:
                    tasks = [group.create_task(self.get_key(name, path, token)) for name in names]
            except ExceptionGroup as eg:
                for error in eg.exceptions:
                    if isinstance(error, CustodyError):
                        raise error from None
                raise CustodyError(
                    ErrorKind.internal_error,
                    f"key listing under {path} failed: {eg.exceptions[0]!r}",
                    context={"path": path},
                ) from eg

            return [
                KeyInfo(name=name, public_key=task.result(), address=address.encode(task.result()))
                for name, task in zip(names, tasks, strict=True)
            ]

    async def sign(self, name: str, base_path: str, payload: bytes, token: str) -> bytes:
        """Have Vault sign ``payload`` with key ``name`` and return the raw signature."""
        handle = SigningKeyHandle(name, base_path)
        with correlation_scope(operation="sign"):
            body = await self._transport.post(
                handle.sign_path,
                token,
                json={"input": b64encode(payload)},
            )
            response = parse_response(SignResponse, body, operation="sign")
            envelope = SignatureEnvelope.parse(response.data.signature)
            logger.debug(
                "signed %d byte(s) with %s (key version %d)",
                len(payload),
                handle.key_name,
                envelope.version,
            )
            return envelope.signature

    async def sign_as_manager(self, payload: bytes, token: str) -> bytes:
        return await self.sign(self._config.manager_key, self._config.managers_path, payload, token)

    # -- wallet-facing helpers ---------------------------------------------

    async def get_user_info(self, user_id: str, token: str) -> KeyInfo:
        public_key = await self.get_or_create_key(user_id, self._config.users_path, token)
        return KeyInfo(name=user_id, public_key=public_key, address=address.encode(public_key))

    async def get_user_address(self, user_id: str, token: str) -> str:
        return (await self.get_user_info(user_id, token)).address

    async def list_users(self, token: str) -> list[KeyInfo]:
        return await self.list_keys(self._config.users_path, token)

    async def sign_as_user(self, user_id: str, payload: bytes, token: str) -> bytes:
        return await self.sign(user_id, self._config.users_path, payload, token)

    async def get_manager_info(self, token: str) -> KeyInfo:
        name = self._config.manager_key
        public_key = await self.get_or_create_key(name, self._config.managers_path, token)
        return KeyInfo(name=name, public_key=public_key, address=address.encode(public_key))

    async def get_manager_address(self, token: str) -> str:
        return (await self.get_manager_info(token)).address

    @staticmethod
    def _latest_public_key(body: dict[str, object]) -> bytes:
        return parse_response(KeyReadResponse, body, operation="read key").latest_public_key()


__all__ = ["KeyCustodyGateway"]
