from __future__ import annotations

from collections.abc import AsyncIterator

import pytest
from custody.config import VaultConfig
from custody.gateway import KeyCustodyGateway
from custody.transport import VaultTransport

from tests.fakes import BASE_URL, FakeVault


@pytest.fixture
def vault() -> FakeVault:
    return FakeVault()


@pytest.fixture
def vault_config() -> VaultConfig:
    return VaultConfig(
        base_url=BASE_URL,
        timeout_s=2.0,
        users_path="transit/users",
        managers_path="transit/managers",
        manager_key="manager-key",
    )


@pytest.fixture
async def transport(vault: FakeVault) -> AsyncIterator[VaultTransport]:
    client = vault.client()
    yield VaultTransport(BASE_URL, timeout=2.0, client=client)
    await client.aclose()


@pytest.fixture
def gateway(transport: VaultTransport, vault_config: VaultConfig) -> KeyCustodyGateway:
    return KeyCustodyGateway(transport, vault_config)
