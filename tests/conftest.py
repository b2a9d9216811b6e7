"""
Shared fixtures for unit and integration tests.

Stores:
- memory stores (durable stand-in and fallback)
- FlakyStore, a memory store that can be switched "down" to simulate an
  outage of the durable store
Identity:
- StaticIdentityProvider, which accepts a fixed set of bearer tokens
"""

from __future__ import annotations

import asyncio

import pytest

from errors import AuthenticationError
from infrastructure.identity.protocol import Identity
from infrastructure.storage.gateway import StorageGateway
from infrastructure.storage.memory_store import MemoryDocumentStore

ALICE = Identity(user_id="alice", email="alice@example.com")
BOB = Identity(user_id="bob", email="bob@example.com")

TOKENS = {"alice-token": ALICE, "bob-token": BOB}


class StaticIdentityProvider:
    def __init__(self, tokens: dict[str, Identity] | None = None) -> None:
        self._tokens = tokens if tokens is not None else TOKENS

    async def verify(self, token: str) -> Identity:
        identity = self._tokens.get(token)
        if identity is None:
            raise AuthenticationError("Invalid token")
        return identity


class FlakyStore(MemoryDocumentStore):
    """Memory store whose calls fail (or hang) while ``down`` is set."""

    def __init__(self) -> None:
        super().__init__()
        self.down = False
        self.hang = False

    async def _check(self) -> None:
        if self.hang:
            await asyncio.sleep(10)
        if self.down:
            raise ConnectionError("store unavailable")

    async def get(self, collection, key):
        await self._check()
        return await super().get(collection, key)

    async def set(self, collection, key, document):
        await self._check()
        return await super().set(collection, key, document)

    async def update(self, collection, key, **kwargs):
        await self._check()
        return await super().update(collection, key, **kwargs)

    async def delete(self, collection, key):
        await self._check()
        return await super().delete(collection, key)

    async def find(self, collection, filters, sort=None):
        await self._check()
        return await super().find(collection, filters, sort)

    async def scan(self, collection):
        await self._check()
        return await super().scan(collection)

    async def ping(self):
        await self._check()


@pytest.fixture
def primary_store() -> FlakyStore:
    return FlakyStore()


@pytest.fixture
def fallback_store() -> MemoryDocumentStore:
    return MemoryDocumentStore()


@pytest.fixture
def gateway(primary_store, fallback_store) -> StorageGateway:
    return StorageGateway(primary_store, fallback_store, timeout=0.2)


@pytest.fixture
def identity_provider() -> StaticIdentityProvider:
    return StaticIdentityProvider()


def auth(token: str = "alice-token") -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers():
    return auth
