"""Storage backend factory."""

from __future__ import annotations

from typing import Any, Mapping, Protocol

from ..config import ServerConfig
from .firestore import FirestoreStorage
from .in_memory import InMemoryStorage
from .postgres import PostgresStorage
from .redis import RedisStorage

USERS = "users"
AUCTIONS = "auctions"
BIDS = "bids"
SESSIONS = "sessions"

COLLECTIONS = (USERS, AUCTIONS, BIDS, SESSIONS)


class DocumentStorage(Protocol):
    """Async document store keyed by ``(collection, document["id"])``."""

    async def insert(self, collection: str, document: dict) -> dict: ...

    async def get(self, collection: str, document_id: str) -> dict:
        """Return the document or raise ``KeyError``."""
        ...

    async def update(self, collection: str, document_id: str, updates: dict) -> dict: ...

    async def find(
        self, collection: str, filters: Mapping[str, Any] | None = None
    ) -> list[dict]:
        """Return documents whose fields equal every value in ``filters``."""
        ...

    async def delete(self, collection: str, document_id: str) -> None: ...

    async def close(self) -> None: ...


def build_storage(config: ServerConfig) -> DocumentStorage:
    backend = config.storage.backend
    options = dict(config.storage.options)
    if backend == "in_memory":
        return InMemoryStorage()
    if backend == "redis":
        return RedisStorage(**options)
    if backend == "postgres":
        return PostgresStorage(**options)
    if backend == "firestore":
        return FirestoreStorage(**options)
    raise ValueError(f"unknown storage backend {backend}")
