"""In-memory storage backend for users, auctions, bids and sessions."""

from __future__ import annotations

import asyncio
from collections import defaultdict
from copy import deepcopy
from typing import Any, Mapping


def matches(document: Mapping[str, Any], filters: Mapping[str, Any] | None) -> bool:
    if not filters:
        return True
    return all(document.get(key) == value for key, value in filters.items())


class InMemoryStorage:
    def __init__(self) -> None:
        self._collections: dict[str, dict[str, dict[str, Any]]] = defaultdict(dict)
        self._lock = asyncio.Lock()

    async def insert(self, collection: str, document: dict[str, Any]) -> dict[str, Any]:
        async with self._lock:
            documents = self._collections[collection]
            if document["id"] in documents:
                raise ValueError(f"{collection} document {document['id']} already exists")
            documents[document["id"]] = deepcopy(document)
            return deepcopy(document)

    async def get(self, collection: str, document_id: str) -> dict[str, Any]:
        async with self._lock:
            try:
                return deepcopy(self._collections[collection][document_id])
            except KeyError as exc:
                raise KeyError(f"{collection} document {document_id} not found") from exc

    async def update(
        self, collection: str, document_id: str, updates: dict[str, Any]
    ) -> dict[str, Any]:
        async with self._lock:
            documents = self._collections[collection]
            if document_id not in documents:
                raise KeyError(document_id)
            documents[document_id].update(deepcopy(updates))
            return deepcopy(documents[document_id])

    async def find(
        self, collection: str, filters: Mapping[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        async with self._lock:
            return [
                deepcopy(document)
                for document in self._collections[collection].values()
                if matches(document, filters)
            ]

    async def delete(self, collection: str, document_id: str) -> None:
        async with self._lock:
            self._collections[collection].pop(document_id, None)

    async def close(self) -> None:
        return None
