"""Redis storage backend using redis-py asyncio client."""

from __future__ import annotations

from typing import Any, Mapping

import orjson
from redis import asyncio as aioredis

from .in_memory import matches


class RedisStorage:
    def __init__(self, *, url: str, prefix: str = "sealedbid") -> None:
        if not url:
            raise ValueError("redis url missing")
        self._redis = aioredis.from_url(url)
        self._prefix = prefix.rstrip(":")

    def _key(self, collection: str, document_id: str) -> str:
        return f"{self._prefix}:{collection}:{document_id}"

    async def insert(self, collection: str, document: dict[str, Any]) -> dict[str, Any]:
        key = self._key(collection, document["id"])
        created = await self._redis.set(key, orjson.dumps(document), nx=True)
        if not created:
            raise ValueError(f"{collection} document {document['id']} already exists")
        return document

    async def get(self, collection: str, document_id: str) -> dict[str, Any]:
        raw = await self._redis.get(self._key(collection, document_id))
        if raw is None:
            raise KeyError(document_id)
        return orjson.loads(raw)

    async def update(
        self, collection: str, document_id: str, updates: dict[str, Any]
    ) -> dict[str, Any]:
        document = await self.get(collection, document_id)
        document.update(updates)
        await self._redis.set(self._key(collection, document_id), orjson.dumps(document))
        return document

    async def find(
        self, collection: str, filters: Mapping[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        pattern = self._key(collection, "*")
        keys: list[bytes] = []
        cursor = 0
        while True:
            cursor, batch = await self._redis.scan(cursor=cursor, match=pattern, count=100)
            keys.extend(batch)
            if cursor == 0:
                break
        if not keys:
            return []
        values = await self._redis.mget(keys)
        documents = [orjson.loads(value) for value in values if value]
        return [document for document in documents if matches(document, filters)]

    async def delete(self, collection: str, document_id: str) -> None:
        await self._redis.delete(self._key(collection, document_id))

    async def close(self) -> None:
        await self._redis.aclose()
