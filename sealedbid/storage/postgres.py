"""Postgres storage backend leveraging asyncpg."""

from __future__ import annotations

from typing import Any, Mapping

import asyncpg
import orjson


class PostgresStorage:
    def __init__(self, *, dsn: str | None = None, **connect_kwargs: Any) -> None:
        if not dsn and not connect_kwargs:
            raise ValueError("postgres connection details missing")
        self._dsn = dsn
        self._connect_kwargs = connect_kwargs
        self._pool: asyncpg.Pool | None = None

    def _encode(self, payload: Mapping[str, Any]) -> str:
        return orjson.dumps(payload).decode()

    def _decode(self, value: Any) -> dict[str, Any]:
        if isinstance(value, (bytes, bytearray)):
            value = value.decode()
        if isinstance(value, str):
            return orjson.loads(value)
        return value

    async def _ensure_pool(self) -> asyncpg.Pool:
        if self._pool is None:
            self._pool = await asyncpg.create_pool(dsn=self._dsn, **self._connect_kwargs)
            async with self._pool.acquire() as conn:
                await conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS documents (
                        collection TEXT NOT NULL,
                        id TEXT NOT NULL,
                        data JSONB NOT NULL,
                        created_at TIMESTAMP DEFAULT NOW(),
                        PRIMARY KEY (collection, id)
                    );
                    CREATE INDEX IF NOT EXISTS idx_documents_data
                    ON documents USING GIN (data jsonb_path_ops);
                    """
                )
        return self._pool

    async def insert(self, collection: str, document: dict[str, Any]) -> dict[str, Any]:
        pool = await self._ensure_pool()
        async with pool.acquire() as conn:
            try:
                await conn.execute(
                    """INSERT INTO documents(collection, id, data) VALUES($1, $2, $3)""",
                    collection,
                    document["id"],
                    self._encode(document),
                )
            except asyncpg.UniqueViolationError as exc:
                raise ValueError(
                    f"{collection} document {document['id']} already exists"
                ) from exc
        return document

    async def get(self, collection: str, document_id: str) -> dict[str, Any]:
        pool = await self._ensure_pool()
        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                """SELECT data FROM documents WHERE collection=$1 AND id=$2""",
                collection,
                document_id,
            )
        if not row:
            raise KeyError(document_id)
        return self._decode(row["data"])

    async def update(
        self, collection: str, document_id: str, updates: dict[str, Any]
    ) -> dict[str, Any]:
        document = await self.get(collection, document_id)
        document.update(updates)
        pool = await self._ensure_pool()
        async with pool.acquire() as conn:
            await conn.execute(
                """UPDATE documents SET data=$3 WHERE collection=$1 AND id=$2""",
                collection,
                document_id,
                self._encode(document),
            )
        return document

    async def find(
        self, collection: str, filters: Mapping[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        pool = await self._ensure_pool()
        async with pool.acquire() as conn:
            rows = await conn.fetch(
                """SELECT data FROM documents
                   WHERE collection=$1 AND data @> $2::jsonb
                   ORDER BY id""",
                collection,
                self._encode(filters or {}),
            )
        return [self._decode(row["data"]) for row in rows]

    async def delete(self, collection: str, document_id: str) -> None:
        pool = await self._ensure_pool()
        async with pool.acquire() as conn:
            await conn.execute(
                """DELETE FROM documents WHERE collection=$1 AND id=$2""",
                collection,
                document_id,
            )

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
