"""Firestore storage backend leveraging google-cloud-firestore."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Mapping

from google.api_core import exceptions as google_exceptions
from google.cloud import firestore
from google.oauth2 import service_account


class FirestoreStorage:
    def __init__(
        self,
        *,
        project_id: str,
        collection_prefix: str = "sealedbid_",
        credentials_path: str | None = None,
    ) -> None:
        if not project_id:
            raise ValueError("project_id required for firestore backend")
        client_kwargs: dict[str, Any] = {"project": project_id}
        if credentials_path:
            client_kwargs["credentials"] = service_account.Credentials.from_service_account_file(
                credentials_path
            )
        self._client = firestore.Client(**client_kwargs)
        self._prefix = collection_prefix

    def _collection(self, collection: str):
        return self._client.collection(f"{self._prefix}{collection}")

    async def _run(self, func: Callable, *args, **kwargs):
        return await asyncio.to_thread(func, *args, **kwargs)

    async def insert(self, collection: str, document: dict[str, Any]) -> dict[str, Any]:
        reference = self._collection(collection).document(document["id"])
        try:
            await self._run(reference.create, document)
        except google_exceptions.AlreadyExists as exc:
            raise ValueError(f"{collection} document {document['id']} already exists") from exc
        return document

    async def get(self, collection: str, document_id: str) -> dict[str, Any]:
        doc = await self._run(self._collection(collection).document(document_id).get)
        if not doc.exists:
            raise KeyError(document_id)
        return doc.to_dict()

    async def update(
        self, collection: str, document_id: str, updates: dict[str, Any]
    ) -> dict[str, Any]:
        document = await self.get(collection, document_id)
        document.update(updates)
        await self._run(self._collection(collection).document(document_id).set, document)
        return document

    async def find(
        self, collection: str, filters: Mapping[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        query = self._collection(collection)
        for field, value in (filters or {}).items():
            query = query.where(filter=firestore.FieldFilter(field, "==", value))
        docs = await self._run(lambda: list(query.stream()))
        return [doc.to_dict() for doc in docs]

    async def delete(self, collection: str, document_id: str) -> None:
        await self._run(self._collection(collection).document(document_id).delete)

    async def close(self) -> None:
        await self._run(self._client.close)
