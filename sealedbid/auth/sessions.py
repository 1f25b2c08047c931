"""Opaque bearer-token sessions stored alongside users."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable

from ..storage import SESSIONS, DocumentStorage
from ..transport.timestamps import format_timestamp, parse_timestamp, utcnow


@dataclass(frozen=True)
class Session:
    token: str
    user_id: str
    strategy: str
    created_at: datetime
    expires_at: datetime

    def to_document(self) -> dict[str, Any]:
        return {
            "id": self.token,
            "user_id": self.user_id,
            "strategy": self.strategy,
            "created_at": format_timestamp(self.created_at),
            "expires_at": format_timestamp(self.expires_at),
        }

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> "Session":
        return cls(
            token=document["id"],
            user_id=document["user_id"],
            strategy=document["strategy"],
            created_at=parse_timestamp(document["created_at"]),
            expires_at=parse_timestamp(document["expires_at"]),
        )


class SessionService:
    def __init__(
        self,
        storage: DocumentStorage,
        ttl_seconds: int,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._storage = storage
        self._ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock

    async def create_session(self, user_id: str, strategy: str) -> Session:
        now = self._clock()
        session = Session(
            token=f"sess_{uuid.uuid4().hex}",
            user_id=user_id,
            strategy=strategy,
            created_at=now,
            expires_at=now + self._ttl,
        )
        await self._storage.insert(SESSIONS, session.to_document())
        return session

    async def resolve(self, token: str | None) -> Session | None:
        if not token:
            return None
        try:
            session = Session.from_document(await self._storage.get(SESSIONS, token))
        except KeyError:
            return None
        if session.expires_at <= self._clock():
            await self._storage.delete(SESSIONS, token)
            return None
        return session

    async def revoke(self, token: str) -> None:
        await self._storage.delete(SESSIONS, token)
