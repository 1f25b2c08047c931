"""User directory backed by the document store."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterable

from ..storage import USERS, DocumentStorage
from ..transport.timestamps import format_timestamp, utcnow
from .models import User

logger = logging.getLogger(__name__)


@dataclass
class UserService:
    storage: DocumentStorage
    clock: Callable[[], datetime] = field(default=utcnow)

    async def get_user_by_id(self, user_id: str) -> User | None:
        try:
            document = await self.storage.get(USERS, user_id)
        except KeyError:
            return None
        return User.from_document(document)

    async def get_user_by_email(self, email: str) -> User | None:
        return await self._find_one({"email": email})

    async def get_user_by_wallet_address(self, wallet_address: str) -> User | None:
        return await self._find_one({"wallet_address": wallet_address.lower()})

    async def get_users(self, user_ids: Iterable[str]) -> dict[str, User]:
        users: dict[str, User] = {}
        for user_id in set(user_ids):
            user = await self.get_user_by_id(user_id)
            if user is not None:
                users[user_id] = user
        return users

    async def create_user(
        self,
        *,
        name: str | None = None,
        email: str | None = None,
        wallet_address: str | None = None,
    ) -> User:
        if email and await self.get_user_by_email(email):
            raise ValueError("email already registered")
        if wallet_address:
            wallet_address = wallet_address.lower()
            if await self.get_user_by_wallet_address(wallet_address):
                raise ValueError("wallet address already registered")
        now = self.clock()
        user = User(
            id=f"usr_{uuid.uuid4().hex}",
            name=name,
            email=email,
            wallet_address=wallet_address,
            created_at=now,
            updated_at=now,
        )
        await self.storage.insert(USERS, user.to_document())
        logger.info("created user %s", user.id)
        return user

    async def update_user(self, user_id: str, *, name: str | None) -> User:
        """Update profile fields. Identity fields never change."""
        updates = {"name": name, "updated_at": format_timestamp(self.clock())}
        document = await self.storage.update(USERS, user_id, updates)
        return User.from_document(document)

    async def _find_one(self, filters: dict[str, str]) -> User | None:
        documents = await self.storage.find(USERS, filters)
        if not documents:
            return None
        return User.from_document(documents[0])
