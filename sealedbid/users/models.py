"""User account record."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from ..transport.timestamps import format_timestamp, parse_timestamp


@dataclass(frozen=True)
class User:
    id: str
    created_at: datetime
    updated_at: datetime
    name: str | None = None
    email: str | None = None
    wallet_address: str | None = None

    @property
    def display_name(self) -> str:
        return self.name or self.email or self.id

    def to_document(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "wallet_address": self.wallet_address,
            "created_at": format_timestamp(self.created_at),
            "updated_at": format_timestamp(self.updated_at),
        }

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> "User":
        return cls(
            id=document["id"],
            name=document.get("name"),
            email=document.get("email"),
            wallet_address=document.get("wallet_address"),
            created_at=parse_timestamp(document["created_at"]),
            updated_at=parse_timestamp(document["updated_at"]),
        )

    def to_profile(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "walletAddress": self.wallet_address,
        }
