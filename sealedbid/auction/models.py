"""Shared auction data structures."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from ..transport.timestamps import format_timestamp, parse_timestamp


def to_decimal(value: Any) -> Decimal:
    amount = Decimal(str(value))
    if not amount.is_finite():
        raise ValueError(f"amount must be a finite number, got {value!r}")
    return amount


def amount_to_json(value: Decimal) -> int | float:
    if value == value.to_integral_value():
        return int(value)
    return float(value)


@dataclass(frozen=True)
class Auction:
    id: str
    title: str
    minimum_bid: Decimal
    end_time: datetime
    creator_id: str
    created_at: datetime
    updated_at: datetime
    description: str | None = None

    def to_document(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "minimum_bid": str(self.minimum_bid),
            "end_time": format_timestamp(self.end_time),
            "creator_id": self.creator_id,
            "created_at": format_timestamp(self.created_at),
            "updated_at": format_timestamp(self.updated_at),
        }

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> "Auction":
        return cls(
            id=document["id"],
            title=document["title"],
            description=document.get("description"),
            minimum_bid=to_decimal(document["minimum_bid"]),
            end_time=parse_timestamp(document["end_time"]),
            creator_id=document["creator_id"],
            created_at=parse_timestamp(document["created_at"]),
            updated_at=parse_timestamp(document["updated_at"]),
        )


@dataclass(frozen=True)
class Bid:
    id: str
    amount: Decimal
    auction_id: str
    bidder_id: str
    created_at: datetime

    def to_document(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "amount": str(self.amount),
            "auction_id": self.auction_id,
            "bidder_id": self.bidder_id,
            "created_at": format_timestamp(self.created_at),
        }

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> "Bid":
        return cls(
            id=document["id"],
            amount=to_decimal(document["amount"]),
            auction_id=document["auction_id"],
            bidder_id=document["bidder_id"],
            created_at=parse_timestamp(document["created_at"]),
        )
