"""Operational stats endpoint."""

from __future__ import annotations

from collections import Counter
from typing import Any

from fastapi import APIRouter, Depends, Request

from ..auction.lifecycle import is_ended
from ..auction.models import Auction
from ..storage import AUCTIONS, BIDS, USERS, DocumentStorage

router = APIRouter(prefix="/admin", tags=["admin"])


def _get_storage(request: Request) -> DocumentStorage:
    return request.app.state.storage


@router.get("/stats")
async def stats(
    request: Request,
    storage: DocumentStorage = Depends(_get_storage),
) -> dict[str, Any]:
    now = request.app.state.clock()
    auctions = [Auction.from_document(doc) for doc in await storage.find(AUCTIONS)]
    bids = await storage.find(BIDS)
    users = await storage.find(USERS)

    ended = sum(1 for auction in auctions if is_ended(auction, now))
    bids_per_auction: Counter[str] = Counter(bid["auction_id"] for bid in bids)
    wallet_users = sum(1 for user in users if user.get("wallet_address"))

    return {
        "total_auctions": len(auctions),
        "active_auctions": len(auctions) - ended,
        "ended_auctions": ended,
        "total_bids": len(bids),
        "auctions_without_bids": sum(
            1 for auction in auctions if not bids_per_auction.get(auction.id)
        ),
        "total_users": len(users),
        "wallet_users": wallet_users,
    }
