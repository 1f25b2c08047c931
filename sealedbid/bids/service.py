"""Bid persistence guarded by the lifecycle rules."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Callable

from ..auction.lifecycle import BidRejection, can_place_bid
from ..auction.models import Auction, Bid
from ..storage import BIDS, DocumentStorage
from ..transport.timestamps import utcnow

logger = logging.getLogger(__name__)


@dataclass
class BidService:
    storage: DocumentStorage
    clock: Callable[[], datetime] = field(default=utcnow)

    async def place_bid(self, auction: Auction, bidder_id: str, amount: Decimal) -> Bid:
        """Create a bid once ``can_place_bid`` accepts it.

        Bids are final: there is no update or delete path. Two requests racing
        against the end time are not serialized.
        """
        now = self.clock()
        try:
            can_place_bid(auction, amount, bidder_id, now)
        except BidRejection as exc:
            logger.info(
                "bid rejected auction=%s bidder=%s reason=%s",
                auction.id,
                bidder_id,
                type(exc).__name__,
            )
            raise
        bid = Bid(
            id=f"bid_{uuid.uuid4().hex}",
            amount=amount,
            auction_id=auction.id,
            bidder_id=bidder_id,
            created_at=now,
        )
        await self.storage.insert(BIDS, bid.to_document())
        logger.info("bid placed auction=%s bid=%s", auction.id, bid.id)
        return bid

    async def list_bids_for_auction(self, auction_id: str) -> list[Bid]:
        documents = await self.storage.find(BIDS, {"auction_id": auction_id})
        return [Bid.from_document(document) for document in documents]

    async def list_bids_by_user(self, user_id: str) -> list[Bid]:
        documents = await self.storage.find(BIDS, {"bidder_id": user_id})
        bids = [Bid.from_document(document) for document in documents]
        return sorted(bids, key=lambda bid: bid.created_at, reverse=True)

    async def count_bids(self, auction_id: str) -> int:
        return len(await self.storage.find(BIDS, {"auction_id": auction_id}))
