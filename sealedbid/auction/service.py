"""Auction queries and creation."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional

from ..bids.service import BidService
from ..storage import AUCTIONS, DocumentStorage
from ..transport.timestamps import utcnow
from ..users.models import User
from ..users.service import UserService
from .lifecycle import can_create_auction, is_ended, resolve_visible_bids, winning_bid
from .models import Auction, Bid

logger = logging.getLogger(__name__)


@dataclass
class AuctionSummary:
    auction: Auction
    creator: Optional[User]
    bid_count: int
    is_ended: bool


@dataclass
class AuctionDetails:
    summary: AuctionSummary
    bids: list[Bid]
    bidders: dict[str, User]
    is_creator: bool
    has_bid: bool
    winning_bid: Optional[Bid]


@dataclass
class AuctionService:
    storage: DocumentStorage
    users: UserService
    bids: BidService
    clock: Callable[[], datetime] = field(default=utcnow)

    async def get_auction(self, auction_id: str) -> Auction | None:
        try:
            document = await self.storage.get(AUCTIONS, auction_id)
        except KeyError:
            return None
        return Auction.from_document(document)

    async def list_auctions(self) -> list[AuctionSummary]:
        documents = await self.storage.find(AUCTIONS)
        return await self._summarize(Auction.from_document(doc) for doc in documents)

    async def list_auctions_by_creator(self, user_id: str) -> list[AuctionSummary]:
        documents = await self.storage.find(AUCTIONS, {"creator_id": user_id})
        return await self._summarize(Auction.from_document(doc) for doc in documents)

    async def summarize(self, auction: Auction) -> AuctionSummary:
        creator = await self.users.get_user_by_id(auction.creator_id)
        return AuctionSummary(
            auction=auction,
            creator=creator,
            bid_count=await self.bids.count_bids(auction.id),
            is_ended=is_ended(auction, self.clock()),
        )

    async def get_auction_details(
        self, auction_id: str, current_user_id: str | None = None
    ) -> AuctionDetails | None:
        auction = await self.get_auction(auction_id)
        if auction is None:
            return None
        now = self.clock()
        all_bids = await self.bids.list_bids_for_auction(auction.id)
        visible = resolve_visible_bids(auction, all_bids, current_user_id, now)
        summary = AuctionSummary(
            auction=auction,
            creator=await self.users.get_user_by_id(auction.creator_id),
            bid_count=len(all_bids),
            is_ended=is_ended(auction, now),
        )
        return AuctionDetails(
            summary=summary,
            bids=visible,
            bidders=await self.users.get_users(bid.bidder_id for bid in visible),
            is_creator=current_user_id is not None and auction.creator_id == current_user_id,
            has_bid=current_user_id is not None
            and any(bid.bidder_id == current_user_id for bid in all_bids),
            winning_bid=winning_bid(auction, all_bids, now),
        )

    async def create_auction(
        self,
        *,
        creator_id: str,
        title: str,
        minimum_bid: Decimal,
        end_time: datetime,
        description: str | None = None,
    ) -> Auction:
        now = self.clock()
        can_create_auction(end_time, now)
        auction = Auction(
            id=f"auc_{uuid.uuid4().hex}",
            title=title,
            description=description,
            minimum_bid=minimum_bid,
            end_time=end_time,
            creator_id=creator_id,
            created_at=now,
            updated_at=now,
        )
        await self.storage.insert(AUCTIONS, auction.to_document())
        logger.info("auction created id=%s creator=%s", auction.id, creator_id)
        return auction

    async def _summarize(self, auctions) -> list[AuctionSummary]:
        ordered = sorted(auctions, key=lambda auction: auction.created_at, reverse=True)
        return [await self.summarize(auction) for auction in ordered]
