"""Bid visibility and auction lifecycle rules.

An auction has two states, active and ended, derived on every call by
comparing the stored end time with ``now``. Nothing here touches storage.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from .models import Auction, Bid


class BidRejection(ValueError):
    """Base class for reasons a bid cannot be placed."""


class AuctionEnded(BidRejection):
    pass


class SelfBid(BidRejection):
    pass


class BelowMinimum(BidRejection):
    pass


class AuctionCreationRejection(ValueError):
    """Base class for reasons an auction cannot be created."""


class EndTimeNotFuture(AuctionCreationRejection):
    pass


def is_ended(auction: Auction, now: datetime) -> bool:
    return now > auction.end_time


def _ranking_key(bid: Bid) -> tuple:
    # Equal amounts: earliest bid ranks first.
    return (-bid.amount, bid.created_at, bid.id)


def rank_bids(bids: Iterable[Bid]) -> list[Bid]:
    return sorted(bids, key=_ranking_key)


def resolve_visible_bids(
    auction: Auction,
    all_bids: Iterable[Bid],
    current_user_id: str | None,
    now: datetime,
) -> list[Bid]:
    """Return the bids ``current_user_id`` may see, highest first.

    Once the auction has ended every bid is visible. Before that a caller only
    sees their own bids, so the creator and anonymous callers see none.
    """
    bids = [bid for bid in all_bids if bid.auction_id == auction.id]
    if not is_ended(auction, now):
        if current_user_id is None:
            return []
        bids = [bid for bid in bids if bid.bidder_id == current_user_id]
    return rank_bids(bids)


def winning_bid(auction: Auction, all_bids: Iterable[Bid], now: datetime) -> Optional[Bid]:
    if not is_ended(auction, now):
        return None
    ranked = rank_bids(bid for bid in all_bids if bid.auction_id == auction.id)
    return ranked[0] if ranked else None


def can_place_bid(
    auction: Auction, amount: Decimal, requester_id: str, now: datetime
) -> None:
    if is_ended(auction, now):
        raise AuctionEnded("This auction has ended")
    if requester_id == auction.creator_id:
        raise SelfBid("You cannot bid on your own auction")
    if amount < auction.minimum_bid:
        raise BelowMinimum(f"Bid must be at least {auction.minimum_bid}")


def can_create_auction(end_time: datetime, now: datetime) -> None:
    if end_time <= now:
        raise EndTimeNotFuture("End time must be in the future")
