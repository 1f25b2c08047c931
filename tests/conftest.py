"""Shared fixtures for the auction server tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from eth_account import Account

from sealedbid.auction.service import AuctionService
from sealedbid.bids.service import BidService
from sealedbid.storage.in_memory import InMemoryStorage
from sealedbid.users.service import UserService

START = datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now += timedelta(**delta)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def user_service(storage, clock) -> UserService:
    return UserService(storage, clock=clock)


@pytest.fixture
def bid_service(storage, clock) -> BidService:
    return BidService(storage, clock=clock)


@pytest.fixture
def auction_service(storage, user_service, bid_service, clock) -> AuctionService:
    return AuctionService(storage, users=user_service, bids=bid_service, clock=clock)


@pytest.fixture
def wallet():
    return Account.from_key("0x" + "11" * 32)


@pytest.fixture
def other_wallet():
    return Account.from_key("0x" + "22" * 32)
