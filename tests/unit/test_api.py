"""HTTP tests for the auction API, including the full sealed-bid scenario."""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from sealedbid.auth.signatures import sign_message
from sealedbid.auth.strategies import wallet_placeholder_email
from sealedbid.config import parse_server_config
from sealedbid.main import create_app
from sealedbid.transport.timestamps import format_timestamp


@pytest.fixture
def client(storage, clock):
    app = create_app(config=parse_server_config({}), storage=storage, clock=clock)
    with TestClient(app) as test_client:
        yield test_client


def sign_in(client: TestClient, email: str) -> dict[str, str]:
    response = client.post("/auth/signin", json={"email": email})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['token']}"}


def create_auction(client, headers, clock, **overrides):
    body = {
        "title": "Vintage camera",
        "description": "Leica M3, 1956",
        "minimumBid": 10,
        "endTime": format_timestamp(clock() + timedelta(hours=1)),
    }
    body.update(overrides)
    return client.post("/auctions", json=body, headers=headers)


class TestSealedBidScenario:
    def test_end_to_end(self, client, clock):
        alice = sign_in(client, "alice@example.com")
        bob = sign_in(client, "bob@example.com")
        carol = sign_in(client, "carol@example.com")

        created = create_auction(client, alice, clock)
        assert created.status_code == 201
        auction_id = created.json()["id"]

        bid = client.post(f"/auctions/{auction_id}/bids", json={"amount": 15}, headers=bob)
        assert bid.status_code == 201
        assert bid.json()["amount"] == 15

        self_bid = client.post(f"/auctions/{auction_id}/bids", json={"amount": 15}, headers=alice)
        assert self_bid.status_code == 400
        assert self_bid.json()["code"] == "FORBIDDEN"

        low_bid = client.post(f"/auctions/{auction_id}/bids", json={"amount": 5}, headers=bob)
        assert low_bid.status_code == 400
        assert low_bid.json()["code"] == "INVALID_BID"

        before = client.get(f"/auctions/{auction_id}", headers=carol).json()
        assert before["isEnded"] is False
        assert before["bids"] == []
        assert before["winningBid"] is None

        as_bob = client.get(f"/auctions/{auction_id}", headers=bob).json()
        assert [b["amount"] for b in as_bob["bids"]] == [15]
        assert as_bob["hasBid"] is True

        as_alice = client.get(f"/auctions/{auction_id}", headers=alice).json()
        assert as_alice["bids"] == []
        assert as_alice["isCreator"] is True

        clock.advance(hours=1, seconds=1)

        after = client.get(f"/auctions/{auction_id}", headers=carol).json()
        assert after["isEnded"] is True
        assert len(after["bids"]) == 1
        assert after["bids"][0]["amount"] == 15
        assert after["bids"][0]["isWinning"] is True
        assert after["bids"][0]["bidder"]["name"] == "bob"
        assert after["winningBid"]["amount"] == 15

        late = client.post(f"/auctions/{auction_id}/bids", json={"amount": 50}, headers=carol)
        assert late.status_code == 400
        assert late.json()["code"] == "AUCTION_ENDED"


class TestAuctionEndpoints:
    def test_list_auctions(self, client, clock):
        alice = sign_in(client, "alice@example.com")
        create_auction(client, alice, clock, title="Old radio")
        listing = client.get("/auctions")
        assert listing.status_code == 200
        [summary] = listing.json()
        assert summary["title"] == "Old radio"
        assert summary["creator"]["name"] == "alice"
        assert summary["bidCount"] == 0
        assert summary["minimumBid"] == 10

    def test_create_requires_session(self, client, clock):
        response = create_auction(client, {}, clock)
        assert response.status_code == 401
        assert response.json()["code"] == "UNAUTHORIZED"

    def test_create_rejects_past_end_time(self, client, clock):
        alice = sign_in(client, "alice@example.com")
        response = create_auction(client, alice, clock, endTime=format_timestamp(clock()))
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    @pytest.mark.parametrize(
        "overrides",
        [
            {"title": "ab"},
            {"minimumBid": 0},
            {"minimumBid": -5},
            {"minimumBid": "ten"},
            {"endTime": "next week"},
            {"endTime": "2030-01-01T13:00:00.1Z"},
        ],
    )
    def test_create_rejects_bad_input(self, client, clock, overrides):
        alice = sign_in(client, "alice@example.com")
        response = create_auction(client, alice, clock, **overrides)
        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "VALIDATION_ERROR"
        assert body["details"]

    @pytest.mark.parametrize("literal", ["Infinity", "NaN"])
    def test_create_rejects_non_finite_minimum(self, client, clock, literal):
        alice = sign_in(client, "alice@example.com")
        end_time = format_timestamp(clock() + timedelta(hours=1))
        body = f'{{"title": "Vintage camera", "minimumBid": {literal}, "endTime": "{end_time}"}}'
        response = client.post(
            "/auctions",
            content=body,
            headers={**alice, "Content-Type": "application/json"},
        )
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"
        listing = client.get("/auctions")
        assert listing.status_code == 200
        assert listing.json() == []

    @pytest.mark.parametrize("literal", ["Infinity", "NaN"])
    def test_bid_rejects_non_finite_amount(self, client, clock, literal):
        alice = sign_in(client, "alice@example.com")
        bob = sign_in(client, "bob@example.com")
        auction_id = create_auction(client, alice, clock).json()["id"]
        response = client.post(
            f"/auctions/{auction_id}/bids",
            content=f'{{"amount": {literal}}}',
            headers={**bob, "Content-Type": "application/json"},
        )
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"
        detail = client.get(f"/auctions/{auction_id}", headers=bob)
        assert detail.status_code == 200
        assert detail.json()["bidCount"] == 0

    def test_create_accepts_millisecond_end_time(self, client, clock):
        alice = sign_in(client, "alice@example.com")
        response = create_auction(client, alice, clock, endTime="2030-01-01T13:00:00.000Z")
        assert response.status_code == 201
        assert response.json()["endTime"] == "2030-01-01T13:00:00Z"

    def test_missing_auction(self, client):
        response = client.get("/auctions/auc_missing")
        assert response.status_code == 404
        assert response.json() == {"message": "Auction not found", "code": "NOT_FOUND"}

    def test_bid_on_missing_auction(self, client):
        bob = sign_in(client, "bob@example.com")
        response = client.post("/auctions/auc_missing/bids", json={"amount": 10}, headers=bob)
        assert response.status_code == 404

    def test_bid_requires_session(self, client, clock):
        alice = sign_in(client, "alice@example.com")
        auction_id = create_auction(client, alice, clock).json()["id"]
        response = client.post(f"/auctions/{auction_id}/bids", json={"amount": 10})
        assert response.status_code == 401

    def test_bid_rejects_non_positive_amount(self, client, clock):
        alice = sign_in(client, "alice@example.com")
        bob = sign_in(client, "bob@example.com")
        auction_id = create_auction(client, alice, clock).json()["id"]
        response = client.post(f"/auctions/{auction_id}/bids", json={"amount": 0}, headers=bob)
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_dashboard(self, client, clock):
        alice = sign_in(client, "alice@example.com")
        bob = sign_in(client, "bob@example.com")
        auction_id = create_auction(client, alice, clock).json()["id"]
        client.post(f"/auctions/{auction_id}/bids", json={"amount": 12.5}, headers=bob)

        mine = client.get("/me/auctions", headers=alice).json()
        assert [a["id"] for a in mine] == [auction_id]
        assert client.get("/me/auctions", headers=bob).json() == []

        bids = client.get("/me/bids", headers=bob).json()
        assert [b["amount"] for b in bids] == [12.5]
        assert bids[0]["auction"]["id"] == auction_id


class TestAuthEndpoints:
    def test_email_sign_in_and_session(self, client):
        headers = sign_in(client, "dana@example.com")
        profile = client.get("/auth/session", headers=headers).json()
        assert profile["email"] == "dana@example.com"
        assert profile["name"] == "dana"

    def test_invalid_email_rejected(self, client):
        response = client.post("/auth/signin", json={"email": "not-an-email"})
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_unrecognized_credentials(self, client):
        response = client.post("/auth/signin", json={"username": "dana"})
        assert response.status_code == 400

    def test_unknown_token(self, client):
        response = client.get("/auth/session", headers={"Authorization": "Bearer sess_bogus"})
        assert response.status_code == 401

    def test_sign_out(self, client):
        headers = sign_in(client, "dana@example.com")
        assert client.post("/auth/signout", headers=headers).status_code == 204
        assert client.get("/auth/session", headers=headers).status_code == 401

    def test_profile_update(self, client):
        headers = sign_in(client, "dana@example.com")
        response = client.patch("/auth/session", json={"name": "Dana S."}, headers=headers)
        assert response.status_code == 200
        assert response.json()["name"] == "Dana S."

    def test_wallet_sign_in(self, client, wallet):
        challenge = client.get("/auth/challenge", params={"address": wallet.address})
        assert challenge.status_code == 200
        message = challenge.json()["message"]
        body = {
            "address": wallet.address,
            "message": message,
            "signature": sign_message(message, wallet.key),
        }

        response = client.post("/auth/signin", json=body)

        assert response.status_code == 200
        assert response.json()["user"]["walletAddress"] == wallet.address.lower()
        replay = client.post("/auth/signin", json=body)
        assert replay.status_code == 401
        assert replay.json()["code"] == "UNAUTHORIZED"

    def test_wallet_placeholder_email_cannot_be_claimed(self, client, wallet):
        squatter = client.post(
            "/auth/signin", json={"email": wallet_placeholder_email(wallet.address)}
        )
        assert squatter.status_code == 401
        assert squatter.json()["code"] == "UNAUTHORIZED"

        message = client.get("/auth/challenge", params={"address": wallet.address}).json()["message"]
        body = {
            "address": wallet.address,
            "message": message,
            "signature": sign_message(message, wallet.key),
        }
        response = client.post("/auth/signin", json=body)
        assert response.status_code == 200
        assert response.json()["user"]["email"] == wallet_placeholder_email(wallet.address)

    def test_wallet_sign_in_wrong_key(self, client, wallet, other_wallet):
        message = client.get("/auth/challenge", params={"address": wallet.address}).json()["message"]
        body = {
            "address": wallet.address,
            "message": message,
            "signature": sign_message(message, other_wallet.key),
        }
        response = client.post("/auth/signin", json=body)
        assert response.status_code == 401

    def test_challenge_rejects_bad_address(self, client):
        response = client.get("/auth/challenge", params={"address": "0x123"})
        assert response.status_code == 400

    def test_email_strategy_can_be_disabled(self, storage, clock):
        config = parse_server_config({"auth": {"email": {"enabled": False}}})
        app = create_app(config=config, storage=storage, clock=clock)
        with TestClient(app) as client:
            assert client.get("/").json()["auth"]["strategies"] == ["wallet"]
            response = client.post("/auth/signin", json={"email": "dana@example.com"})
        assert response.status_code == 401


class TestAdminAndErrors:
    def test_health(self, client):
        body = client.get("/admin/health").json()
        assert body["status"] == "healthy"
        assert body["storage_backend"] == "in_memory"

    def test_stats(self, client, clock):
        alice = sign_in(client, "alice@example.com")
        bob = sign_in(client, "bob@example.com")
        auction_id = create_auction(client, alice, clock).json()["id"]
        create_auction(client, alice, clock)
        client.post(f"/auctions/{auction_id}/bids", json={"amount": 20}, headers=bob)
        clock.advance(hours=2)

        stats = client.get("/admin/stats").json()

        assert stats["total_auctions"] == 2
        assert stats["ended_auctions"] == 2
        assert stats["active_auctions"] == 0
        assert stats["total_bids"] == 1
        assert stats["auctions_without_bids"] == 1
        assert stats["total_users"] == 2

    def test_unexpected_errors_are_generic(self, clock):
        storage = AsyncMock()
        storage.find.side_effect = RuntimeError("connection reset by peer")
        app = create_app(config=parse_server_config({}), storage=storage, clock=clock)
        with TestClient(app, raise_server_exceptions=False) as client:
            response = client.get("/auctions")
        assert response.status_code == 500
        assert response.json() == {"message": "Internal server error", "code": "INTERNAL_ERROR"}

    def test_non_object_body(self, client):
        response = client.post("/auth/signin", json=["email"])
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"
