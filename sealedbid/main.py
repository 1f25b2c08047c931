from __future__ import annotations

import logging
import re
from contextlib import asynccontextmanager
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable

from fastapi import APIRouter, Body, Depends, FastAPI, Request, Response, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .admin import health as admin_health
from .admin import stats as admin_stats
from .auction.lifecycle import AuctionEnded, BelowMinimum, EndTimeNotFuture, SelfBid
from .auction.models import Auction, Bid, amount_to_json, to_decimal
from .auction.service import AuctionDetails, AuctionService, AuctionSummary
from .auth.credentials import CredentialError, detect_strategy, parse_credentials
from .auth.message import SignInMessage
from .auth.sessions import Session, SessionService
from .auth.strategies import AuthStrategies, EmailStrategy, WalletStrategy
from .bids.service import BidService
from .config import ServerConfig, get_server_config
from .errors import (
    ErrorCode,
    bad_request,
    install_error_handlers,
    not_found,
    unauthorized,
    validation_error,
)
from .storage import DocumentStorage, build_storage
from .transport.nonces import NonceCache
from .transport.timestamps import TimestampError, format_timestamp, parse_timestamp, utcnow
from .users.models import User
from .users.service import UserService
from .validation.validator import SchemaRegistry, get_schema_registry

logger = logging.getLogger(__name__)

_ADDRESS_PATTERN = re.compile(r"^0x[0-9a-fA-F]{40}$")

bearer_scheme = HTTPBearer(auto_error=False)
router = APIRouter()


def create_app(
    *,
    config: ServerConfig | None = None,
    storage: DocumentStorage | None = None,
    clock: Callable[[], datetime] | None = None,
) -> FastAPI:
    """Build the application; arguments override the configured defaults."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        server_config = config or get_server_config()
        logging.basicConfig(level=server_config.logging.level)
        now = clock or utcnow
        backend = storage if storage is not None else build_storage(server_config)
        schema_registry = get_schema_registry()
        users = UserService(backend, clock=now)
        bids = BidService(backend, clock=now)
        auctions = AuctionService(backend, users=users, bids=bids, clock=now)
        sessions = SessionService(backend, server_config.auth.session_ttl_seconds, clock=now)
        nonce_cache = NonceCache(server_config.auth.wallet.max_message_age_seconds, clock=now)
        strategies = AuthStrategies(
            [WalletStrategy(users, server_config.auth.wallet, nonce_cache, clock=now)]
        )
        if server_config.auth.email.enabled:
            strategies.register(EmailStrategy(users))
            logger.warning("email sign-in is enabled and verifies no secret")
        if not server_config.auth.wallet.replay_protection:
            logger.warning("wallet sign-in replay protection is disabled")

        app.state.server_config = server_config
        app.state.schema_registry = schema_registry
        app.state.storage = backend
        app.state.users = users
        app.state.bids = bids
        app.state.auctions = auctions
        app.state.sessions = sessions
        app.state.nonce_cache = nonce_cache
        app.state.auth_strategies = strategies
        app.state.clock = now
        app.state.start_time = now()
        logger.info(
            "sealedbid started storage=%s strategies=%s",
            server_config.storage.backend,
            ",".join(strategies.enabled()),
        )

        yield

        await backend.close()

    application = FastAPI(
        title="SealedBid Auction Server",
        version="1.0.0",
        docs_url="/docs",
        lifespan=lifespan,
    )
    install_error_handlers(application)
    application.include_router(admin_health.router)
    application.include_router(admin_stats.router)
    application.include_router(router)
    return application


# Dependency helpers ---------------------------------------------------------


def get_server_settings(request: Request) -> ServerConfig:
    return request.app.state.server_config


def get_schema_service(request: Request) -> SchemaRegistry:
    return request.app.state.schema_registry


def get_user_service(request: Request) -> UserService:
    return request.app.state.users


def get_bid_service(request: Request) -> BidService:
    return request.app.state.bids


def get_auction_service(request: Request) -> AuctionService:
    return request.app.state.auctions


def get_session_service(request: Request) -> SessionService:
    return request.app.state.sessions


def get_auth_strategies(request: Request) -> AuthStrategies:
    return request.app.state.auth_strategies


def get_clock(request: Request) -> Callable[[], datetime]:
    return request.app.state.clock


async def get_current_session(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    sessions: SessionService = Depends(get_session_service),
) -> Session | None:
    if credentials is None:
        return None
    return await sessions.resolve(credentials.credentials)


async def get_current_user(
    session: Session | None = Depends(get_current_session),
    users: UserService = Depends(get_user_service),
) -> User | None:
    if session is None:
        return None
    return await users.get_user_by_id(session.user_id)


async def require_user(user: User | None = Depends(get_current_user)) -> User:
    if user is None:
        raise unauthorized()
    return user


def validate_body(schemas: SchemaRegistry, schema_name: str, payload: Any, message: str) -> None:
    errors = schemas.errors(schema_name, payload)
    if errors:
        raise validation_error(message, errors)


def read_amount(payload: dict[str, Any], field: str, message: str) -> Decimal:
    try:
        return to_decimal(payload[field])
    except ValueError as exc:
        raise validation_error(message, [{"field": field, "message": str(exc)}]) from exc


# Routes ---------------------------------------------------------------------


@router.get("/", tags=["meta"])
async def root(
    request: Request,
    settings: ServerConfig = Depends(get_server_settings),
    strategies: AuthStrategies = Depends(get_auth_strategies),
) -> dict[str, Any]:
    return {
        "service": "sealedbid",
        "version": request.app.version,
        "storage_backend": settings.storage.backend,
        "auth": {
            "strategies": strategies.enabled(),
            "replay_protection": settings.auth.wallet.replay_protection,
        },
    }


@router.get("/auth/challenge", tags=["auth"])
async def issue_challenge(
    address: str,
    settings: ServerConfig = Depends(get_server_settings),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> dict[str, Any]:
    if not _ADDRESS_PATTERN.match(address):
        raise validation_error(
            "Invalid wallet address", [{"field": "address", "message": "must be 0x + 40 hex"}]
        )
    message = SignInMessage.issue(settings.auth.wallet, address, clock())
    return {"message": message.render(), "nonce": message.nonce, "issuedAt": message.issued_at}


@router.post("/auth/signin", tags=["auth"])
async def sign_in(
    payload: dict[str, Any] = Body(...),
    schemas: SchemaRegistry = Depends(get_schema_service),
    strategies: AuthStrategies = Depends(get_auth_strategies),
    sessions: SessionService = Depends(get_session_service),
) -> dict[str, Any]:
    try:
        strategy_id = detect_strategy(payload)
    except CredentialError as exc:
        raise validation_error(str(exc)) from exc
    validate_body(schemas, f"signin_{strategy_id}", payload, "Invalid credentials data")
    credential = parse_credentials(payload)
    user = await strategies.authorize(credential)
    if user is None:
        raise unauthorized("Invalid credentials")
    session = await sessions.create_session(user.id, credential.strategy)
    logger.info("user %s signed in via %s", user.id, credential.strategy)
    return {
        "token": session.token,
        "tokenType": "Bearer",
        "expiresAt": format_timestamp(session.expires_at),
        "user": user.to_profile(),
    }


@router.get("/auth/session", tags=["auth"])
async def current_session(user: User = Depends(require_user)) -> dict[str, Any]:
    return user.to_profile()


@router.patch("/auth/session", tags=["auth"])
async def update_profile(
    payload: dict[str, Any] = Body(...),
    user: User = Depends(require_user),
    schemas: SchemaRegistry = Depends(get_schema_service),
    users: UserService = Depends(get_user_service),
) -> dict[str, Any]:
    validate_body(schemas, "profile_update", payload, "Invalid profile data")
    updated = await users.update_user(user.id, name=payload["name"])
    return updated.to_profile()


@router.post("/auth/signout", tags=["auth"], status_code=status.HTTP_204_NO_CONTENT)
async def sign_out(
    session: Session | None = Depends(get_current_session),
    sessions: SessionService = Depends(get_session_service),
) -> Response:
    if session is None:
        raise unauthorized()
    await sessions.revoke(session.token)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/auctions", tags=["auctions"])
async def list_auctions(
    auctions: AuctionService = Depends(get_auction_service),
) -> list[dict[str, Any]]:
    return [format_auction_summary(summary) for summary in await auctions.list_auctions()]


@router.post("/auctions", tags=["auctions"], status_code=status.HTTP_201_CREATED)
async def create_auction(
    payload: dict[str, Any] = Body(...),
    user: User = Depends(require_user),
    schemas: SchemaRegistry = Depends(get_schema_service),
    settings: ServerConfig = Depends(get_server_settings),
    auctions: AuctionService = Depends(get_auction_service),
) -> dict[str, Any]:
    validate_body(schemas, "auction_create", payload, "Invalid auction data")
    title = payload["title"].strip()
    if len(title) < settings.auction.title_min_length:
        raise validation_error(
            "Invalid auction data",
            [
                {
                    "field": "title",
                    "message": f"Title must be at least {settings.auction.title_min_length} characters",
                }
            ],
        )
    try:
        end_time = parse_timestamp(payload["endTime"])
    except TimestampError as exc:
        raise validation_error(
            "Invalid auction data", [{"field": "endTime", "message": str(exc)}]
        ) from exc
    try:
        auction = await auctions.create_auction(
            creator_id=user.id,
            title=title,
            description=payload.get("description"),
            minimum_bid=read_amount(payload, "minimumBid", "Invalid auction data"),
            end_time=end_time,
        )
    except EndTimeNotFuture as exc:
        raise validation_error(str(exc)) from exc
    return format_auction_summary(await auctions.summarize(auction))


@router.get("/auctions/{auction_id}", tags=["auctions"])
async def get_auction(
    auction_id: str,
    user: User | None = Depends(get_current_user),
    auctions: AuctionService = Depends(get_auction_service),
) -> dict[str, Any]:
    details = await auctions.get_auction_details(auction_id, user.id if user else None)
    if details is None:
        raise not_found("Auction not found")
    return format_auction_details(details)


@router.post(
    "/auctions/{auction_id}/bids", tags=["bids"], status_code=status.HTTP_201_CREATED
)
async def place_bid(
    auction_id: str,
    payload: dict[str, Any] = Body(...),
    user: User = Depends(require_user),
    schemas: SchemaRegistry = Depends(get_schema_service),
    auctions: AuctionService = Depends(get_auction_service),
    bids: BidService = Depends(get_bid_service),
) -> dict[str, Any]:
    auction = await auctions.get_auction(auction_id)
    if auction is None:
        raise not_found("Auction not found")
    validate_body(schemas, "bid_create", payload, "Invalid bid data")
    try:
        amount = read_amount(payload, "amount", "Invalid bid data")
        bid = await bids.place_bid(auction, user.id, amount)
    except AuctionEnded as exc:
        raise bad_request(str(exc), ErrorCode.AUCTION_ENDED) from exc
    except SelfBid as exc:
        raise bad_request(str(exc), ErrorCode.FORBIDDEN) from exc
    except BelowMinimum as exc:
        raise bad_request(str(exc), ErrorCode.INVALID_BID) from exc
    return format_bid_record(bid)


@router.get("/me/auctions", tags=["dashboard"])
async def my_auctions(
    user: User = Depends(require_user),
    auctions: AuctionService = Depends(get_auction_service),
) -> list[dict[str, Any]]:
    summaries = await auctions.list_auctions_by_creator(user.id)
    return [format_auction_summary(summary) for summary in summaries]


@router.get("/me/bids", tags=["dashboard"])
async def my_bids(
    user: User = Depends(require_user),
    auctions: AuctionService = Depends(get_auction_service),
    bids: BidService = Depends(get_bid_service),
) -> list[dict[str, Any]]:
    results = []
    summaries: dict[str, AuctionSummary] = {}
    for bid in await bids.list_bids_by_user(user.id):
        if bid.auction_id not in summaries:
            auction = await auctions.get_auction(bid.auction_id)
            if auction is None:
                continue
            summaries[bid.auction_id] = await auctions.summarize(auction)
        entry = format_bid_record(bid)
        entry["auction"] = format_auction_summary(summaries[bid.auction_id])
        results.append(entry)
    return results


# Response formatting --------------------------------------------------------


def format_user_ref(user: User | None, user_id: str) -> dict[str, Any]:
    return {"id": user_id, "name": user.display_name if user else None}


def format_auction(auction: Auction) -> dict[str, Any]:
    return {
        "id": auction.id,
        "title": auction.title,
        "description": auction.description,
        "minimumBid": amount_to_json(auction.minimum_bid),
        "endTime": format_timestamp(auction.end_time),
        "createdAt": format_timestamp(auction.created_at),
        "updatedAt": format_timestamp(auction.updated_at),
        "creatorId": auction.creator_id,
    }


def format_auction_summary(summary: AuctionSummary) -> dict[str, Any]:
    response = format_auction(summary.auction)
    response["creator"] = format_user_ref(summary.creator, summary.auction.creator_id)
    response["bidCount"] = summary.bid_count
    response["isEnded"] = summary.is_ended
    return response


def format_bid_record(bid: Bid) -> dict[str, Any]:
    return {
        "id": bid.id,
        "amount": amount_to_json(bid.amount),
        "auctionId": bid.auction_id,
        "bidderId": bid.bidder_id,
        "createdAt": format_timestamp(bid.created_at),
    }


def format_auction_details(details: AuctionDetails) -> dict[str, Any]:
    response = format_auction_summary(details.summary)
    winning_id = details.winning_bid.id if details.winning_bid else None
    response["bids"] = [
        {
            "id": bid.id,
            "amount": amount_to_json(bid.amount),
            "createdAt": format_timestamp(bid.created_at),
            "bidder": format_user_ref(details.bidders.get(bid.bidder_id), bid.bidder_id),
            "isWinning": bid.id == winning_id,
        }
        for bid in details.bids
    ]
    response["isCreator"] = details.is_creator
    response["hasBid"] = details.has_bid
    if details.winning_bid is not None:
        winner = details.winning_bid
        response["winningBid"] = {
            "id": winner.id,
            "amount": amount_to_json(winner.amount),
            "bidder": format_user_ref(details.bidders.get(winner.bidder_id), winner.bidder_id),
        }
    else:
        response["winningBid"] = None
    return response


app = create_app()
