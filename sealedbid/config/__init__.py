"""Configuration helpers for the auction server."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping

import yaml

_DEFAULT_SERVER_CONFIG = Path(__file__).resolve().parent / "server.yaml"

DEFAULT_STATEMENT = "Sign in with Ethereum to the Sealed Bid Auction App"


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"


@dataclass(frozen=True)
class StorageConfig:
    backend: str
    options: Mapping[str, Any]


@dataclass(frozen=True)
class EmailAuthConfig:
    enabled: bool = True


@dataclass(frozen=True)
class WalletAuthConfig:
    domain: str = "localhost:3000"
    uri: str = "http://localhost:3000"
    chain_id: int = 1
    statement: str = DEFAULT_STATEMENT
    version: str = "1"
    replay_protection: bool = True
    max_message_age_seconds: int = 300


@dataclass(frozen=True)
class AuthConfig:
    session_ttl_seconds: int
    email: EmailAuthConfig
    wallet: WalletAuthConfig


@dataclass(frozen=True)
class AuctionConfig:
    title_min_length: int = 3


@dataclass(frozen=True)
class ServerConfig:
    listen: Mapping[str, Any]
    logging: LoggingConfig
    storage: StorageConfig
    auth: AuthConfig
    auction: AuctionConfig


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(path)
    return yaml.safe_load(path.read_text()) or {}


def parse_server_config(data: Mapping[str, Any]) -> ServerConfig:
    """Build a ``ServerConfig`` from a raw mapping, filling in defaults."""
    logging_section = data.get("logging") or {}
    storage = data.get("storage") or {}
    auth = data.get("auth") or {}
    email = auth.get("email") or {}
    wallet = auth.get("wallet") or {}
    auction = data.get("auction") or {}
    return ServerConfig(
        listen=dict(data.get("listen") or {}),
        logging=LoggingConfig(level=str(logging_section.get("level", "INFO")).upper()),
        storage=StorageConfig(
            backend=str(storage.get("backend", "in_memory")),
            options=dict(storage.get("options") or {}),
        ),
        auth=AuthConfig(
            session_ttl_seconds=int(auth.get("session_ttl_seconds", 86400)),
            email=EmailAuthConfig(enabled=bool(email.get("enabled", True))),
            wallet=WalletAuthConfig(
                domain=str(wallet.get("domain", "localhost:3000")),
                uri=str(wallet.get("uri", "http://localhost:3000")),
                chain_id=int(wallet.get("chain_id", 1)),
                statement=str(wallet.get("statement", DEFAULT_STATEMENT)),
                version=str(wallet.get("version", "1")),
                replay_protection=bool(wallet.get("replay_protection", True)),
                max_message_age_seconds=int(wallet.get("max_message_age_seconds", 300)),
            ),
        ),
        auction=AuctionConfig(
            title_min_length=int(auction.get("title_min_length", 3)),
        ),
    )


@lru_cache(maxsize=1)
def get_server_config() -> ServerConfig:
    path = Path(os.getenv("SEALEDBID_CONFIG_PATH", _DEFAULT_SERVER_CONFIG))
    return parse_server_config(_load_yaml(path))
