"""Credential shapes accepted by the sign-in endpoint."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

EMAIL = "email"
WALLET = "wallet"


class CredentialError(ValueError):
    """Raised when a payload matches no known credential shape."""


@dataclass(frozen=True)
class EmailCredential:
    email: str
    strategy: str = EMAIL


@dataclass(frozen=True)
class WalletCredential:
    address: str
    message: str
    signature: str
    strategy: str = WALLET


Credential = Union[EmailCredential, WalletCredential]


def detect_strategy(payload: dict[str, Any]) -> str:
    strategy = payload.get("strategy")
    if strategy:
        if strategy not in (EMAIL, WALLET):
            raise CredentialError(f"unknown sign-in strategy {strategy}")
        return strategy
    if "email" in payload:
        return EMAIL
    if any(key in payload for key in ("address", "message", "signature")):
        return WALLET
    raise CredentialError("credentials must contain an email or an address, message and signature")


def parse_credentials(payload: dict[str, Any]) -> Credential:
    strategy = detect_strategy(payload)
    if strategy == EMAIL:
        return EmailCredential(email=str(payload["email"]).strip())
    return WalletCredential(
        address=str(payload["address"]).strip(),
        message=str(payload["message"]),
        signature=str(payload["signature"]).strip(),
    )
