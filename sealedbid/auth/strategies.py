"""Authentication strategies resolving credentials to a user."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Iterable, Protocol

from ..config import WalletAuthConfig
from ..transport.nonces import NonceCache, NonceError
from ..transport.timestamps import TimestampError, assert_within_age, utcnow
from ..users.models import User
from ..users.service import UserService
from .credentials import EMAIL, WALLET, Credential, EmailCredential, WalletCredential
from .message import SignInMessage
from .signatures import AddressMismatch, AuthenticationError, verify_wallet_signature

logger = logging.getLogger(__name__)

# Reserved for wallet accounts; never accepted as an email sign-in.
WALLET_EMAIL_DOMAIN = "wallet.user"


class StaleMessage(AuthenticationError):
    """Raised when a sign-in message is too old, reused, or for another domain."""


class AuthStrategy(Protocol):
    strategy_id: str

    async def authorize(self, credential: Credential) -> User | None: ...


def wallet_display_name(address: str) -> str:
    return f"{address[:6]}...{address[38:]}"


def wallet_placeholder_email(address: str) -> str:
    return f"{address.lower()}@{WALLET_EMAIL_DOMAIN}"


class EmailStrategy:
    """Sign in as whoever owns ``email``, creating the account on first use.

    No secret is checked: any syntactically valid email authenticates as that
    identity.
    """

    strategy_id = EMAIL

    def __init__(self, users: UserService) -> None:
        self._users = users

    async def authorize(self, credential: Credential) -> User | None:
        if not isinstance(credential, EmailCredential) or not credential.email:
            return None
        if credential.email.lower().endswith("@" + WALLET_EMAIL_DOMAIN):
            logger.warning("email sign-in rejected for reserved address %s", credential.email)
            return None
        user = await self._users.get_user_by_email(credential.email)
        if user is None:
            user = await self._users.create_user(
                email=credential.email,
                name=credential.email.split("@")[0],
            )
        return user


class WalletStrategy:
    strategy_id = WALLET

    def __init__(
        self,
        users: UserService,
        settings: WalletAuthConfig,
        nonce_cache: NonceCache,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._users = users
        self._settings = settings
        self._nonce_cache = nonce_cache
        self._clock = clock

    async def verify(self, credential: WalletCredential) -> str:
        """Return the lowercased wallet address proven by ``credential``."""
        verify_wallet_signature(credential.address, credential.message, credential.signature)
        if self._settings.replay_protection:
            await self._assert_fresh_message(credential)
        return credential.address.lower()

    async def _assert_fresh_message(self, credential: WalletCredential) -> None:
        message = SignInMessage.parse(credential.message)
        if message.address.lower() != credential.address.lower():
            raise AddressMismatch("message was issued for a different address")
        if message.domain != self._settings.domain:
            raise StaleMessage(f"message was issued for domain {message.domain}")
        if message.chain_id != self._settings.chain_id:
            raise StaleMessage(f"message was issued for chain {message.chain_id}")
        try:
            assert_within_age(
                message.issued_at,
                max_age_seconds=self._settings.max_message_age_seconds,
                now=self._clock(),
            )
            await self._nonce_cache.assert_fresh(f"{message.address.lower()}:{message.nonce}")
        except (TimestampError, NonceError) as exc:
            raise StaleMessage(str(exc)) from exc

    async def authorize(self, credential: Credential) -> User | None:
        if not isinstance(credential, WalletCredential):
            return None
        try:
            address = await self.verify(credential)
        except AuthenticationError as exc:
            logger.warning(
                "wallet sign-in rejected address=%s reason=%s: %s",
                credential.address.lower(),
                type(exc).__name__,
                exc,
            )
            return None
        user = await self._users.get_user_by_wallet_address(address)
        if user is None:
            try:
                user = await self._users.create_user(
                    wallet_address=address,
                    name=wallet_display_name(credential.address),
                    email=wallet_placeholder_email(address),
                )
            except ValueError as exc:
                logger.warning("wallet sign-in rejected address=%s: %s", address.lower(), exc)
                return None
        return user


class AuthStrategies:
    """Dispatch table of enabled strategies keyed by strategy id."""

    def __init__(self, strategies: Iterable[AuthStrategy] = ()) -> None:
        self._strategies: dict[str, AuthStrategy] = {}
        for strategy in strategies:
            self.register(strategy)

    def register(self, strategy: AuthStrategy) -> None:
        self._strategies[strategy.strategy_id] = strategy

    def enabled(self) -> list[str]:
        return sorted(self._strategies)

    def get(self, strategy_id: str) -> AuthStrategy | None:
        return self._strategies.get(strategy_id)

    async def authorize(self, credential: Credential) -> User | None:
        strategy = self.get(credential.strategy)
        if strategy is None:
            logger.warning("sign-in attempted with disabled strategy %s", credential.strategy)
            return None
        return await strategy.authorize(credential)
