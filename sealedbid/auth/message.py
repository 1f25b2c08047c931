"""Sign-in challenge message for wallet authentication.

The text follows the Sign-In with Ethereum layout::

    {domain} wants you to sign in with your Ethereum account:
    {address}

    {statement}

    URI: {uri}
    Version: {version}
    Chain ID: {chain_id}
    Nonce: {nonce}
    Issued At: {issued_at}
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass
from datetime import datetime

from ..config import WalletAuthConfig
from ..transport.timestamps import format_timestamp
from .signatures import AuthenticationError

_MESSAGE_PATTERN = re.compile(
    r"(?P<domain>[^\n]+) wants you to sign in with your Ethereum account:\n"
    r"(?P<address>0x[0-9a-fA-F]{40})\n"
    r"\n"
    r"(?P<statement>[^\n]*)\n"
    r"\n"
    r"URI: (?P<uri>[^\n]+)\n"
    r"Version: (?P<version>[^\n]+)\n"
    r"Chain ID: (?P<chain_id>\d+)\n"
    r"Nonce: (?P<nonce>[^\n]+)\n"
    r"Issued At: (?P<issued_at>[^\n]+)"
)


class MessageFormatError(AuthenticationError):
    """Raised when a sign-in message does not follow the template."""


def generate_nonce() -> str:
    return uuid.uuid4().hex[:16]


@dataclass(frozen=True)
class SignInMessage:
    domain: str
    address: str
    statement: str
    uri: str
    version: str
    chain_id: int
    nonce: str
    issued_at: str

    @classmethod
    def issue(
        cls, settings: WalletAuthConfig, address: str, issued_at: datetime
    ) -> "SignInMessage":
        return cls(
            domain=settings.domain,
            address=address,
            statement=settings.statement,
            uri=settings.uri,
            version=settings.version,
            chain_id=settings.chain_id,
            nonce=generate_nonce(),
            issued_at=format_timestamp(issued_at),
        )

    def render(self) -> str:
        return (
            f"{self.domain} wants you to sign in with your Ethereum account:\n"
            f"{self.address}\n"
            "\n"
            f"{self.statement}\n"
            "\n"
            f"URI: {self.uri}\n"
            f"Version: {self.version}\n"
            f"Chain ID: {self.chain_id}\n"
            f"Nonce: {self.nonce}\n"
            f"Issued At: {self.issued_at}"
        )

    @classmethod
    def parse(cls, text: str) -> "SignInMessage":
        normalized = text.replace("\r\n", "\n").strip()
        match = _MESSAGE_PATTERN.fullmatch(normalized)
        if match is None:
            raise MessageFormatError("sign-in message does not match the expected format")
        return cls(
            domain=match["domain"],
            address=match["address"],
            statement=match["statement"],
            uri=match["uri"],
            version=match["version"],
            chain_id=int(match["chain_id"]),
            nonce=match["nonce"],
            issued_at=match["issued_at"],
        )
