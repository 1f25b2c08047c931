"""Signature utilities based on Ethereum personal-message (EIP-191) recovery."""

from __future__ import annotations

from eth_account import Account
from eth_account.messages import encode_defunct


class AuthenticationError(ValueError):
    """Raised when presented credentials do not prove the claimed identity."""


class SignatureError(AuthenticationError):
    """Raised when a signature is malformed or cannot be recovered."""


class AddressMismatch(AuthenticationError):
    """Raised when the recovered signer differs from the claimed address."""


def _signature_bytes(signature: str) -> bytes:
    if not signature:
        raise SignatureError("signature missing")
    value = signature[2:] if signature[:2].lower() == "0x" else signature
    try:
        return bytes.fromhex(value)
    except ValueError as exc:
        raise SignatureError("signature is not hex encoded") from exc


def recover_address(message: str, signature: str) -> str:
    """Return the checksummed address that signed ``message``."""
    raw = _signature_bytes(signature)
    try:
        return Account.recover_message(encode_defunct(text=message), signature=raw)
    except Exception as exc:  # pragma: no cover - delegated to eth-account
        raise SignatureError("signature recovery failed") from exc


def verify_wallet_signature(address: str, message: str, signature: str) -> str:
    """Check that ``address`` signed ``message``; return the recovered address."""
    if not address:
        raise AddressMismatch("address missing")
    recovered = recover_address(message, signature)
    if recovered.lower() != address.lower():
        raise AddressMismatch(
            f"recovered {recovered.lower()} does not match claimed {address.lower()}"
        )
    return recovered


def sign_message(message: str, private_key: str | bytes) -> str:
    signed = Account.sign_message(encode_defunct(text=message), private_key=private_key)
    return "0x" + bytes(signed.signature).hex()
