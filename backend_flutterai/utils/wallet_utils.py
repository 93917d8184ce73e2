"""Wallet validation utilities."""

from __future__ import annotations

import re

from backend_flutterai.core.exceptions import InvalidWalletAddressError

# Solana base58 shape: 32-44 chars, no 0 O I l
SOLANA_WALLET_RE = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{32,44}$")

MAX_WALLET_LENGTH = 64


def normalize_wallet(address: str | None) -> str:
    """Strip whitespace and surrounding quotes."""
    return (address or "").strip().strip("'\"").strip()


def is_valid_wallet(address: str | None) -> bool:
    """Return True if address has the Solana base58 shape. No on-chain lookup."""
    if not address or not isinstance(address, str):
        return False
    return SOLANA_WALLET_RE.match(address) is not None


def require_wallet_address(address: str | None) -> str:
    """
    Lenient check used by manual entry, webhooks and analysis routes:
    non-empty, no whitespace, at most MAX_WALLET_LENGTH chars. Returns normalized address.
    """
    wallet = normalize_wallet(address)
    if not wallet:
        raise InvalidWalletAddressError("Wallet address is required")
    if len(wallet) > MAX_WALLET_LENGTH or any(ch.isspace() for ch in wallet):
        raise InvalidWalletAddressError(f"Invalid wallet address: {wallet[:16]}")
    return wallet
