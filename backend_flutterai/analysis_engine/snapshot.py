"""
Blockchain data gatherer: build a WalletSnapshot for an address.

There is no chain query here. Values are synthetic, drawn from a
random.Random seeded with the wallet address so a given address always yields
the same snapshot. Risk factors are derived from the drawn values with fixed
rules. A real RPC/indexer source only has to return the same WalletSnapshot
shape to plug into the scorer.
"""

from __future__ import annotations

import random
from typing import Protocol

from backend_flutterai.analysis_engine.models import (
    DefiActivity,
    TokenHolding,
    TransactionHistory,
    WalletSnapshot,
)
from backend_flutterai.flutterai_logging import get_logger

logger = get_logger(__name__)

FLAG_NEW_ACCOUNT = "new_account"
FLAG_LOW_ACTIVITY = "low_activity"
FLAG_HIGH_FAILURE_RATE = "high_failure_rate"
FLAG_DORMANT = "dormant"
FLAG_MEME_CONCENTRATION = "meme_concentration"
FLAG_SUSPICIOUS_DISTRIBUTION = "suspicious_distribution"

TOKEN_TYPES = ("stablecoin", "defi", "meme", "nft", "governance", "other")
TOKEN_SYMBOLS = ("USDC", "SOL", "JUP", "BONK", "RAY", "ORCA", "PYTH", "WIF", "MSOL", "JTO")


class SnapshotSource(Protocol):
    def gather(self, wallet_address: str) -> WalletSnapshot: ...


def derive_risk_factors(snapshot: WalletSnapshot) -> list[str]:
    """
    Rule-based risk indicators from snapshot values:
    new_account (< 7 days), low_activity (< 5 txs), high_failure_rate (< 80% success with txs),
    dormant (txs but none in 30 days), meme_concentration (> 60% meme),
    suspicious_distribution (> 100 tokens).
    """
    history = snapshot.transaction_history
    factors: list[str] = []
    if snapshot.account_age_days < 7:
        factors.append(FLAG_NEW_ACCOUNT)
    if history.tx_count < 5:
        factors.append(FLAG_LOW_ACTIVITY)
    if history.tx_count > 0 and history.success_rate < 0.8:
        factors.append(FLAG_HIGH_FAILURE_RATE)
    if history.tx_count > 0 and history.last_30_days == 0:
        factors.append(FLAG_DORMANT)
    if snapshot.token_type_breakdown.get("meme", 0.0) > 60.0:
        factors.append(FLAG_MEME_CONCENTRATION)
    if snapshot.token_count > 100:
        factors.append(FLAG_SUSPICIOUS_DISTRIBUTION)
    return factors


def _token_breakdown(rng: random.Random, token_count: int) -> dict[str, float]:
    if token_count == 0:
        return {}
    weights = [rng.random() for _ in TOKEN_TYPES]
    total = sum(weights) or 1.0
    breakdown = {t: round(w / total * 100.0, 1) for t, w in zip(TOKEN_TYPES, weights)}
    # Keep the sum at exactly 100 after rounding
    drift = round(100.0 - sum(breakdown.values()), 1)
    breakdown["other"] = round(breakdown["other"] + drift, 1)
    return breakdown


class SnapshotGatherer:
    """Synthetic snapshot source. Pass rng to override the per-address seeding."""

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng

    def _rng_for(self, wallet_address: str) -> random.Random:
        if self._rng is not None:
            return self._rng
        return random.Random(wallet_address)

    def gather(self, wallet_address: str) -> WalletSnapshot:
        rng = self._rng_for(wallet_address)

        account_age_days = rng.randint(1, 1500)
        tx_count = rng.randint(0, 2500)
        last_30_days = min(tx_count, rng.randint(0, 120))
        success_rate = round(rng.uniform(0.6, 1.0), 3) if tx_count else 0.0
        balance = round(rng.uniform(0.0, 250.0), 4)
        token_count = rng.randint(0, 60)
        nft_count = rng.randint(0, 40)

        protocols_used = rng.randint(0, 12)
        defi = DefiActivity(
            protocols_used=protocols_used,
            dex_count=min(protocols_used, rng.randint(0, 4)),
            liquidity_providing=protocols_used > 0 and rng.random() < 0.35,
            staking=rng.random() < 0.5,
            lending_borrowing=protocols_used > 0 and rng.random() < 0.25,
        )

        top_symbols = rng.sample(TOKEN_SYMBOLS, k=min(token_count, 5))
        top_tokens = [
            TokenHolding(
                symbol=symbol,
                amount=round(rng.uniform(1.0, 50_000.0), 2),
                usd_value=round(rng.uniform(5.0, 25_000.0), 2),
            )
            for symbol in top_symbols
        ]

        snapshot = WalletSnapshot(
            wallet_address=wallet_address,
            balance=balance,
            token_count=token_count,
            nft_count=nft_count,
            transaction_history=TransactionHistory(
                tx_count=tx_count,
                success_rate=success_rate,
                last_30_days=last_30_days,
                avg_tx_value=round(rng.uniform(0.01, 20.0), 3) if tx_count else 0.0,
            ),
            defi=defi,
            social_connections=rng.randint(0, 500),
            token_type_breakdown=_token_breakdown(rng, token_count),
            top_tokens=top_tokens,
            account_age_days=account_age_days,
        )
        snapshot.risk_factors = derive_risk_factors(snapshot)
        logger.debug(
            "snapshot_gathered",
            wallet_id=wallet_address,
            tx_count=tx_count,
            balance=balance,
            risk_factors=snapshot.risk_factors,
        )
        return snapshot
