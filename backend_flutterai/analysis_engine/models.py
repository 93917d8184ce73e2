"""
Data models for the analysis engine: wallet snapshot, AI insights, score bundle.

Plain dataclasses; no storage coupling. to_dict() renders camelCase for
analysis_data blobs and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class TransactionHistory:
    tx_count: int = 0
    success_rate: float = 0.0
    """Fraction of successful transactions, 0-1."""
    last_30_days: int = 0
    avg_tx_value: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "txCount": self.tx_count,
            "successRate": self.success_rate,
            "last30Days": self.last_30_days,
            "avgTxValue": self.avg_tx_value,
        }


@dataclass
class DefiActivity:
    protocols_used: int = 0
    dex_count: int = 0
    liquidity_providing: bool = False
    staking: bool = False
    lending_borrowing: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "protocolsUsed": self.protocols_used,
            "dexCount": self.dex_count,
            "liquidityProviding": self.liquidity_providing,
            "staking": self.staking,
            "lendingBorrowing": self.lending_borrowing,
        }


@dataclass
class TokenHolding:
    symbol: str
    amount: float
    usd_value: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {"symbol": self.symbol, "amount": self.amount, "usdValue": self.usd_value}


@dataclass
class WalletSnapshot:
    """Point-in-time view of a wallet's holdings, history, DeFi usage and risk indicators."""

    wallet_address: str
    balance: float = 0.0
    """SOL balance."""
    token_count: int = 0
    nft_count: int = 0
    transaction_history: TransactionHistory = field(default_factory=TransactionHistory)
    defi: DefiActivity = field(default_factory=DefiActivity)
    social_connections: int = 0
    token_type_breakdown: dict[str, float] = field(default_factory=dict)
    """Percent of holdings by token type (e.g. stablecoin, meme); sums to ~100."""
    top_tokens: list[TokenHolding] = field(default_factory=list)
    risk_factors: list[str] = field(default_factory=list)
    account_age_days: int = 0

    @property
    def is_empty(self) -> bool:
        """No transactions, no balance, no tokens."""
        return self.transaction_history.tx_count == 0 and self.balance == 0 and self.token_count == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "walletAddress": self.wallet_address,
            "balance": self.balance,
            "tokenCount": self.token_count,
            "nftCount": self.nft_count,
            "transactionHistory": self.transaction_history.to_dict(),
            "defiActivity": self.defi.to_dict(),
            "socialConnections": self.social_connections,
            "tokenTypeBreakdown": dict(self.token_type_breakdown),
            "topTokens": [t.to_dict() for t in self.top_tokens],
            "riskFactors": list(self.risk_factors),
            "accountAgeDays": self.account_age_days,
        }


@dataclass
class AIInsights:
    """Advisory labels from the text-generation step (or its deterministic fallback)."""

    behavior_pattern: str = "unclassified"
    risk_assessment: str | None = None
    """One of low/medium/high/critical, or None when the model gave nothing usable."""
    portfolio_quality: str = "unknown"
    marketing_segment: str = "general"
    communication_style: str = "educational"
    preferred_token_types: list[str] = field(default_factory=list)
    risk_tolerance: str = "moderate"
    investment_profile: str = "undetermined"
    trading_frequency: str = "unknown"
    portfolio_size: str | None = None
    influence_score: float = 0.0
    confidence_score: float = 0.5
    marketing_insights: dict[str, Any] = field(default_factory=dict)
    source: str = "ai"
    """"ai" when parsed from the model, "fallback" otherwise."""

    def to_dict(self) -> dict[str, Any]:
        return {
            "behaviorPattern": self.behavior_pattern,
            "riskAssessment": self.risk_assessment,
            "portfolioQuality": self.portfolio_quality,
            "marketingSegment": self.marketing_segment,
            "communicationStyle": self.communication_style,
            "preferredTokenTypes": list(self.preferred_token_types),
            "riskTolerance": self.risk_tolerance,
            "investmentProfile": self.investment_profile,
            "tradingFrequency": self.trading_frequency,
            "portfolioSize": self.portfolio_size,
            "influenceScore": self.influence_score,
            "confidenceScore": self.confidence_score,
            "marketingInsights": dict(self.marketing_insights),
            "source": self.source,
        }


@dataclass
class ScoreBundle:
    trading_score: float
    portfolio_score: float
    liquidity_score: float
    activity_score: float
    defi_engagement_score: float
    social_credit_score: int
    risk_level: str
    risk_source: str
    """"ai" when the AI label was accepted, "derived" otherwise."""
    confidence: float
    portfolio_size: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "tradingScore": self.trading_score,
            "portfolioScore": self.portfolio_score,
            "liquidityScore": self.liquidity_score,
            "activityScore": self.activity_score,
            "defiEngagementScore": self.defi_engagement_score,
            "socialCreditScore": self.social_credit_score,
            "riskLevel": self.risk_level,
            "riskSource": self.risk_source,
            "confidence": self.confidence,
            "portfolioSize": self.portfolio_size,
        }
