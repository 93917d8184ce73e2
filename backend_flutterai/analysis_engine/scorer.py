"""
Deterministic wallet scorer.

Five 0-100 sub-scores from snapshot values, a risk level (AI label if it is
trusted, rule-derived otherwise) and a 0-1000 social credit score. Pure: same
snapshot and insights always give the same bundle.
"""

from __future__ import annotations

from backend_flutterai.analysis_engine.models import AIInsights, ScoreBundle, WalletSnapshot
from backend_flutterai.database.models import (
    RISK_CRITICAL,
    RISK_HIGH,
    RISK_LOW,
    RISK_MEDIUM,
    RISK_UNKNOWN,
)

SUB_SCORE_MAX = 100.0
SCORE_MAX = 1000
DEFAULT_RISK_OVERRIDE_CONFIDENCE = 0.7

RISK_MULTIPLIERS: dict[str, float] = {
    RISK_CRITICAL: 0.3,
    RISK_HIGH: 0.6,
    RISK_MEDIUM: 0.8,
    RISK_LOW: 1.1,
    RISK_UNKNOWN: 1.0,
}

# Social credit weights per sub-score
WEIGHT_TRADING = 3.0
WEIGHT_PORTFOLIO = 2.5
WEIGHT_LIQUIDITY = 2.0
WEIGHT_ACTIVITY = 2.5

STABLECOIN_SYMBOLS = frozenset({"USDC"})
TOP_TOKEN_LIMIT = 5

PORTFOLIO_SIZE_BUCKETS = (
    (1.0, "micro"),
    (10.0, "small"),
    (100.0, "medium"),
    (1000.0, "large"),
)
PORTFOLIO_SIZES = ("micro", "small", "medium", "large", "whale")


def _clamp(value: float, low: float = 0.0, high: float = SUB_SCORE_MAX) -> float:
    return max(low, min(high, value))


def compute_trading_score(snapshot: WalletSnapshot) -> float:
    h = snapshot.transaction_history
    score = min(h.tx_count / 10, 30) + min(h.success_rate * 40, 40) + min(h.last_30_days * 2, 30)
    return _clamp(score)


def compute_portfolio_score(snapshot: WalletSnapshot) -> float:
    score = min(snapshot.token_count * 3, 40) + min(snapshot.balance * 10, 30)
    if snapshot.nft_count > 0:
        score += 15
    score += snapshot.defi.protocols_used
    return _clamp(score)


def compute_liquidity_score(snapshot: WalletSnapshot) -> float:
    score = min(snapshot.balance * 20, 50)
    for token in snapshot.top_tokens[:TOP_TOKEN_LIMIT]:
        score += 10 if token.symbol.upper() in STABLECOIN_SYMBOLS else 5
    return _clamp(score)


def compute_activity_score(snapshot: WalletSnapshot) -> float:
    h = snapshot.transaction_history
    score = (
        min(h.tx_count / 5, 40)
        + min(h.last_30_days * 3, 30)
        + max(0.0, 30 - snapshot.account_age_days / 30)
    )
    return _clamp(score)


def compute_defi_engagement_score(snapshot: WalletSnapshot) -> float:
    d = snapshot.defi
    score = d.dex_count * 10
    if d.liquidity_providing:
        score += 20
    if d.staking:
        score += 15
    if d.lending_borrowing:
        score += 25
    score += min(d.protocols_used * 2, 30)
    return _clamp(score)


def derive_risk_level(risk_factors: list[str], trading_score: float) -> str:
    """Rule-derived risk; rules are checked in order, first match wins."""
    n = len(risk_factors)
    if n == 0 and trading_score > 70:
        return RISK_LOW
    if n <= 1 and trading_score > 50:
        return RISK_MEDIUM
    if n >= 3 or trading_score < 30:
        return RISK_CRITICAL
    return RISK_HIGH


def risk_multiplier(risk_level: str) -> float:
    return RISK_MULTIPLIERS.get(risk_level, RISK_MULTIPLIERS[RISK_UNKNOWN])


def portfolio_size_bucket(balance: float) -> str:
    for limit, label in PORTFOLIO_SIZE_BUCKETS:
        if balance < limit:
            return label
    return "whale"


def compute_social_credit_score(
    trading: float,
    portfolio: float,
    liquidity: float,
    activity: float,
    risk_level: str,
    confidence: float,
) -> int:
    base = (
        trading * WEIGHT_TRADING
        + portfolio * WEIGHT_PORTFOLIO
        + liquidity * WEIGHT_LIQUIDITY
        + activity * WEIGHT_ACTIVITY
    )
    raw = base * risk_multiplier(risk_level) * _clamp(confidence, 0.0, 1.0)
    return int(round(_clamp(raw, 0.0, float(SCORE_MAX))))


def compute_wallet_scores(
    snapshot: WalletSnapshot,
    insights: AIInsights,
    *,
    risk_override_confidence: float = DEFAULT_RISK_OVERRIDE_CONFIDENCE,
) -> ScoreBundle:
    confidence = _clamp(insights.confidence_score, 0.0, 1.0)

    if snapshot.is_empty:
        trading = portfolio = liquidity = activity = defi = 0.0
    else:
        trading = compute_trading_score(snapshot)
        portfolio = compute_portfolio_score(snapshot)
        liquidity = compute_liquidity_score(snapshot)
        activity = compute_activity_score(snapshot)
        defi = compute_defi_engagement_score(snapshot)

    ai_risk = insights.risk_assessment
    if ai_risk in RISK_MULTIPLIERS and ai_risk != RISK_UNKNOWN and confidence >= risk_override_confidence:
        risk_level, risk_source = ai_risk, "ai"
    else:
        risk_level, risk_source = derive_risk_level(snapshot.risk_factors, trading), "derived"

    if snapshot.is_empty:
        social = 0
    else:
        social = compute_social_credit_score(trading, portfolio, liquidity, activity, risk_level, confidence)

    size = insights.portfolio_size if insights.portfolio_size in PORTFOLIO_SIZES else None
    return ScoreBundle(
        trading_score=round(trading, 2),
        portfolio_score=round(portfolio, 2),
        liquidity_score=round(liquidity, 2),
        activity_score=round(activity, 2),
        defi_engagement_score=round(defi, 2),
        social_credit_score=social,
        risk_level=risk_level,
        risk_source=risk_source,
        confidence=confidence,
        portfolio_size=size or portfolio_size_bucket(snapshot.balance),
    )
