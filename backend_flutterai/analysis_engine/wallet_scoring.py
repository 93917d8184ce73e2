"""
Wallet scoring service: gather -> interpret -> score.

Used by the queue processor (one wallet per claimed item) and by the direct
and batch analysis endpoints. Storage is left to the caller;
WalletScoreResult.to_record_updates() gives the column values.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Iterable

from backend_flutterai.analysis_engine.interpreter import AIInterpreter
from backend_flutterai.analysis_engine.models import AIInsights, ScoreBundle, WalletSnapshot
from backend_flutterai.analysis_engine.scorer import (
    DEFAULT_RISK_OVERRIDE_CONFIDENCE,
    compute_wallet_scores,
)
from backend_flutterai.analysis_engine.snapshot import SnapshotSource
from backend_flutterai.database.models import ANALYSIS_COMPLETED, RISK_LEVELS
from backend_flutterai.flutterai_logging import get_logger
from backend_flutterai.utils.wallet_utils import require_wallet_address

logger = get_logger(__name__)

DEFAULT_CHUNK_SIZE = 5
DEFAULT_CHUNK_PAUSE_SEC = 1.0
TOP_WALLETS_LIMIT = 5


@dataclass
class WalletScoreResult:
    wallet_address: str
    scores: ScoreBundle
    snapshot: WalletSnapshot
    insights: AIInsights
    scored_at: int

    def analysis_data(self) -> dict[str, Any]:
        return {
            "snapshot": self.snapshot.to_dict(),
            "insights": self.insights.to_dict(),
            "riskSource": self.scores.risk_source,
            "confidence": self.scores.confidence,
            "scoredAt": self.scored_at,
        }

    def to_record_updates(self) -> dict[str, Any]:
        """Column values for WalletStore.update_wallet_intelligence."""
        s = self.scores
        i = self.insights
        return {
            "trading_behavior_score": s.trading_score,
            "portfolio_quality_score": s.portfolio_score,
            "liquidity_score": s.liquidity_score,
            "activity_score": s.activity_score,
            "defi_engagement_score": s.defi_engagement_score,
            "social_credit_score": s.social_credit_score,
            "risk_level": s.risk_level,
            "marketing_segment": i.marketing_segment,
            "communication_style": i.communication_style,
            "preferred_token_types": list(i.preferred_token_types),
            "risk_tolerance": i.risk_tolerance,
            "investment_profile": i.investment_profile,
            "trading_frequency": i.trading_frequency,
            "portfolio_size": s.portfolio_size,
            "influence_score": i.influence_score,
            "social_connections": self.snapshot.social_connections,
            "marketing_insights": dict(i.marketing_insights),
            "analysis_data": self.analysis_data(),
            "analysis_status": ANALYSIS_COMPLETED,
            "analysis_error": None,
            "last_analyzed": self.scored_at,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "walletAddress": self.wallet_address,
            "socialCreditScore": self.scores.social_credit_score,
            "riskLevel": self.scores.risk_level,
            "scores": {
                "trading": self.scores.trading_score,
                "portfolio": self.scores.portfolio_score,
                "liquidity": self.scores.liquidity_score,
                "activity": self.scores.activity_score,
                "defiEngagement": self.scores.defi_engagement_score,
            },
            "marketingSegment": self.insights.marketing_segment,
            "communicationStyle": self.insights.communication_style,
            "portfolioSize": self.scores.portfolio_size,
            "analysisData": self.analysis_data(),
        }


class WalletScoringService:
    def __init__(
        self,
        gatherer: SnapshotSource,
        interpreter: AIInterpreter,
        *,
        clock: Callable[[], float] = time.time,
        risk_override_confidence: float = DEFAULT_RISK_OVERRIDE_CONFIDENCE,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        pause_sec: float = DEFAULT_CHUNK_PAUSE_SEC,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._gatherer = gatherer
        self._interpreter = interpreter
        self._clock = clock
        self._risk_override_confidence = risk_override_confidence
        self._chunk_size = max(1, chunk_size)
        self._pause_sec = pause_sec
        self._sleep = sleep

    def score_wallet(self, wallet_address: str) -> WalletScoreResult:
        address = require_wallet_address(wallet_address)
        snapshot = self._gatherer.gather(address)
        insights = self._interpreter.interpret(snapshot)
        scores = compute_wallet_scores(
            snapshot,
            insights,
            risk_override_confidence=self._risk_override_confidence,
        )
        logger.info(
            "wallet_scored",
            wallet_id=address,
            score=scores.social_credit_score,
            risk_level=scores.risk_level,
            risk_source=scores.risk_source,
            insights_source=insights.source,
        )
        return WalletScoreResult(
            wallet_address=address,
            scores=scores,
            snapshot=snapshot,
            insights=insights,
            scored_at=int(self._clock()),
        )

    def batch_analyze_wallets(
        self,
        wallet_addresses: Iterable[str],
        *,
        on_result: Callable[[WalletScoreResult], None] | None = None,
    ) -> list[dict[str, Any]]:
        """
        Score addresses sequentially in chunks, pausing between chunks.

        Returns one entry per address in input order: the result dict with
        success=True, or {"walletAddress", "success": False, "error"} when
        scoring that address failed. on_result is called for each success
        (e.g. to persist); its exceptions propagate.
        """
        addresses = list(wallet_addresses)
        entries: list[dict[str, Any]] = []
        for start in range(0, len(addresses), self._chunk_size):
            if start > 0 and self._pause_sec > 0:
                self._sleep(self._pause_sec)
            for address in addresses[start : start + self._chunk_size]:
                try:
                    result = self.score_wallet(address)
                except Exception as e:
                    logger.warning("batch_wallet_failed", wallet_id=address, error=str(e))
                    entries.append({"walletAddress": address, "success": False, "error": str(e)})
                    continue
                if on_result is not None:
                    on_result(result)
                entries.append({"success": True, **result.to_dict()})
        logger.info(
            "batch_analysis_done",
            total=len(addresses),
            failed=sum(1 for e in entries if not e["success"]),
        )
        return entries


def get_risk_summary(entries: list[dict[str, Any]]) -> dict[str, Any]:
    """Counts per risk level, average score, top wallets and failures for batch entries."""
    scored = [e for e in entries if e.get("success")]
    by_risk = {level: 0 for level in RISK_LEVELS}
    for entry in scored:
        level = entry.get("riskLevel")
        by_risk[level] = by_risk.get(level, 0) + 1
    scores = [int(e.get("socialCreditScore") or 0) for e in scored]
    top = sorted(scored, key=lambda e: (-int(e.get("socialCreditScore") or 0), e["walletAddress"]))
    return {
        "totalWallets": len(entries),
        "analyzed": len(scored),
        "failed": len(entries) - len(scored),
        "byRiskLevel": by_risk,
        "averageScore": round(sum(scores) / len(scores), 1) if scores else 0.0,
        "topWallets": [
            {
                "walletAddress": e["walletAddress"],
                "socialCreditScore": e["socialCreditScore"],
                "riskLevel": e["riskLevel"],
            }
            for e in top[:TOP_WALLETS_LIMIT]
        ],
    }
