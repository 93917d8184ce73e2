"""Wallet analysis: snapshot gathering, AI interpretation, deterministic scoring."""

from backend_flutterai.analysis_engine.cache import TTLCache
from backend_flutterai.analysis_engine.interpreter import (
    AIInterpreter,
    OpenAITextGenerator,
    TextGenerator,
    fallback_insights,
)
from backend_flutterai.analysis_engine.models import AIInsights, ScoreBundle, WalletSnapshot
from backend_flutterai.analysis_engine.scorer import compute_wallet_scores
from backend_flutterai.analysis_engine.snapshot import SnapshotGatherer
from backend_flutterai.analysis_engine.wallet_scoring import (
    WalletScoreResult,
    WalletScoringService,
    get_risk_summary,
)

__all__ = [
    "AIInsights",
    "AIInterpreter",
    "OpenAITextGenerator",
    "ScoreBundle",
    "SnapshotGatherer",
    "TTLCache",
    "TextGenerator",
    "WalletScoreResult",
    "WalletScoringService",
    "WalletSnapshot",
    "compute_wallet_scores",
    "fallback_insights",
    "get_risk_summary",
]
