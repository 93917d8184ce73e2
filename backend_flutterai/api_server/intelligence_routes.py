"""
FastAPI router: direct (synchronous) wallet analysis and marketing profiles.

POST /api/flutterai/intelligence/analyze/{wallet} scores now and upserts the
record; batch-analyze does the same for up to max_batch_analyze_wallets
addresses and returns a risk summary.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from backend_flutterai.analysis_engine.wallet_scoring import WalletScoreResult, get_risk_summary
from backend_flutterai.api_server.schemas import BatchAnalyzeRequest
from backend_flutterai.api_server.services import ServiceContainer, get_services
from backend_flutterai.core.exceptions import DuplicateWalletError, WalletNotFoundError
from backend_flutterai.database.models import SOURCE_MANUAL
from backend_flutterai.database.storage import WalletStore
from backend_flutterai.flutterai_logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api/flutterai/intelligence", tags=["flutterai-intelligence"])

DIRECT_ANALYSIS_COLLECTOR = "intelligence_api"


def store_score_result(store: WalletStore, result: WalletScoreResult) -> dict[str, Any]:
    """Insert or update the wallet record with a fresh score. Returns the stored record."""
    updates = result.to_record_updates()
    address = result.wallet_address
    if store.get_wallet_intelligence(address) is None:
        try:
            return store.create_wallet_intelligence(
                address,
                SOURCE_MANUAL,
                collected_by=DIRECT_ANALYSIS_COLLECTOR,
                **updates,
            )
        except DuplicateWalletError:
            logger.debug("direct_analysis_insert_raced", wallet_id=address)
    return store.update_wallet_intelligence(address, updates)


@router.post("/analyze/{wallet_address}")
def analyze_wallet_now(wallet_address: str, services: ServiceContainer = Depends(get_services)) -> dict[str, Any]:
    result = services.scoring.score_wallet(wallet_address)
    record = store_score_result(services.store, result)
    return {
        "success": True,
        "message": "Wallet intelligence saved",
        "walletAddress": result.wallet_address,
        "analysis": result.to_dict(),
        "wallet": record,
    }


@router.post("/batch-analyze")
def batch_analyze(body: BatchAnalyzeRequest, services: ServiceContainer = Depends(get_services)) -> dict[str, Any]:
    limit = services.settings.max_batch_analyze_wallets
    if len(body.wallet_addresses) > limit:
        raise HTTPException(status_code=400, detail=f"Maximum {limit} wallet addresses allowed per batch")

    stored = 0

    def _store(result: WalletScoreResult) -> None:
        nonlocal stored
        store_score_result(services.store, result)
        stored += 1

    entries = services.scoring.batch_analyze_wallets(body.wallet_addresses, on_result=_store)
    return {
        "success": True,
        "summary": get_risk_summary(entries),
        "results": entries,
        "storedCount": stored,
    }


@router.get("/{wallet_address}/marketing")
def marketing_profile(wallet_address: str, services: ServiceContainer = Depends(get_services)) -> dict[str, Any]:
    wallet = services.store.get_wallet_intelligence(wallet_address)
    if wallet is None:
        raise WalletNotFoundError(wallet_address)
    insights = wallet.get("marketingInsights") or {}
    return {
        "success": True,
        "walletAddress": wallet_address,
        "socialCreditScore": wallet["socialCreditScore"],
        "riskLevel": wallet["riskLevel"],
        "marketingSegment": wallet["marketingSegment"],
        "communicationStyle": wallet["communicationStyle"],
        "riskTolerance": wallet["riskTolerance"],
        "portfolioSize": wallet["portfolioSize"],
        "influenceScore": wallet["influenceScore"],
        "marketingInsights": insights,
        "recommendations": {
            "targetAudience": insights.get("targetAudience") or "general audience",
            "messagingStrategy": insights.get("messagingStrategy") or "educational approach",
            "bestContactTimes": insights.get("bestContactTimes") or ["evening"],
            "preferredChannels": insights.get("preferredCommunicationChannels") or ["email"],
            "interests": insights.get("interests") or ["crypto"],
            "behaviorPatterns": insights.get("behaviorPatterns") or ["moderate activity"],
            "marketingActions": insights.get("marketingRecommendations") or ["standard outreach"],
        },
    }
