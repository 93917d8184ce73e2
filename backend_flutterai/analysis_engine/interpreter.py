"""
AI interpretation step: ask a text-generation model for advisory wallet labels.

One call per wallet. The snapshot is serialized into a prompt requesting a
fixed JSON schema; the reply is parsed and coerced into AIInsights. Any
failure (missing key, network, HTTP status, malformed or incomplete JSON)
yields a deterministic fallback instead of an exception. Labels are advisory;
the deterministic scorer stays authoritative.
"""

from __future__ import annotations

import json
from typing import Any, Protocol

import httpx

from backend_flutterai.analysis_engine.cache import TTLCache
from backend_flutterai.analysis_engine.models import AIInsights, WalletSnapshot
from backend_flutterai.config.env import DEFAULT_LLM_BASE_URL, DEFAULT_LLM_MODEL
from backend_flutterai.core.exceptions import TextGenerationError
from backend_flutterai.flutterai_logging import get_logger

logger = get_logger(__name__)

DEFAULT_TIMEOUT_SEC = 30.0
DEFAULT_TEMPERATURE = 0.3
FALLBACK_CONFIDENCE = 0.5

VALID_RISK_LABELS = ("low", "medium", "high", "critical")
REQUIRED_KEYS = ("behaviorPattern", "riskAssessment", "marketingSegment", "confidenceScore")

SYSTEM_PROMPT = (
    "You are a Solana wallet analyst producing marketing intelligence. "
    "Respond with a single JSON object only, no markdown and no text outside the JSON."
)

PROMPT_TEMPLATE = """Analyze this Solana wallet and classify it.

Wallet: {wallet}
Balance: {balance:.4f} SOL
Tokens held: {token_count} (top: {top_tokens})
NFTs held: {nft_count}
Transactions: {tx_count} total, {last_30_days} in the last 30 days, success rate {success_rate:.1%}
Average transaction value: {avg_tx_value:.3f} SOL
Account age: {account_age_days} days
DeFi: {protocols_used} protocols, {dex_count} DEXes, liquidity providing={lp}, staking={staking}, lending/borrowing={lending}
Token type breakdown (%): {breakdown}
Estimated social connections: {social_connections}
Risk indicators: {risk_factors}

Return JSON with exactly these keys:
{{
  "behaviorPattern": "short label for the trading behavior",
  "riskAssessment": "low" | "medium" | "high" | "critical",
  "portfolioQuality": "poor" | "fair" | "good" | "excellent",
  "marketingSegment": "e.g. whale, active_trader, defi_native, nft_collector, retail, newcomer",
  "communicationStyle": "e.g. technical, educational, casual, premium",
  "preferredTokenTypes": ["token types this wallet favours"],
  "riskTolerance": "conservative" | "moderate" | "aggressive",
  "investmentProfile": "short description",
  "tradingFrequency": "rare" | "occasional" | "regular" | "frequent",
  "portfolioSize": "micro" | "small" | "medium" | "large" | "whale",
  "influenceScore": <number 0-100>,
  "confidenceScore": <number 0-1>,
  "marketingInsights": {{
    "targetAudience": "...",
    "messagingStrategy": "...",
    "bestContactTimes": ["..."],
    "preferredCommunicationChannels": ["..."],
    "interests": ["..."],
    "behaviorPatterns": ["..."],
    "marketingRecommendations": ["..."]
  }}
}}"""


class TextGenerator(Protocol):
    """prompt in, raw model text out; may raise."""

    def generate(self, prompt: str) -> str: ...


class OpenAITextGenerator:
    """Chat-completions client over httpx (OpenAI-compatible endpoint)."""

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = DEFAULT_LLM_BASE_URL,
        model: str = DEFAULT_LLM_MODEL,
        timeout_sec: float = DEFAULT_TIMEOUT_SEC,
        client: httpx.Client | None = None,
    ) -> None:
        self._api_key = api_key
        self._url = base_url.rstrip("/") + "/chat/completions"
        self._model = model
        self._timeout_sec = timeout_sec
        self._client = client

    def generate(self, prompt: str) -> str:
        if not self._api_key:
            raise TextGenerationError("LLM API key not configured")
        body = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "response_format": {"type": "json_object"},
            "temperature": DEFAULT_TEMPERATURE,
        }
        headers = {"Authorization": f"Bearer {self._api_key}"}
        try:
            if self._client is not None:
                resp = self._client.post(self._url, json=body, headers=headers, timeout=self._timeout_sec)
            else:
                with httpx.Client(timeout=self._timeout_sec) as client:
                    resp = client.post(self._url, json=body, headers=headers)
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPStatusError as e:
            raise TextGenerationError(f"LLM HTTP {e.response.status_code}") from e
        except (httpx.HTTPError, ValueError) as e:
            raise TextGenerationError(f"LLM request failed: {e}") from e
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise TextGenerationError("LLM response missing choices[0].message.content") from e
        if not content or not str(content).strip():
            raise TextGenerationError("LLM returned empty content")
        return str(content)


def build_prompt(snapshot: WalletSnapshot) -> str:
    history = snapshot.transaction_history
    defi = snapshot.defi
    return PROMPT_TEMPLATE.format(
        wallet=snapshot.wallet_address,
        balance=snapshot.balance,
        token_count=snapshot.token_count,
        top_tokens=", ".join(t.symbol for t in snapshot.top_tokens) or "none",
        nft_count=snapshot.nft_count,
        tx_count=history.tx_count,
        last_30_days=history.last_30_days,
        success_rate=history.success_rate,
        avg_tx_value=history.avg_tx_value,
        account_age_days=snapshot.account_age_days,
        protocols_used=defi.protocols_used,
        dex_count=defi.dex_count,
        lp=defi.liquidity_providing,
        staking=defi.staking,
        lending=defi.lending_borrowing,
        breakdown=json.dumps(snapshot.token_type_breakdown, sort_keys=True),
        social_connections=snapshot.social_connections,
        risk_factors=", ".join(snapshot.risk_factors) or "none",
    )


def _strip_code_fence(raw: str) -> str:
    text = raw.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()


def _as_str(value: Any, default: str) -> str:
    if value is None:
        return default
    text = str(value).strip()
    return text or default


def _as_float(value: Any, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _as_str_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value.strip()] if value.strip() else []
    if isinstance(value, (list, tuple)):
        return [str(v).strip() for v in value if str(v).strip()]
    return []


def _normalize_confidence(value: Any) -> float:
    confidence = _as_float(value, FALLBACK_CONFIDENCE)
    if 1.0 < confidence <= 100.0:
        # Model answered in percent
        confidence /= 100.0
    return max(0.0, min(1.0, confidence))


def parse_insights(raw: str) -> AIInsights:
    """Parse model text into AIInsights. Raises ValueError on malformed or incomplete JSON."""
    payload = json.loads(_strip_code_fence(raw))
    if not isinstance(payload, dict):
        raise ValueError("AI response is not a JSON object")
    missing = [k for k in REQUIRED_KEYS if k not in payload]
    if missing:
        raise ValueError(f"AI response missing keys: {', '.join(missing)}")

    risk = _as_str(payload.get("riskAssessment"), "").lower()
    portfolio_size = _as_str(payload.get("portfolioSize"), "").lower() or None
    insights = payload.get("marketingInsights")
    return AIInsights(
        behavior_pattern=_as_str(payload.get("behaviorPattern"), "unclassified"),
        risk_assessment=risk if risk in VALID_RISK_LABELS else None,
        portfolio_quality=_as_str(payload.get("portfolioQuality"), "unknown"),
        marketing_segment=_as_str(payload.get("marketingSegment"), "general"),
        communication_style=_as_str(payload.get("communicationStyle"), "educational"),
        preferred_token_types=_as_str_list(payload.get("preferredTokenTypes")),
        risk_tolerance=_as_str(payload.get("riskTolerance"), "moderate"),
        investment_profile=_as_str(payload.get("investmentProfile"), "undetermined"),
        trading_frequency=_as_str(payload.get("tradingFrequency"), "unknown"),
        portfolio_size=portfolio_size,
        influence_score=max(0.0, min(100.0, _as_float(payload.get("influenceScore"), 0.0))),
        confidence_score=_normalize_confidence(payload.get("confidenceScore")),
        marketing_insights=insights if isinstance(insights, dict) else {},
        source="ai",
    )


def fallback_insights(snapshot: WalletSnapshot) -> AIInsights:
    """Conservative labels used whenever the model is unavailable or its reply is unusable."""
    breakdown = snapshot.token_type_breakdown
    preferred = sorted(breakdown, key=lambda t: (-breakdown[t], t))[:3]
    return AIInsights(
        behavior_pattern="unclassified",
        risk_assessment=None,
        portfolio_quality="unknown",
        marketing_segment="general",
        communication_style="educational",
        preferred_token_types=preferred,
        risk_tolerance="conservative",
        investment_profile="undetermined",
        trading_frequency="unknown",
        portfolio_size=None,
        influence_score=0.0,
        confidence_score=FALLBACK_CONFIDENCE,
        marketing_insights={
            "targetAudience": "general audience",
            "messagingStrategy": "educational approach",
            "bestContactTimes": ["evening"],
            "preferredCommunicationChannels": ["email"],
            "interests": ["crypto"],
            "behaviorPatterns": ["moderate activity"],
            "marketingRecommendations": ["standard outreach"],
        },
        source="fallback",
    )


class AIInterpreter:
    """Snapshot → AIInsights via a TextGenerator; never raises."""

    def __init__(self, generator: TextGenerator, *, cache: TTLCache | None = None) -> None:
        self._generator = generator
        self._cache = cache

    def interpret(self, snapshot: WalletSnapshot, *, use_cache: bool = True) -> AIInsights:
        key = f"ai:v1:{snapshot.wallet_address}"
        if self._cache is not None and use_cache:
            cached = self._cache.get(key)
            if cached is not None:
                logger.debug("ai_interpretation_cache_hit", wallet_id=snapshot.wallet_address)
                return cached
        try:
            raw = self._generator.generate(build_prompt(snapshot))
            insights = parse_insights(raw)
        except Exception as e:
            logger.warning(
                "ai_interpretation_fallback",
                wallet_id=snapshot.wallet_address,
                error_type=type(e).__name__,
                error=str(e),
            )
            return fallback_insights(snapshot)
        if self._cache is not None:
            self._cache.set(key, insights)
        logger.info(
            "ai_interpretation_done",
            wallet_id=snapshot.wallet_address,
            risk_assessment=insights.risk_assessment,
            confidence=insights.confidence_score,
            segment=insights.marketing_segment,
        )
        return insights
