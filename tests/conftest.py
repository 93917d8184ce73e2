"""
Pytest fixtures for FlutterAI tests. Temporary SQLite store, fake clock, stub text generator.
"""

from __future__ import annotations

import json

import pytest

# Valid Solana pubkeys (base58, 32 bytes)
VALID_WALLET = "9QCfNuQuxct1Xk9ytFYgxc5fThmTzL4pHQnSjjrVUrka"
VALID_WALLET_2 = "7F1WzVNQ1Qpurqxxdyv3UrFQR3uoNepULVW9A4bAJ5nZ"

AI_RESPONSE = {
    "behaviorPattern": "active_trader",
    "riskAssessment": "low",
    "portfolioQuality": "good",
    "marketingSegment": "defi_native",
    "communicationStyle": "technical",
    "preferredTokenTypes": ["defi", "stablecoin"],
    "riskTolerance": "aggressive",
    "investmentProfile": "yield farmer",
    "tradingFrequency": "frequent",
    "portfolioSize": "medium",
    "influenceScore": 42,
    "confidenceScore": 0.9,
    "marketingInsights": {"targetAudience": "defi power users", "interests": ["yield"]},
}


class FakeClock:
    """Manually advanced clock; call it like time.time."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class StubGenerator:
    """TextGenerator returning a fixed reply (or raising). Records prompts."""

    def __init__(self, reply: str | None = None, error: Exception | None = None) -> None:
        self.reply = reply if reply is not None else json.dumps(AI_RESPONSE)
        self.error = error
        self.prompts: list[str] = []

    def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def generator():
    return StubGenerator()


@pytest.fixture
def settings(tmp_path):
    from backend_flutterai.config.settings import Settings

    return Settings(
        database_url=f"sqlite:///{tmp_path / 'flutterai.db'}",
        batch_analyze_pause_sec=0.0,
        queue_worker_enabled=False,
    )


@pytest.fixture
def store(settings, clock):
    """WalletStore on a temporary SQLite file with tables created."""
    from backend_flutterai.database.storage import WalletStore

    s = WalletStore(settings.database_url, clock=clock)
    s.init_db()
    yield s
    s.dispose()


@pytest.fixture
def scoring(generator, clock):
    from backend_flutterai.analysis_engine.cache import TTLCache
    from backend_flutterai.analysis_engine.interpreter import AIInterpreter
    from backend_flutterai.analysis_engine.snapshot import SnapshotGatherer
    from backend_flutterai.analysis_engine.wallet_scoring import WalletScoringService

    interpreter = AIInterpreter(generator, cache=TTLCache(900, clock=clock))
    return WalletScoringService(SnapshotGatherer(), interpreter, clock=clock, sleep=lambda _: None)


@pytest.fixture
def collector(store, clock):
    from backend_flutterai.ingestion.collector import WalletCollectionService

    return WalletCollectionService(store, clock=clock, max_attempts=3)


@pytest.fixture
def processor(store, scoring, clock):
    from backend_flutterai.agent_worker.queue_processor import QueueProcessor

    return QueueProcessor(store, scoring, clock=clock)


@pytest.fixture
def services(settings, store, collector, scoring, processor):
    from backend_flutterai.api_server.services import ServiceContainer

    return ServiceContainer(
        settings=settings,
        store=store,
        collector=collector,
        scoring=scoring,
        processor=processor,
    )


@pytest.fixture
def client(services):
    """FastAPI TestClient over the injected services (lifespan runs init_db)."""
    from fastapi.testclient import TestClient

    from backend_flutterai.api_server.server import create_app

    with TestClient(create_app(services=services)) as c:
        yield c
