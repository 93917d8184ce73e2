"""
Service wiring for the API.

build_services() constructs the store, AI interpreter, scoring service,
collector and queue processor from Settings. The container lives on
app.state.services; routes get it through the get_services dependency.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable

from fastapi import Request

from backend_flutterai.agent_worker.queue_processor import QueueProcessor
from backend_flutterai.analysis_engine.cache import TTLCache
from backend_flutterai.analysis_engine.interpreter import AIInterpreter, OpenAITextGenerator
from backend_flutterai.analysis_engine.snapshot import SnapshotGatherer
from backend_flutterai.analysis_engine.wallet_scoring import WalletScoringService
from backend_flutterai.config.settings import Settings
from backend_flutterai.database.storage import WalletStore
from backend_flutterai.ingestion.collector import WalletCollectionService


@dataclass
class ServiceContainer:
    settings: Settings
    store: WalletStore
    collector: WalletCollectionService
    scoring: WalletScoringService
    processor: QueueProcessor
    owns_store: bool = field(default=False)
    """True when build_services created the store; the lifespan disposes it on shutdown."""


def build_services(settings: Settings, *, clock: Callable[[], float] = time.time) -> ServiceContainer:
    store = WalletStore(settings.database_url, clock=clock)
    generator = OpenAITextGenerator(
        settings.llm_api_key,
        base_url=settings.llm_base_url,
        model=settings.llm_model,
        timeout_sec=settings.llm_timeout_sec,
    )
    interpreter = AIInterpreter(generator, cache=TTLCache(settings.ai_cache_ttl_sec))
    scoring = WalletScoringService(
        SnapshotGatherer(),
        interpreter,
        clock=clock,
        risk_override_confidence=settings.ai_risk_override_confidence,
        chunk_size=settings.batch_analyze_chunk_size,
        pause_sec=settings.batch_analyze_pause_sec,
    )
    return ServiceContainer(
        settings=settings,
        store=store,
        collector=WalletCollectionService(store, clock=clock, max_attempts=settings.queue_max_attempts),
        scoring=scoring,
        processor=QueueProcessor(store, scoring, clock=clock, stale_after_sec=settings.queue_stale_after_sec),
        owns_store=True,
    )


def get_services(request: Request) -> ServiceContainer:
    """Dependency: the app-scoped service container."""
    return request.app.state.services
