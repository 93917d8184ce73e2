"""
Tests for the wallet scoring service: single scoring, chunked batch analysis, risk summary.
"""

from __future__ import annotations

from backend_flutterai.analysis_engine.cache import TTLCache
from backend_flutterai.analysis_engine.interpreter import AIInterpreter
from backend_flutterai.analysis_engine.snapshot import SnapshotGatherer
from backend_flutterai.analysis_engine.wallet_scoring import WalletScoringService, get_risk_summary

BASE58 = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"


def _addresses(n: int) -> list[str]:
    return [(BASE58[i] * 44) for i in range(n)]


def _service(generator, clock, sleeps, **kwargs):
    interpreter = AIInterpreter(generator, cache=TTLCache(900, clock=clock))
    return WalletScoringService(SnapshotGatherer(), interpreter, clock=clock, sleep=sleeps.append, **kwargs)


def test_batch_pauses_one_second_between_chunks_of_five(generator, clock):
    sleeps: list[float] = []
    service = _service(generator, clock, sleeps)

    entries = service.batch_analyze_wallets(_addresses(11))

    assert sleeps == [1.0, 1.0]
    assert len(entries) == 11
    assert all(e["success"] for e in entries)
    assert [e["walletAddress"] for e in entries] == _addresses(11)
    assert len(generator.prompts) == 11


def test_single_chunk_never_sleeps(generator, clock):
    sleeps: list[float] = []
    _service(generator, clock, sleeps).batch_analyze_wallets(_addresses(5))
    assert sleeps == []


def test_batch_failures_are_entries_and_callback_sees_successes(generator, clock):
    sleeps: list[float] = []
    stored = []
    service = _service(generator, clock, sleeps, chunk_size=2, pause_sec=0.5)

    entries = service.batch_analyze_wallets(
        ["1" * 44, "bad address", "2" * 44],
        on_result=lambda result: stored.append(result.wallet_address),
    )

    assert sleeps == [0.5]
    assert [e["success"] for e in entries] == [True, False, True]
    assert entries[1]["walletAddress"] == "bad address"
    assert stored == ["1" * 44, "2" * 44]

    summary = get_risk_summary(entries)
    assert summary["totalWallets"] == 3
    assert summary["analyzed"] == 2
    assert summary["failed"] == 1
    assert sum(summary["byRiskLevel"].values()) == 2
    assert len(summary["topWallets"]) == 2
