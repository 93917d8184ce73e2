"""
Tests for WalletStore on a temporary SQLite database.
"""

from __future__ import annotations

import pytest

from backend_flutterai.core.exceptions import (
    BatchNotFoundError,
    DuplicateWalletError,
    StorageError,
    WalletNotFoundError,
)
from backend_flutterai.database.storage import WalletStore

VALID_WALLET = "9QCfNuQuxct1Xk9ytFYgxc5fThmTzL4pHQnSjjrVUrka"
VALID_WALLET_2 = "7F1WzVNQ1Qpurqxxdyv3UrFQR3uoNepULVW9A4bAJ5nZ"
VALID_WALLET_3 = "So11111111111111111111111111111111111111112"


def test_create_defaults_and_duplicate(store, clock):
    wallet = store.create_wallet_intelligence(VALID_WALLET, "manual_entry", tags=["a"], metadata={"k": 1})
    assert wallet["riskLevel"] == "unknown"
    assert wallet["analysisStatus"] == "pending_analysis"
    assert wallet["socialCreditScore"] == 0
    assert wallet["blockchain"] == "solana"
    assert wallet["collectedAt"] == int(clock())
    assert wallet["tags"] == ["a"]
    assert wallet["metadata"] == {"k": 1}

    with pytest.raises(DuplicateWalletError):
        store.create_wallet_intelligence(VALID_WALLET, "csv_upload")
    assert store.list_wallet_intelligence()[1] == 1


def test_update_and_delete(store, clock):
    store.create_wallet_intelligence(VALID_WALLET, "manual_entry")
    clock.advance(60)
    updated = store.update_wallet_intelligence(VALID_WALLET, {"risk_level": "low", "social_credit_score": 700})
    assert updated["riskLevel"] == "low"
    assert updated["socialCreditScore"] == 700
    assert updated["updatedAt"] == updated["collectedAt"] + 60

    with pytest.raises(ValueError, match="Unknown fields"):
        store.update_wallet_intelligence(VALID_WALLET, {"not_a_column": 1})
    with pytest.raises(WalletNotFoundError):
        store.update_wallet_intelligence(VALID_WALLET_2, {"risk_level": "low"})

    assert store.delete_wallet_intelligence(VALID_WALLET) is True
    assert store.delete_wallet_intelligence(VALID_WALLET) is False
    assert store.get_wallet_intelligence(VALID_WALLET) is None


def test_list_filters_and_pagination(store):
    store.create_wallet_intelligence(VALID_WALLET, "manual_entry", risk_level="low", social_credit_score=800)
    store.create_wallet_intelligence(VALID_WALLET_2, "csv_upload", risk_level="high", social_credit_score=200)
    store.create_wallet_intelligence(VALID_WALLET_3, "csv_upload", risk_level="low", social_credit_score=500)

    rows, total = store.list_wallet_intelligence(risk_level="low")
    assert total == 2
    assert [r["walletAddress"] for r in rows] == [VALID_WALLET, VALID_WALLET_3]

    rows, total = store.list_wallet_intelligence(source="csv_upload", limit=1, offset=1)
    assert total == 2
    assert [r["walletAddress"] for r in rows] == [VALID_WALLET_3]

    rows, _ = store.list_wallet_intelligence(min_score=300, max_score=600)
    assert [r["walletAddress"] for r in rows] == [VALID_WALLET_3]


def test_search(store):
    store.create_wallet_intelligence(VALID_WALLET, "manual_entry", notes="met at breakpoint")
    store.create_wallet_intelligence(VALID_WALLET_2, "manual_entry", marketing_segment="defi_native")
    assert [w["walletAddress"] for w in store.search_wallet_intelligence("BREAKPOINT")] == [VALID_WALLET]
    assert [w["walletAddress"] for w in store.search_wallet_intelligence("defi")] == [VALID_WALLET_2]
    assert [w["walletAddress"] for w in store.search_wallet_intelligence("7F1Wz")] == [VALID_WALLET_2]


def test_batches(store):
    batch = store.create_wallet_batch("October", uploaded_by="admin", file_name="w.csv", total_wallets=3)
    assert batch["status"] == "processing"
    assert len(batch["id"]) == 32

    updated = store.update_wallet_batch(batch["id"], {"processed_wallets": 3, "status": "completed"})
    assert updated["processedWallets"] == 3
    assert store.get_wallet_batch(batch["id"])["status"] == "completed"

    batches, total = store.list_wallet_batches()
    assert total == 1
    assert batches[0]["batchName"] == "October"
    with pytest.raises(BatchNotFoundError):
        store.update_wallet_batch("missing", {"status": "completed"})


def test_queue_dedupes_and_raises_priority(store):
    first = store.add_to_analysis_queue(VALID_WALLET, 1)
    second = store.add_to_analysis_queue(VALID_WALLET, 4, requested_by="admin")
    assert second["id"] == first["id"]
    assert second["priority"] == 4
    assert second["requestedBy"] == "admin"
    lower = store.add_to_analysis_queue(VALID_WALLET, 2)
    assert lower["priority"] == 4
    assert len(store.list_analysis_queue(VALID_WALLET)) == 1


def test_claim_order_priority_then_age(store, clock):
    store.add_to_analysis_queue(VALID_WALLET, 2)
    clock.advance(1)
    store.add_to_analysis_queue(VALID_WALLET_2, 3)
    clock.advance(1)
    store.add_to_analysis_queue(VALID_WALLET_3, 2)

    order = []
    while (item := store.get_next_queued_analysis()) is not None:
        assert item["status"] == "processing"
        assert item["startedAt"] is not None
        order.append(item["walletAddress"])
    assert order == [VALID_WALLET_2, VALID_WALLET, VALID_WALLET_3]


def test_queue_status_updates_and_stats(store):
    item = store.add_to_analysis_queue(VALID_WALLET, 2)
    store.add_to_analysis_queue(VALID_WALLET_2, 2)
    store.update_analysis_queue_status(item["id"], "failed", attempts=3, error_message="boom")
    stored = store.get_analysis_queue_item(item["id"])
    assert stored["status"] == "failed"
    assert stored["attempts"] == 3
    assert stored["completedAt"] is not None
    assert store.get_analysis_queue_stats() == {"queued": 1, "processing": 0, "completed": 0, "failed": 1}
    with pytest.raises(ValueError):
        store.update_analysis_queue_status(item["id"], "exploded")


def test_collection_stats_average_of_completed(store):
    store.create_wallet_intelligence(VALID_WALLET, "manual_entry", social_credit_score=600, analysis_status="completed")
    store.create_wallet_intelligence(VALID_WALLET_2, "csv_upload", social_credit_score=301, analysis_status="completed")
    store.create_wallet_intelligence(VALID_WALLET_3, "csv_upload")
    stats = store.get_collection_stats()
    assert stats["totalWallets"] == 3
    assert stats["bySource"]["csv_upload"] == 2
    assert stats["avgSocialCreditScore"] == 450.5


def test_missing_tables_raise_storage_error(tmp_path, clock):
    bare = WalletStore(f"sqlite:///{tmp_path / 'bare.db'}", clock=clock)
    with pytest.raises(StorageError):
        bare.get_wallet_intelligence(VALID_WALLET)
    bare.dispose()
