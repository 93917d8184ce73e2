"""
Tests for wallet collection: idempotent collect, metadata merge, source priorities, CSV batches.
"""

from __future__ import annotations

import pytest

from backend_flutterai.core.exceptions import DuplicateWalletError, InvalidWalletAddressError
from backend_flutterai.ingestion.collector import priority_for_source

VALID_WALLET = "9QCfNuQuxct1Xk9ytFYgxc5fThmTzL4pHQnSjjrVUrka"
VALID_WALLET_2 = "7F1WzVNQ1Qpurqxxdyv3UrFQR3uoNepULVW9A4bAJ5nZ"


def test_collect_twice_keeps_one_record_and_merges(collector, store):
    first = collector.collect(VALID_WALLET, "flutterbye_connect", user_id="u1", tags=["vip"])
    assert first.created is True
    assert first.queued is True

    second = collector.collect(VALID_WALLET, "perpetrader_connect", user_id="u2", tags=["vip", "trader"], notes="whale?")
    assert second.created is False
    assert second.queued is False

    rows, total = store.list_wallet_intelligence()
    assert total == 1
    wallet = rows[0]
    assert wallet["collectionSource"] == "flutterbye_connect"
    assert wallet["associatedUserId"] == "u1"
    assert wallet["tags"] == ["vip", "trader"]
    assert wallet["notes"] == "whale?"
    assert wallet["metadata"]["connectionCount"] == 2
    assert wallet["metadata"]["additionalSources"] == ["perpetrader_connect"]
    assert wallet["analysisStatus"] == "pending_analysis"
    # merge never re-enqueues
    assert len(store.list_analysis_queue(VALID_WALLET)) == 1


def test_merge_appends_admin_note(collector, store):
    collector.collect_manual_entry(VALID_WALLET, notes="first note")
    collector.collect_manual_entry(VALID_WALLET, notes="second note")
    wallet = store.get_wallet_intelligence(VALID_WALLET)
    assert wallet["notes"] == "first note\n\nAdmin Note: second note"


def test_merge_sets_user_only_when_unset(collector, store):
    collector.collect_from_flutterbye_connection(VALID_WALLET)
    collector.collect_from_flutterbye_connection(VALID_WALLET, user_id="late-user")
    collector.collect_from_flutterbye_connection(VALID_WALLET, user_id="other-user")
    wallet = store.get_wallet_intelligence(VALID_WALLET)
    assert wallet["associatedUserId"] == "late-user"
    assert wallet["metadata"]["connectionCount"] == 3
    assert "additionalSources" not in wallet["metadata"]


def test_duplicate_insert_race_takes_merge_path(collector, store, monkeypatch):
    """A racing writer inserts between lookup and create; collect merges instead of failing."""
    real_create = store.create_wallet_intelligence

    def racing_create(address, source, **fields):
        real_create(address, "manual_entry")
        raise DuplicateWalletError(address)

    monkeypatch.setattr(store, "create_wallet_intelligence", racing_create)
    outcome = collector.collect(VALID_WALLET, "flutterbye_connect")
    assert outcome.created is False
    wallet = store.get_wallet_intelligence(VALID_WALLET)
    assert wallet["collectionSource"] == "manual_entry"
    assert wallet["metadata"]["additionalSources"] == ["flutterbye_connect"]


@pytest.mark.parametrize(
    "source,priority",
    [
        ("manual_entry", 4),
        ("perpetrader_connect", 3),
        ("flutterbye_connect", 2),
        ("token_analysis", 2),
        ("automatic_collection_bonk_holders", 2),
        ("csv_upload", 1),
    ],
)
def test_source_priorities(collector, store, source, priority):
    assert priority_for_source(source) == priority
    collector.collect(VALID_WALLET, source)
    items = store.list_analysis_queue(VALID_WALLET)
    assert [i["priority"] for i in items] == [priority]


def test_unknown_source_rejected(collector):
    with pytest.raises(ValueError, match="Unknown collection source"):
        collector.collect(VALID_WALLET, "carrier_pigeon")


def test_manual_entry_validates_address(collector):
    with pytest.raises(InvalidWalletAddressError):
        collector.collect_manual_entry("   ")


def test_token_analysis_metadata(collector, store):
    collector.collect_from_token_analysis(VALID_WALLET, "BONK", {"holdingRank": 7})
    wallet = store.get_wallet_intelligence(VALID_WALLET)
    meta = wallet["metadata"]
    assert meta["tokenAnalysisSource"] == "BONK"
    assert meta["holdingRank"] == 7
    assert meta["collectionDate"].startswith("2023-11-14")
    assert meta["connectionCount"] == 1


def test_process_csv_upload_creates_batch(collector, store):
    collector.collect_manual_entry(VALID_WALLET_2)
    content = f"wallet,label\n{VALID_WALLET},a\nnot-a-wallet!,b\n{VALID_WALLET_2},c\n"

    result = collector.process_csv_upload(content, file_name="w.csv", batch_name="October", uploaded_by="admin")

    assert result.total_wallets == 2
    assert result.valid_wallets == 2
    assert result.new_wallets == 1
    assert result.existing_wallets == 1
    assert result.invalid_wallets == ["not-a-wallet!"]
    assert result.to_dict()["invalidCount"] == 1

    batch = store.get_wallet_batch(result.batch_id)
    assert batch["status"] == "completed"
    assert batch["processedWallets"] == 2
    assert batch["invalidWallets"] == 1

    new_wallet = store.get_wallet_intelligence(VALID_WALLET)
    assert new_wallet["collectionSource"] == "csv_upload"
    assert new_wallet["batchId"] == result.batch_id
    assert new_wallet["batchName"] == "October"
    assert [i["priority"] for i in store.list_analysis_queue(VALID_WALLET)] == [1]
    # existing manual wallet keeps its source and single queue item
    assert store.get_wallet_intelligence(VALID_WALLET_2)["collectionSource"] == "manual_entry"
    assert len(store.list_analysis_queue(VALID_WALLET_2)) == 1


def test_collection_stats(collector):
    collector.collect_manual_entry(VALID_WALLET)
    collector.collect_from_perpetrader_connection(VALID_WALLET_2)
    stats = collector.get_collection_stats()
    assert stats["totalWallets"] == 2
    assert stats["bySource"]["manual_entry"] == 1
    assert stats["bySource"]["perpetrader_connect"] == 1
    assert stats["byRiskLevel"]["unknown"] == 2
    assert stats["analysisStats"]["queued"] == 2
