"""
Pytest tests for the FlutterAI HTTP API (FastAPI TestClient over injected services).
"""

from __future__ import annotations

import io

from backend_flutterai.core.exceptions import StorageError

E2E_WALLET = "4xY2D8F3nQ9sM1pR6tZ5bV7wX0aH8cJ2kL4mN7oP9qS3uT"
VALID_WALLET = "9QCfNuQuxct1Xk9ytFYgxc5fThmTzL4pHQnSjjrVUrka"
VALID_WALLET_2 = "7F1WzVNQ1Qpurqxxdyv3UrFQR3uoNepULVW9A4bAJ5nZ"
BASE = "/api/flutterai"


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


def test_manual_collect_then_process_queue(client):
    r = client.post(f"{BASE}/collect/manual", json={"walletAddress": E2E_WALLET, "tags": ["vip"], "requestedBy": "admin"})
    assert r.status_code == 200
    data = r.json()
    assert data["success"] is True
    assert data["created"] is True
    assert data["queued"] is True
    assert data["walletAddress"] == E2E_WALLET

    r = client.post(f"{BASE}/process-queue", json={"batchSize": 1})
    assert r.status_code == 200
    assert r.json()["summary"]["completed"] == 1

    r = client.get(f"{BASE}/wallets/{E2E_WALLET}")
    assert r.status_code == 200
    wallet = r.json()["wallet"]
    assert wallet["analysisStatus"] == "completed"
    assert 0 <= wallet["socialCreditScore"] <= 1000


def test_manual_collect_twice_is_idempotent(client):
    client.post(f"{BASE}/collect/manual", json={"walletAddress": VALID_WALLET})
    r = client.post(f"{BASE}/collect/manual", json={"walletAddress": VALID_WALLET, "notes": "again"})
    assert r.status_code == 200
    assert r.json()["created"] is False
    r = client.get(f"{BASE}/wallets")
    assert r.json()["pagination"]["total"] == 1


def test_validation_errors_are_400(client):
    r = client.post(f"{BASE}/collect/manual", json={})
    assert r.status_code == 400
    assert r.json()["success"] is False
    assert "walletAddress" in r.json()["error"]

    r = client.post(f"{BASE}/collect/manual", json={"walletAddress": "has space"})
    assert r.status_code == 400

    r = client.post(f"{BASE}/process-queue", json={"batchSize": 0})
    assert r.status_code == 400


def test_webhooks_and_token_analysis(client, store):
    r = client.post(f"{BASE}/collect/flutterbye-webhook", json={"walletAddress": VALID_WALLET, "userId": "u1"})
    assert r.status_code == 200
    r = client.post(f"{BASE}/collect/perpetrader-webhook", json={"walletAddress": VALID_WALLET_2})
    assert r.status_code == 200
    r = client.post(
        f"{BASE}/collect/token-analysis",
        json={"walletAddress": E2E_WALLET, "tokenSource": "BONK", "metadata": {"rank": 1}},
    )
    assert r.status_code == 200
    assert store.get_wallet_intelligence(VALID_WALLET)["associatedUserId"] == "u1"
    assert store.get_wallet_intelligence(E2E_WALLET)["metadata"]["tokenAnalysisSource"] == "BONK"
    priorities = {i["walletAddress"]: i["priority"] for i in store.list_analysis_queue()}
    assert priorities == {VALID_WALLET: 2, VALID_WALLET_2: 3, E2E_WALLET: 2}


def test_csv_upload(client):
    content = f"wallet,label\n{VALID_WALLET},a\nnot-a-wallet!,b\n{VALID_WALLET_2},c\n".encode()
    r = client.post(
        f"{BASE}/collect/csv-upload",
        files={"csvFile": ("wallets.csv", io.BytesIO(content), "text/csv")},
        data={"batchName": "October"},
    )
    assert r.status_code == 200
    data = r.json()
    assert data["totalWallets"] == 2
    assert data["validWallets"] == 2
    assert data["invalidWallets"] == ["not-a-wallet!"]
    assert data["invalidCount"] == 1
    assert data["newWallets"] == 2

    r = client.get(f"{BASE}/batches/{data['batchId']}")
    assert r.status_code == 200
    assert r.json()["batch"]["status"] == "completed"
    assert len(r.json()["wallets"]) == 2

    r = client.get(f"{BASE}/batches")
    assert r.json()["pagination"]["total"] == 1


def test_csv_upload_rejects_bad_requests(client):
    r = client.post(f"{BASE}/collect/csv-upload", data={"batchName": "x"})
    assert r.status_code == 400
    assert r.json()["error"] == "CSV file is required"

    r = client.post(
        f"{BASE}/collect/csv-upload",
        files={"csvFile": ("w.csv", io.BytesIO(VALID_WALLET.encode()), "text/csv")},
        data={"batchName": "  "},
    )
    assert r.status_code == 400
    assert r.json()["error"] == "Batch name is required"

    r = client.post(
        f"{BASE}/collect/csv-upload",
        files={"csvFile": ("w.csv", io.BytesIO(b"\xff\xfe\x00bad"), "text/csv")},
        data={"batchName": "b"},
    )
    assert r.status_code == 400


def test_wallet_not_found_and_delete(client):
    r = client.get(f"{BASE}/wallets/{VALID_WALLET}")
    assert r.status_code == 404
    assert r.json() == {"success": False, "error": "Wallet not found"}

    client.post(f"{BASE}/collect/manual", json={"walletAddress": VALID_WALLET})
    r = client.delete(f"{BASE}/wallets/{VALID_WALLET}")
    assert r.status_code == 200
    r = client.delete(f"{BASE}/wallets/{VALID_WALLET}")
    assert r.status_code == 404
    assert client.get(f"{BASE}/batches/nope").status_code == 404


def test_search(client):
    client.post(f"{BASE}/collect/manual", json={"walletAddress": VALID_WALLET, "notes": "conference lead"})
    r = client.get(f"{BASE}/wallets/search", params={"q": "conference"})
    assert r.status_code == 200
    assert r.json()["count"] == 1
    assert client.get(f"{BASE}/wallets/search").status_code == 400


def test_analyze_requires_collected_wallet(client, store):
    r = client.post(f"{BASE}/analyze/{VALID_WALLET}")
    assert r.status_code == 404

    client.post(f"{BASE}/collect/flutterbye-webhook", json={"walletAddress": VALID_WALLET})
    r = client.post(f"{BASE}/analyze/{VALID_WALLET}")
    assert r.status_code == 200
    assert r.json()["queueItem"]["priority"] == 4
    assert len(store.list_analysis_queue(VALID_WALLET)) == 1


def test_queue_status_and_stats(client):
    client.post(f"{BASE}/collect/manual", json={"walletAddress": VALID_WALLET})
    r = client.get(f"{BASE}/queue-status")
    assert r.json()["queueStats"]["queued"] == 1
    r = client.get(f"{BASE}/stats")
    assert r.json()["stats"]["totalWallets"] == 1
    assert r.json()["stats"]["bySource"]["manual_entry"] == 1


def test_export_json_and_csv(client):
    client.post(f"{BASE}/collect/manual", json={"walletAddress": VALID_WALLET})
    client.post(f"{BASE}/process-queue", json={})

    r = client.get(f"{BASE}/export", params={"format": "json"})
    assert r.status_code == 200
    assert r.json()["count"] == 1

    r = client.get(f"{BASE}/export", params={"format": "csv"})
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/csv")
    lines = r.text.strip().split("\n")
    assert lines[0] == (
        "Wallet Address,Collection Source,Social Credit Score,Risk Level,Trading Score,"
        "Portfolio Score,Liquidity Score,Activity Score,Last Analyzed,Collection Date"
    )
    assert lines[1].startswith(f"{VALID_WALLET},manual_entry,")

    assert client.get(f"{BASE}/export", params={"format": "xml"}).status_code == 400


def test_intelligence_analyze_upserts(client, store):
    r = client.post(f"{BASE}/intelligence/analyze/{VALID_WALLET}")
    assert r.status_code == 200
    data = r.json()
    assert data["analysis"]["walletAddress"] == VALID_WALLET
    assert store.get_wallet_intelligence(VALID_WALLET)["analysisStatus"] == "completed"

    r = client.post(f"{BASE}/intelligence/analyze/{VALID_WALLET}")
    assert r.status_code == 200
    assert store.list_wallet_intelligence()[1] == 1

    r = client.get(f"{BASE}/intelligence/{VALID_WALLET}/marketing")
    assert r.status_code == 200
    profile = r.json()
    assert profile["marketingSegment"] == "defi_native"
    assert profile["recommendations"]["targetAudience"] == "defi power users"
    assert profile["recommendations"]["preferredChannels"] == ["email"]

    assert client.get(f"{BASE}/intelligence/{VALID_WALLET_2}/marketing").status_code == 404


def test_intelligence_batch_analyze(client):
    r = client.post(
        f"{BASE}/intelligence/batch-analyze",
        json={"walletAddresses": [VALID_WALLET, "bad address", VALID_WALLET_2]},
    )
    assert r.status_code == 200
    data = r.json()
    assert data["storedCount"] == 2
    assert data["summary"]["analyzed"] == 2
    assert data["summary"]["failed"] == 1
    assert [e["success"] for e in data["results"]] == [True, False, True]

    assert client.post(f"{BASE}/intelligence/batch-analyze", json={"walletAddresses": []}).status_code == 400
    too_many = [VALID_WALLET] * 101
    assert client.post(f"{BASE}/intelligence/batch-analyze", json={"walletAddresses": too_many}).status_code == 400


def test_storage_failure_is_500(client, store, monkeypatch):
    def broken(*args, **kwargs):
        raise StorageError("Storage operation failed: OperationalError")

    monkeypatch.setattr(store, "get_wallet_intelligence", broken)
    r = client.get(f"{BASE}/wallets/{VALID_WALLET}")
    assert r.status_code == 500
    assert r.json()["success"] is False

    r = client.post(f"{BASE}/intelligence/analyze/{VALID_WALLET}")
    assert r.status_code == 500


def test_reanalyze_resets_completed_status(client, store):
    client.post(f"{BASE}/collect/manual", json={"walletAddress": VALID_WALLET})
    client.post(f"{BASE}/process-queue", json={})
    assert store.get_wallet_intelligence(VALID_WALLET)["analysisStatus"] == "completed"

    r = client.post(f"{BASE}/analyze/{VALID_WALLET}")
    assert r.status_code == 200
    assert store.get_wallet_intelligence(VALID_WALLET)["analysisStatus"] == "pending_analysis"

    client.post(f"{BASE}/process-queue", json={})
    assert store.get_wallet_intelligence(VALID_WALLET)["analysisStatus"] == "completed"
