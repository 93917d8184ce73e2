"""
FastAPI router: wallet collection, records, batches, analysis queue, stats and export.

All routes under /api/flutterai. Storage failures surface as StorageError and
are mapped to 500 by the app's exception handler.
"""

from __future__ import annotations

import csv
import io
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from fastapi.responses import JSONResponse, Response

from backend_flutterai.api_server.schemas import (
    CollectResponse,
    ConnectionWebhookRequest,
    ManualCollectRequest,
    ProcessQueueRequest,
    TokenAnalysisCollectRequest,
)
from backend_flutterai.api_server.services import ServiceContainer, get_services
from backend_flutterai.core.exceptions import BatchNotFoundError, WalletNotFoundError
from backend_flutterai.database.models import ANALYSIS_PENDING, PRIORITY_CRITICAL
from backend_flutterai.flutterai_logging import get_logger
from backend_flutterai.ingestion.collector import CollectionOutcome
from backend_flutterai.utils.wallet_utils import require_wallet_address

logger = get_logger(__name__)

router = APIRouter(prefix="/api/flutterai", tags=["flutterai-wallets"])

DEFAULT_PAGE_LIMIT = 50
MAX_PAGE_LIMIT = 500
EXPORT_FORMATS = ("json", "csv")
EXPORT_CSV_HEADER = [
    "Wallet Address",
    "Collection Source",
    "Social Credit Score",
    "Risk Level",
    "Trading Score",
    "Portfolio Score",
    "Liquidity Score",
    "Activity Score",
    "Last Analyzed",
    "Collection Date",
]


def _collect_response(outcome: CollectionOutcome, message_new: str) -> JSONResponse:
    address = outcome.wallet["walletAddress"]
    message = message_new if outcome.created else "Wallet already tracked; record updated"
    body = CollectResponse(
        message=message,
        wallet_address=address,
        created=outcome.created,
        queued=outcome.queued,
        wallet=outcome.wallet,
    )
    return JSONResponse(status_code=200, content=body.model_dump(by_alias=True))


def _iso(ts: int | None) -> str:
    if not ts:
        return ""
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


def _pagination(limit: int, offset: int, total: int) -> dict[str, Any]:
    return {"limit": limit, "offset": offset, "total": total, "hasMore": offset + limit < total}


# -----------------------------------------------------------------------------
# Collection
# -----------------------------------------------------------------------------


@router.post("/collect/manual")
def collect_manual(body: ManualCollectRequest, services: ServiceContainer = Depends(get_services)) -> JSONResponse:
    """Admin entry; new wallets are queued at critical priority."""
    outcome = services.collector.collect_manual_entry(
        body.wallet_address,
        requested_by=body.requested_by,
        tags=body.tags,
        notes=body.notes,
    )
    return _collect_response(outcome, "Wallet collected and queued for analysis")


@router.post("/collect/csv-upload")
def collect_csv_upload(
    csv_file: UploadFile | None = File(None, alias="csvFile", description="CSV with wallet addresses in the first column"),
    batch_name: str = Form("", alias="batchName"),
    uploaded_by: str | None = Form(None, alias="uploadedBy"),
    services: ServiceContainer = Depends(get_services),
) -> dict[str, Any]:
    """
    Bulk upload. Strict base58 check per row; invalid rows are reported, not fatal.
    Valid addresses are collected into a new batch at low priority.
    """
    if csv_file is None or not csv_file.filename:
        raise HTTPException(status_code=400, detail="CSV file is required")
    if not batch_name.strip():
        raise HTTPException(status_code=400, detail="Batch name is required")

    max_bytes = services.settings.max_csv_bytes
    raw = csv_file.file.read(max_bytes + 1)
    if len(raw) > max_bytes:
        raise HTTPException(status_code=400, detail=f"CSV file exceeds {max_bytes} bytes")
    try:
        text = raw.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise HTTPException(status_code=400, detail="CSV file must be UTF-8 text") from e

    result = services.collector.process_csv_upload(
        text,
        file_name=csv_file.filename,
        batch_name=batch_name.strip(),
        uploaded_by=uploaded_by,
    )
    return {
        "success": True,
        "message": f"Processed {result.valid_wallets} wallets into batch {batch_name.strip()}",
        **result.to_dict(),
    }


@router.post("/collect/flutterbye-webhook")
def collect_flutterbye_webhook(
    body: ConnectionWebhookRequest,
    services: ServiceContainer = Depends(get_services),
) -> JSONResponse:
    outcome = services.collector.collect_from_flutterbye_connection(body.wallet_address, body.user_id)
    return _collect_response(outcome, "FlutterBye wallet collected")


@router.post("/collect/perpetrader-webhook")
def collect_perpetrader_webhook(
    body: ConnectionWebhookRequest,
    services: ServiceContainer = Depends(get_services),
) -> JSONResponse:
    outcome = services.collector.collect_from_perpetrader_connection(body.wallet_address, body.user_id)
    return _collect_response(outcome, "PerpeTrader wallet collected")


@router.post("/collect/token-analysis")
def collect_token_analysis(
    body: TokenAnalysisCollectRequest,
    services: ServiceContainer = Depends(get_services),
) -> JSONResponse:
    outcome = services.collector.collect_from_token_analysis(body.wallet_address, body.token_source, body.metadata)
    return _collect_response(outcome, "Token analysis wallet collected")


# -----------------------------------------------------------------------------
# Wallet records
# -----------------------------------------------------------------------------


@router.get("/wallets")
def list_wallets(
    risk_level: str | None = Query(None, alias="riskLevel"),
    source: str | None = Query(None),
    limit: int = Query(DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT),
    offset: int = Query(0, ge=0),
    services: ServiceContainer = Depends(get_services),
) -> dict[str, Any]:
    wallets, total = services.store.list_wallet_intelligence(
        risk_level=risk_level,
        source=source,
        limit=limit,
        offset=offset,
    )
    return {"success": True, "wallets": wallets, "pagination": _pagination(limit, offset, total)}


@router.get("/wallets/search")
def search_wallets(
    q: str = Query("", description="Substring of address, segment, batch name or notes"),
    limit: int = Query(DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT),
    services: ServiceContainer = Depends(get_services),
) -> dict[str, Any]:
    if not q.strip():
        raise HTTPException(status_code=400, detail="Search query is required")
    wallets = services.store.search_wallet_intelligence(q, limit=limit)
    return {"success": True, "query": q.strip(), "wallets": wallets, "count": len(wallets)}


@router.get("/wallets/{wallet_address}")
def get_wallet(wallet_address: str, services: ServiceContainer = Depends(get_services)) -> dict[str, Any]:
    wallet = services.store.get_wallet_intelligence(wallet_address)
    if wallet is None:
        raise WalletNotFoundError(wallet_address)
    return {"success": True, "wallet": wallet}


@router.delete("/wallets/{wallet_address}")
def delete_wallet(wallet_address: str, services: ServiceContainer = Depends(get_services)) -> dict[str, Any]:
    if not services.store.delete_wallet_intelligence(wallet_address):
        raise WalletNotFoundError(wallet_address)
    return {"success": True, "message": "Wallet deleted", "walletAddress": wallet_address}


# -----------------------------------------------------------------------------
# Batches
# -----------------------------------------------------------------------------


@router.get("/batches")
def list_batches(
    limit: int = Query(25, ge=1, le=MAX_PAGE_LIMIT),
    offset: int = Query(0, ge=0),
    services: ServiceContainer = Depends(get_services),
) -> dict[str, Any]:
    batches, total = services.store.list_wallet_batches(limit=limit, offset=offset)
    return {"success": True, "batches": batches, "pagination": _pagination(limit, offset, total)}


@router.get("/batches/{batch_id}")
def get_batch(batch_id: str, services: ServiceContainer = Depends(get_services)) -> dict[str, Any]:
    batch = services.store.get_wallet_batch(batch_id)
    if batch is None:
        raise BatchNotFoundError(batch_id)
    wallets, _ = services.store.list_wallet_intelligence(batch_id=batch_id)
    return {"success": True, "batch": batch, "wallets": wallets}


# -----------------------------------------------------------------------------
# Analysis queue
# -----------------------------------------------------------------------------


@router.post("/analyze/{wallet_address}")
def queue_wallet_analysis(wallet_address: str, services: ServiceContainer = Depends(get_services)) -> dict[str, Any]:
    """Re-queue an already collected wallet at critical priority."""
    address = require_wallet_address(wallet_address)
    if services.store.get_wallet_intelligence(address) is None:
        raise WalletNotFoundError(address)
    item = services.store.add_to_analysis_queue(
        address,
        PRIORITY_CRITICAL,
        max_attempts=services.settings.queue_max_attempts,
    )
    services.store.update_wallet_intelligence(address, {"analysis_status": ANALYSIS_PENDING, "analysis_error": None})
    return {"success": True, "message": "Wallet queued for analysis", "queueItem": item}


@router.post("/process-queue")
def process_queue(
    body: ProcessQueueRequest | None = None,
    services: ServiceContainer = Depends(get_services),
) -> dict[str, Any]:
    batch_size = body.batch_size if body is not None else services.settings.queue_batch_size
    summary = services.processor.process_queue(batch_size)
    return {
        "success": True,
        "summary": summary.to_dict(),
        "queueStats": services.store.get_analysis_queue_stats(),
    }


@router.get("/queue-status")
def queue_status(services: ServiceContainer = Depends(get_services)) -> dict[str, Any]:
    return {"success": True, "queueStats": services.store.get_analysis_queue_stats()}


@router.get("/stats")
def collection_stats(services: ServiceContainer = Depends(get_services)) -> dict[str, Any]:
    return {"success": True, "stats": services.collector.get_collection_stats()}


# -----------------------------------------------------------------------------
# Export
# -----------------------------------------------------------------------------


@router.get("/export", response_model=None)
def export_wallets(
    fmt: str = Query("json", alias="format"),
    risk_level: str | None = Query(None, alias="riskLevel"),
    source: str | None = Query(None),
    services: ServiceContainer = Depends(get_services),
) -> Response | dict[str, Any]:
    export_format = fmt.strip().lower()
    if export_format not in EXPORT_FORMATS:
        raise HTTPException(status_code=400, detail="Unsupported export format; use json or csv")
    wallets, total = services.store.list_wallet_intelligence(risk_level=risk_level, source=source)
    logger.info("wallets_exported", format=export_format, count=total)

    if export_format == "json":
        return {"success": True, "wallets": wallets, "count": total}

    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(EXPORT_CSV_HEADER)
    for w in wallets:
        writer.writerow(
            [
                w["walletAddress"],
                w["collectionSource"],
                w["socialCreditScore"],
                w["riskLevel"],
                w["tradingBehaviorScore"],
                w["portfolioQualityScore"],
                w["liquidityScore"],
                w["activityScore"],
                _iso(w["lastAnalyzed"]),
                _iso(w["collectedAt"]),
            ]
        )
    return Response(
        content=buf.getvalue(),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="flutterai-wallets.csv"'},
    )
