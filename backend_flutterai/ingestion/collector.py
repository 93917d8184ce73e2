"""
Wallet collection: record addresses from every source and queue them for analysis.

New addresses get a pending_analysis record and a queue item at the source's
priority. Addresses already stored are merged (connection count, extra
sources, user, tags, notes) and are neither re-scored nor re-queued. The
unique index on wallet_address decides races: a DuplicateWalletError on
insert takes the merge path.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

from backend_flutterai.core.exceptions import DuplicateWalletError, WalletNotFoundError
from backend_flutterai.database.models import (
    PRIORITY_CRITICAL,
    PRIORITY_HIGH,
    PRIORITY_LOW,
    PRIORITY_MEDIUM,
    SOURCE_AUTOMATIC_PREFIX,
    SOURCE_CSV,
    SOURCE_FLUTTERBYE,
    SOURCE_MANUAL,
    SOURCE_PERPETRADER,
    SOURCE_TOKEN_ANALYSIS,
    BATCH_COMPLETED,
    is_known_source,
)
from backend_flutterai.database.storage import DEFAULT_MAX_ATTEMPTS, WalletStore
from backend_flutterai.flutterai_logging import bind_wallet, get_logger
from backend_flutterai.ingestion.csv_parser import parse_wallet_csv
from backend_flutterai.utils.wallet_utils import require_wallet_address

logger = get_logger(__name__)

SOURCE_PRIORITY: dict[str, int] = {
    SOURCE_MANUAL: PRIORITY_CRITICAL,
    SOURCE_PERPETRADER: PRIORITY_HIGH,
    SOURCE_FLUTTERBYE: PRIORITY_MEDIUM,
    SOURCE_TOKEN_ANALYSIS: PRIORITY_MEDIUM,
    SOURCE_CSV: PRIORITY_LOW,
}

ADMIN_NOTE_PREFIX = "Admin Note: "


def priority_for_source(source: str) -> int:
    if source.startswith(SOURCE_AUTOMATIC_PREFIX):
        return PRIORITY_MEDIUM
    return SOURCE_PRIORITY.get(source, PRIORITY_MEDIUM)


@dataclass
class CollectionOutcome:
    created: bool
    queued: bool
    wallet: dict[str, Any]


@dataclass
class CsvUploadResult:
    batch_id: str
    total_wallets: int
    valid_wallets: int
    invalid_wallets: list[str] = field(default_factory=list)
    new_wallets: int = 0
    existing_wallets: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "batchId": self.batch_id,
            "totalWallets": self.total_wallets,
            "validWallets": self.valid_wallets,
            "invalidWallets": list(self.invalid_wallets),
            "invalidCount": len(self.invalid_wallets),
            "newWallets": self.new_wallets,
            "existingWallets": self.existing_wallets,
        }


def _merge_tags(existing: list[str], extra: list[str] | None) -> list[str]:
    merged = list(existing)
    for tag in extra or []:
        tag = str(tag).strip()
        if tag and tag not in merged:
            merged.append(tag)
    return merged


class WalletCollectionService:
    def __init__(
        self,
        store: WalletStore,
        *,
        clock: Callable[[], float] = time.time,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> None:
        self._store = store
        self._clock = clock
        self._max_attempts = max_attempts

    def collect(
        self,
        wallet_address: str,
        source: str,
        *,
        requested_by: str | None = None,
        user_id: str | None = None,
        tags: list[str] | None = None,
        notes: str | None = None,
        metadata: dict[str, Any] | None = None,
        batch_id: str | None = None,
        batch_name: str | None = None,
    ) -> CollectionOutcome:
        """
        Record wallet_address from source. Creates and enqueues when new,
        merges into the existing record otherwise. Idempotent per address.
        """
        if not is_known_source(source):
            raise ValueError(f"Unknown collection source: {source}")

        existing = self._store.get_wallet_intelligence(wallet_address)
        if existing is None:
            fields: dict[str, Any] = {"metadata": {"connectionCount": 1, **(metadata or {})}}
            if requested_by:
                fields["collected_by"] = requested_by
            if user_id:
                fields["associated_user_id"] = user_id
            if tags:
                fields["tags"] = _merge_tags([], tags)
            if notes:
                fields["notes"] = notes
            if batch_id:
                fields["batch_id"] = batch_id
            if batch_name:
                fields["batch_name"] = batch_name
            try:
                wallet = self._store.create_wallet_intelligence(wallet_address, source, **fields)
            except DuplicateWalletError:
                # Lost the insert race; the other writer's record wins and we merge into it
                existing = self._store.get_wallet_intelligence(wallet_address)
                if existing is None:
                    raise
            else:
                self._store.add_to_analysis_queue(
                    wallet_address,
                    priority_for_source(source),
                    batch_id=batch_id,
                    requested_by=requested_by,
                    max_attempts=self._max_attempts,
                )
                bind_wallet(wallet_address, __name__).info("wallet_collected", source=source)
                return CollectionOutcome(created=True, queued=True, wallet=wallet)

        wallet = self._merge(existing, source, user_id=user_id, tags=tags, notes=notes, metadata=metadata)
        return CollectionOutcome(created=False, queued=False, wallet=wallet)

    def _merge(
        self,
        existing: dict[str, Any],
        source: str,
        *,
        user_id: str | None,
        tags: list[str] | None,
        notes: str | None,
        metadata: dict[str, Any] | None,
    ) -> dict[str, Any]:
        address = existing["walletAddress"]
        log = bind_wallet(address, __name__)
        meta = dict(existing.get("metadata") or {})
        for key, value in (metadata or {}).items():
            if key not in ("connectionCount", "additionalSources"):
                meta[key] = value
        meta["connectionCount"] = int(meta.get("connectionCount") or 1) + 1
        additional = list(meta.get("additionalSources") or [])
        if source != existing["collectionSource"] and source not in additional:
            additional.append(source)
        if additional:
            meta["additionalSources"] = additional

        updates: dict[str, Any] = {"metadata": meta}
        if user_id and not existing.get("associatedUserId"):
            updates["associated_user_id"] = user_id
        if tags:
            updates["tags"] = _merge_tags(existing.get("tags") or [], tags)
        if notes:
            prior = existing.get("notes")
            updates["notes"] = f"{prior}\n\n{ADMIN_NOTE_PREFIX}{notes}" if prior else notes

        try:
            wallet = self._store.update_wallet_intelligence(address, updates)
        except WalletNotFoundError:
            log.warning("wallet_merge_target_deleted")
            raise
        log.info("wallet_collection_merged", source=source, connection_count=meta["connectionCount"])
        return wallet

    def collect_manual_entry(
        self,
        wallet_address: str,
        *,
        requested_by: str | None = None,
        tags: list[str] | None = None,
        notes: str | None = None,
    ) -> CollectionOutcome:
        return self.collect(
            require_wallet_address(wallet_address),
            SOURCE_MANUAL,
            requested_by=requested_by,
            tags=tags,
            notes=notes,
        )

    def collect_from_flutterbye_connection(self, wallet_address: str, user_id: str | None = None) -> CollectionOutcome:
        return self.collect(require_wallet_address(wallet_address), SOURCE_FLUTTERBYE, user_id=user_id)

    def collect_from_perpetrader_connection(self, wallet_address: str, user_id: str | None = None) -> CollectionOutcome:
        return self.collect(require_wallet_address(wallet_address), SOURCE_PERPETRADER, user_id=user_id)

    def collect_from_token_analysis(
        self,
        wallet_address: str,
        token_source: str,
        metadata: dict[str, Any] | None = None,
    ) -> CollectionOutcome:
        collected_on = datetime.fromtimestamp(self._clock(), tz=timezone.utc).isoformat()
        meta = {"tokenAnalysisSource": token_source, "collectionDate": collected_on, **(metadata or {})}
        return self.collect(require_wallet_address(wallet_address), SOURCE_TOKEN_ANALYSIS, metadata=meta)

    def process_csv_upload(
        self,
        content: str,
        *,
        file_name: str | None,
        batch_name: str,
        uploaded_by: str | None = None,
    ) -> CsvUploadResult:
        """Parse, create the batch, collect every valid address, then mark the batch completed."""
        parsed = parse_wallet_csv(content)
        batch = self._store.create_wallet_batch(
            batch_name,
            uploaded_by=uploaded_by,
            file_name=file_name,
            total_wallets=len(parsed.valid),
            invalid_wallets=len(parsed.invalid),
        )
        batch_id = batch["id"]
        logger.info(
            "csv_upload_parsed",
            batch_id=batch_id,
            valid=len(parsed.valid),
            invalid=len(parsed.invalid),
        )

        new_wallets = 0
        existing_wallets = 0
        for address in parsed.valid:
            outcome = self.collect(
                address,
                SOURCE_CSV,
                requested_by=uploaded_by,
                batch_id=batch_id,
                batch_name=batch_name,
            )
            if outcome.created:
                new_wallets += 1
            else:
                existing_wallets += 1

        processed = new_wallets + existing_wallets
        self._store.update_wallet_batch(
            batch_id,
            {"processed_wallets": processed, "status": BATCH_COMPLETED},
        )
        logger.info("csv_upload_done", batch_id=batch_id, new=new_wallets, existing=existing_wallets)
        return CsvUploadResult(
            batch_id=batch_id,
            total_wallets=len(parsed.valid),
            valid_wallets=processed,
            invalid_wallets=parsed.invalid,
            new_wallets=new_wallets,
            existing_wallets=existing_wallets,
        )

    def get_collection_stats(self) -> dict[str, Any]:
        return self._store.get_collection_stats()
