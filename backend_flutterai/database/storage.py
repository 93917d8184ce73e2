"""
FlutterAI storage: SQLAlchemy-backed wallet intelligence, analysis queue and batches.

Uses any SQLAlchemy URL (PostgreSQL in production, SQLite by default and in
tests). One WalletStore per process, constructed explicitly and injected into
services; the clock is injectable so tests control timestamps.

Uniqueness of wallet_address is enforced by the database: a racing insert
surfaces as DuplicateWalletError and callers treat it as "already exists".
"""

from __future__ import annotations

import time
import uuid
from contextlib import contextmanager
from typing import Any, Callable, Iterator

from sqlalchemy import create_engine, func, or_
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from backend_flutterai.config.env import mask_database_url
from backend_flutterai.core.exceptions import (
    BatchNotFoundError,
    DuplicateWalletError,
    StorageError,
    WalletNotFoundError,
)
from backend_flutterai.database.models import (
    ANALYSIS_COMPLETED,
    ANALYSIS_PENDING,
    BATCH_PROCESSING,
    KNOWN_SOURCES,
    PRIORITY_MEDIUM,
    QUEUE_COMPLETED,
    QUEUE_FAILED,
    QUEUE_PROCESSING,
    QUEUE_QUEUED,
    QUEUE_STATUSES,
    RISK_LEVELS,
    RISK_UNKNOWN,
    AnalysisQueueItem,
    Base,
    WalletBatch,
    WalletIntelligence,
)
from backend_flutterai.flutterai_logging import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_SEARCH_LIMIT = 50

# Columns callers may set through update_wallet_intelligence / create_wallet_intelligence.
# "metadata" maps to the extra_metadata attribute (reserved name on declarative models).
_WALLET_UPDATABLE = {
    "blockchain",
    "network",
    "trading_behavior_score",
    "portfolio_quality_score",
    "liquidity_score",
    "activity_score",
    "defi_engagement_score",
    "social_credit_score",
    "risk_level",
    "marketing_segment",
    "communication_style",
    "preferred_token_types",
    "risk_tolerance",
    "investment_profile",
    "trading_frequency",
    "portfolio_size",
    "influence_score",
    "social_connections",
    "marketing_insights",
    "analysis_data",
    "analysis_status",
    "analysis_error",
    "collection_source",
    "collected_by",
    "associated_user_id",
    "batch_id",
    "batch_name",
    "tags",
    "notes",
    "metadata",
    "last_analyzed",
}
_BATCH_UPDATABLE = {"batch_name", "total_wallets", "processed_wallets", "invalid_wallets", "status"}


def _attr_name(key: str) -> str:
    return "extra_metadata" if key == "metadata" else key


def _check_keys(updates: dict[str, Any], allowed: set[str]) -> None:
    unknown = set(updates) - allowed
    if unknown:
        raise ValueError(f"Unknown fields: {', '.join(sorted(unknown))}")


class WalletStore:
    """Persistence for WalletIntelligence, AnalysisQueueItem and WalletBatch rows."""

    def __init__(
        self,
        database_url: str,
        *,
        clock: Callable[[], float] = time.time,
        engine: Engine | None = None,
    ) -> None:
        self._url = database_url
        self._clock = clock
        if engine is None:
            connect_args: dict[str, Any] = {}
            if database_url.startswith("sqlite"):
                connect_args["check_same_thread"] = False
            engine = create_engine(database_url, connect_args=connect_args, pool_pre_ping=True)
        self._engine = engine
        self._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=self._engine)
        logger.info("wallet_store_engine", url=mask_database_url(database_url))

    @property
    def engine(self) -> Engine:
        return self._engine

    def _now(self) -> int:
        return int(self._clock())

    @contextmanager
    def _session_scope(self) -> Iterator[Session]:
        """Single session; commits on success, rolls back on error. IntegrityError passes through."""
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except IntegrityError:
            session.rollback()
            raise
        except SQLAlchemyError as e:
            session.rollback()
            logger.exception("wallet_store_session_failed", error=str(e))
            raise StorageError(f"Storage operation failed: {e.__class__.__name__}") from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def init_db(self) -> None:
        """Create tables if they do not exist. Safe to call on every startup."""
        try:
            Base.metadata.create_all(bind=self._engine)
        except SQLAlchemyError as e:
            logger.exception("wallet_store_init_db_failed", error=str(e))
            raise StorageError("Failed to initialize database") from e
        logger.info("wallet_store_init_db", url=mask_database_url(self._url))

    def dispose(self) -> None:
        self._engine.dispose()

    # ------------------------------------------------------------------
    # Wallet intelligence
    # ------------------------------------------------------------------

    def get_wallet_intelligence(self, wallet_address: str) -> dict[str, Any] | None:
        with self._session_scope() as session:
            row = (
                session.query(WalletIntelligence)
                .filter(WalletIntelligence.wallet_address == wallet_address)
                .first()
            )
            return row.to_dict() if row else None

    def create_wallet_intelligence(
        self,
        wallet_address: str,
        collection_source: str,
        **fields: Any,
    ) -> dict[str, Any]:
        """
        Insert a new record with empty scores and analysis_status=pending_analysis.
        Raises DuplicateWalletError when the address is already stored.
        """
        _check_keys(fields, _WALLET_UPDATABLE)
        now = self._now()
        try:
            with self._session_scope() as session:
                row = WalletIntelligence(
                    wallet_address=wallet_address,
                    collection_source=collection_source,
                    blockchain="solana",
                    risk_level=RISK_UNKNOWN,
                    analysis_status=ANALYSIS_PENDING,
                    social_credit_score=0,
                    trading_behavior_score=0.0,
                    portfolio_quality_score=0.0,
                    liquidity_score=0.0,
                    activity_score=0.0,
                    defi_engagement_score=0.0,
                    collected_at=now,
                    updated_at=now,
                )
                for key, value in fields.items():
                    setattr(row, _attr_name(key), value)
                session.add(row)
                session.flush()
                result = row.to_dict()
        except IntegrityError as e:
            logger.info("wallet_already_exists", wallet_id=wallet_address)
            raise DuplicateWalletError(wallet_address) from e
        logger.info("wallet_intelligence_created", wallet_id=wallet_address, source=collection_source)
        return result

    def update_wallet_intelligence(self, wallet_address: str, updates: dict[str, Any]) -> dict[str, Any]:
        """Apply column updates (snake_case keys) and bump updated_at. Raises WalletNotFoundError."""
        _check_keys(updates, _WALLET_UPDATABLE)
        with self._session_scope() as session:
            row = (
                session.query(WalletIntelligence)
                .filter(WalletIntelligence.wallet_address == wallet_address)
                .first()
            )
            if row is None:
                raise WalletNotFoundError(wallet_address)
            for key, value in updates.items():
                setattr(row, _attr_name(key), value)
            row.updated_at = self._now()
            session.flush()
            return row.to_dict()

    def delete_wallet_intelligence(self, wallet_address: str) -> bool:
        with self._session_scope() as session:
            deleted = (
                session.query(WalletIntelligence)
                .filter(WalletIntelligence.wallet_address == wallet_address)
                .delete(synchronize_session=False)
            )
        if deleted:
            logger.info("wallet_intelligence_deleted", wallet_id=wallet_address)
        return bool(deleted)

    def list_wallet_intelligence(
        self,
        *,
        risk_level: str | None = None,
        source: str | None = None,
        min_score: int | None = None,
        max_score: int | None = None,
        marketing_segment: str | None = None,
        batch_id: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> tuple[list[dict[str, Any]], int]:
        """Return (page of records, total matching) ordered by collection order."""
        with self._session_scope() as session:
            q = session.query(WalletIntelligence)
            if risk_level:
                q = q.filter(WalletIntelligence.risk_level == risk_level)
            if source:
                q = q.filter(WalletIntelligence.collection_source == source)
            if min_score is not None:
                q = q.filter(WalletIntelligence.social_credit_score >= min_score)
            if max_score is not None:
                q = q.filter(WalletIntelligence.social_credit_score <= max_score)
            if marketing_segment:
                q = q.filter(WalletIntelligence.marketing_segment == marketing_segment)
            if batch_id:
                q = q.filter(WalletIntelligence.batch_id == batch_id)
            total = q.count()
            q = q.order_by(WalletIntelligence.id).offset(max(0, offset))
            if limit is not None:
                q = q.limit(limit)
            return [r.to_dict() for r in q.all()], total

    def search_wallet_intelligence(self, query: str, *, limit: int = DEFAULT_SEARCH_LIMIT) -> list[dict[str, Any]]:
        pattern = f"%{query.strip()}%"
        with self._session_scope() as session:
            rows = (
                session.query(WalletIntelligence)
                .filter(
                    or_(
                        WalletIntelligence.wallet_address.ilike(pattern),
                        WalletIntelligence.marketing_segment.ilike(pattern),
                        WalletIntelligence.batch_name.ilike(pattern),
                        WalletIntelligence.notes.ilike(pattern),
                    )
                )
                .order_by(WalletIntelligence.id)
                .limit(limit)
                .all()
            )
            return [r.to_dict() for r in rows]

    # ------------------------------------------------------------------
    # Batches
    # ------------------------------------------------------------------

    def create_wallet_batch(
        self,
        batch_name: str,
        *,
        uploaded_by: str | None = None,
        file_name: str | None = None,
        total_wallets: int = 0,
        invalid_wallets: int = 0,
    ) -> dict[str, Any]:
        now = self._now()
        with self._session_scope() as session:
            row = WalletBatch(
                id=uuid.uuid4().hex,
                batch_name=batch_name,
                uploaded_by=uploaded_by,
                file_name=file_name,
                total_wallets=total_wallets,
                processed_wallets=0,
                invalid_wallets=invalid_wallets,
                status=BATCH_PROCESSING,
                created_at=now,
                updated_at=now,
            )
            session.add(row)
            session.flush()
            result = row.to_dict()
        logger.info("wallet_batch_created", batch_id=result["id"], total_wallets=total_wallets)
        return result

    def update_wallet_batch(self, batch_id: str, updates: dict[str, Any]) -> dict[str, Any]:
        _check_keys(updates, _BATCH_UPDATABLE)
        with self._session_scope() as session:
            row = session.get(WalletBatch, batch_id)
            if row is None:
                raise BatchNotFoundError(batch_id)
            for key, value in updates.items():
                setattr(row, key, value)
            row.updated_at = self._now()
            session.flush()
            return row.to_dict()

    def get_wallet_batch(self, batch_id: str) -> dict[str, Any] | None:
        with self._session_scope() as session:
            row = session.get(WalletBatch, batch_id)
            return row.to_dict() if row else None

    def list_wallet_batches(self, *, limit: int = 25, offset: int = 0) -> tuple[list[dict[str, Any]], int]:
        with self._session_scope() as session:
            q = session.query(WalletBatch)
            total = q.count()
            rows = (
                q.order_by(WalletBatch.created_at.desc(), WalletBatch.id)
                .offset(max(0, offset))
                .limit(limit)
                .all()
            )
            return [r.to_dict() for r in rows], total

    # ------------------------------------------------------------------
    # Analysis queue
    # ------------------------------------------------------------------

    def add_to_analysis_queue(
        self,
        wallet_address: str,
        priority: int = PRIORITY_MEDIUM,
        *,
        batch_id: str | None = None,
        requested_by: str | None = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> dict[str, Any]:
        """
        Enqueue a wallet. If a queued item already exists for the address its
        priority is raised to max(old, new) instead of adding a second item.
        """
        now = self._now()
        with self._session_scope() as session:
            existing = (
                session.query(AnalysisQueueItem)
                .filter(
                    AnalysisQueueItem.wallet_address == wallet_address,
                    AnalysisQueueItem.status == QUEUE_QUEUED,
                )
                .order_by(AnalysisQueueItem.id)
                .first()
            )
            if existing is not None:
                if priority > existing.priority:
                    existing.priority = priority
                    existing.updated_at = now
                if requested_by and not existing.requested_by:
                    existing.requested_by = requested_by
                session.flush()
                logger.debug(
                    "analysis_queue_item_merged",
                    wallet_id=wallet_address,
                    queue_id=existing.id,
                    priority=existing.priority,
                )
                return existing.to_dict()
            item = AnalysisQueueItem(
                wallet_address=wallet_address,
                priority=priority,
                status=QUEUE_QUEUED,
                attempts=0,
                max_attempts=max(1, max_attempts),
                batch_id=batch_id,
                requested_by=requested_by,
                created_at=now,
                updated_at=now,
            )
            session.add(item)
            session.flush()
            result = item.to_dict()
        logger.info("analysis_queue_item_added", wallet_id=wallet_address, queue_id=result["id"], priority=priority)
        return result

    def get_next_queued_analysis(self) -> dict[str, Any] | None:
        """
        Claim the highest-priority, oldest queued item and mark it processing.
        Returns the claimed item or None when the queue is empty.
        """
        now = self._now()
        with self._session_scope() as session:
            item = (
                session.query(AnalysisQueueItem)
                .filter(AnalysisQueueItem.status == QUEUE_QUEUED)
                .order_by(
                    AnalysisQueueItem.priority.desc(),
                    AnalysisQueueItem.created_at,
                    AnalysisQueueItem.id,
                )
                .with_for_update(skip_locked=True)
                .first()
            )
            if item is None:
                return None
            item.status = QUEUE_PROCESSING
            item.started_at = now
            item.updated_at = now
            session.flush()
            return item.to_dict()

    def list_stale_processing(self, started_before: int) -> list[dict[str, Any]]:
        """Items left in processing whose claim started before the cutoff (unix seconds)."""
        with self._session_scope() as session:
            rows = (
                session.query(AnalysisQueueItem)
                .filter(
                    AnalysisQueueItem.status == QUEUE_PROCESSING,
                    or_(AnalysisQueueItem.started_at.is_(None), AnalysisQueueItem.started_at < started_before),
                )
                .order_by(AnalysisQueueItem.id)
                .all()
            )
            return [r.to_dict() for r in rows]

    def get_analysis_queue_item(self, queue_id: int) -> dict[str, Any] | None:
        with self._session_scope() as session:
            item = session.get(AnalysisQueueItem, queue_id)
            return item.to_dict() if item else None

    def list_analysis_queue(self, wallet_address: str | None = None) -> list[dict[str, Any]]:
        with self._session_scope() as session:
            q = session.query(AnalysisQueueItem)
            if wallet_address:
                q = q.filter(AnalysisQueueItem.wallet_address == wallet_address)
            return [r.to_dict() for r in q.order_by(AnalysisQueueItem.id).all()]

    def update_analysis_queue_status(
        self,
        queue_id: int,
        status: str,
        *,
        attempts: int | None = None,
        error_message: str | None = None,
    ) -> dict[str, Any]:
        if status not in QUEUE_STATUSES:
            raise ValueError(f"Unknown queue status: {status}")
        now = self._now()
        with self._session_scope() as session:
            item = session.get(AnalysisQueueItem, queue_id)
            if item is None:
                raise StorageError(f"Analysis queue item {queue_id} not found")
            item.status = status
            item.updated_at = now
            if attempts is not None:
                item.attempts = attempts
            if error_message is not None:
                item.error_message = error_message
            if status in (QUEUE_COMPLETED, QUEUE_FAILED):
                item.completed_at = now
            session.flush()
            return item.to_dict()

    def get_analysis_queue_stats(self) -> dict[str, int]:
        stats = {status: 0 for status in QUEUE_STATUSES}
        with self._session_scope() as session:
            rows = (
                session.query(AnalysisQueueItem.status, func.count(AnalysisQueueItem.id))
                .group_by(AnalysisQueueItem.status)
                .all()
            )
        for status, count in rows:
            stats[status] = int(count)
        return stats

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def get_collection_stats(self) -> dict[str, Any]:
        """Totals by collection source and risk level, queue stats and average score of analyzed wallets."""
        by_source: dict[str, int] = {source: 0 for source in KNOWN_SOURCES}
        by_risk: dict[str, int] = {level: 0 for level in RISK_LEVELS}
        with self._session_scope() as session:
            total = session.query(func.count(WalletIntelligence.id)).scalar() or 0
            for source, count in (
                session.query(WalletIntelligence.collection_source, func.count(WalletIntelligence.id))
                .group_by(WalletIntelligence.collection_source)
                .all()
            ):
                by_source[source] = int(count)
            for level, count in (
                session.query(WalletIntelligence.risk_level, func.count(WalletIntelligence.id))
                .group_by(WalletIntelligence.risk_level)
                .all()
            ):
                by_risk[level] = int(count)
            avg_score = (
                session.query(func.avg(WalletIntelligence.social_credit_score))
                .filter(WalletIntelligence.analysis_status == ANALYSIS_COMPLETED)
                .scalar()
            )
        return {
            "totalWallets": int(total),
            "bySource": by_source,
            "byRiskLevel": by_risk,
            "analysisStats": self.get_analysis_queue_stats(),
            "avgSocialCreditScore": round(float(avg_score), 1) if avg_score is not None else 0.0,
        }
