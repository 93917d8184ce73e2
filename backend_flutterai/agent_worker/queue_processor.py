"""
Batch orchestrator: drain the analysis queue.

Per claimed item: wallet -> processing, score, write results, item ->
completed. Any failure after the claim increments attempts; the item returns
to queued until attempts reaches max_attempts, then it and its wallet are
marked failed. Items left in processing longer than stale_after_sec (a run
that died mid-item) go through the same failure path at the start of the
next run.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable

from backend_flutterai.analysis_engine.wallet_scoring import WalletScoringService
from backend_flutterai.core.exceptions import WalletNotFoundError
from backend_flutterai.database.models import (
    ANALYSIS_FAILED,
    ANALYSIS_PENDING,
    ANALYSIS_PROCESSING,
    QUEUE_COMPLETED,
    QUEUE_FAILED,
    QUEUE_QUEUED,
)
from backend_flutterai.database.storage import WalletStore
from backend_flutterai.flutterai_logging import bind_wallet, get_logger

logger = get_logger(__name__)

DEFAULT_BATCH_SIZE = 10
DEFAULT_STALE_AFTER_SEC = 600.0
STALE_ERROR_MESSAGE = "Analysis did not finish; processing timed out"


@dataclass
class QueueRunSummary:
    claimed: int = 0
    completed: int = 0
    requeued: int = 0
    failed: int = 0
    recovered: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "claimed": self.claimed,
            "completed": self.completed,
            "requeued": self.requeued,
            "failed": self.failed,
            "recovered": self.recovered,
        }


class QueueProcessor:
    def __init__(
        self,
        store: WalletStore,
        scoring_service: WalletScoringService,
        *,
        clock: Callable[[], float] = time.time,
        stale_after_sec: float = DEFAULT_STALE_AFTER_SEC,
    ) -> None:
        self._store = store
        self._scoring = scoring_service
        self._clock = clock
        self._stale_after_sec = stale_after_sec

    def process_queue(self, max_batch_size: int = DEFAULT_BATCH_SIZE) -> QueueRunSummary:
        """Recover stale claims, then claim and process up to max_batch_size items, highest priority first."""
        summary = QueueRunSummary(recovered=self.recover_stale_items())
        for _ in range(max(0, max_batch_size)):
            item = self._store.get_next_queued_analysis()
            if item is None:
                break
            summary.claimed += 1
            outcome = self._process_item(item)
            if outcome == QUEUE_COMPLETED:
                summary.completed += 1
            elif outcome == QUEUE_QUEUED:
                summary.requeued += 1
            else:
                summary.failed += 1
        logger.info("queue_run_done", **summary.to_dict())
        return summary

    def recover_stale_items(self) -> int:
        """Count an attempt against every item stuck in processing past the cutoff; requeue or fail it."""
        cutoff = int(self._clock() - self._stale_after_sec)
        stale = self._store.list_stale_processing(cutoff)
        for item in stale:
            self._handle_failure(item, STALE_ERROR_MESSAGE)
        if stale:
            logger.warning("queue_stale_items_recovered", count=len(stale), cutoff=cutoff)
        return len(stale)

    def _process_item(self, item: dict[str, Any]) -> str:
        queue_id = item["id"]
        log = bind_wallet(item["walletAddress"], __name__)
        try:
            self._store.update_wallet_intelligence(item["walletAddress"], {"analysis_status": ANALYSIS_PROCESSING})
        except WalletNotFoundError:
            # Record deleted after enqueue; nothing to analyze
            self._store.update_analysis_queue_status(queue_id, QUEUE_FAILED, error_message="Wallet not found")
            log.warning("queue_item_wallet_missing", queue_id=queue_id)
            return QUEUE_FAILED
        except Exception as e:
            return self._handle_failure(item, str(e) or type(e).__name__)

        try:
            result = self._scoring.score_wallet(item["walletAddress"])
            self._store.update_wallet_intelligence(item["walletAddress"], result.to_record_updates())
            self._store.update_analysis_queue_status(queue_id, QUEUE_COMPLETED)
        except Exception as e:
            return self._handle_failure(item, str(e) or type(e).__name__)

        log.info("queue_item_completed", queue_id=queue_id, score=result.scores.social_credit_score)
        return QUEUE_COMPLETED

    def _handle_failure(self, item: dict[str, Any], message: str) -> str:
        queue_id = item["id"]
        address = item["walletAddress"]
        log = bind_wallet(address, __name__)
        attempts = int(item["attempts"]) + 1
        exhausted = attempts >= int(item["maxAttempts"])
        status = QUEUE_FAILED if exhausted else QUEUE_QUEUED

        self._store.update_analysis_queue_status(queue_id, status, attempts=attempts, error_message=message)
        try:
            self._store.update_wallet_intelligence(
                address,
                {
                    "analysis_status": ANALYSIS_FAILED if exhausted else ANALYSIS_PENDING,
                    "analysis_error": message,
                },
            )
        except WalletNotFoundError:
            log.warning("queue_item_wallet_missing", queue_id=queue_id)

        log.warning(
            "queue_item_failed" if exhausted else "queue_item_requeued",
            queue_id=queue_id,
            attempts=attempts,
            max_attempts=item["maxAttempts"],
            error=message,
        )
        return status
