"""
Periodic queue runner.

run_periodic_queue_worker(): drains the analysis queue every interval_sec.
Started by the FastAPI lifespan in a background thread when the queue worker
is enabled; never blocks the API.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass

from backend_flutterai.agent_worker.queue_processor import DEFAULT_BATCH_SIZE, QueueProcessor
from backend_flutterai.flutterai_logging import get_logger

logger = get_logger(__name__)

DEFAULT_QUEUE_INTERVAL_SEC = 60.0
SHUTDOWN_JOIN_TIMEOUT_SEC = 15.0


@dataclass
class QueueRunnerConfig:
    interval_sec: float = DEFAULT_QUEUE_INTERVAL_SEC
    batch_size: int = DEFAULT_BATCH_SIZE


def run_periodic_queue_worker(
    config: QueueRunnerConfig,
    processor: QueueProcessor,
    stop_event: threading.Event,
) -> None:
    """
    Every interval_sec, process up to batch_size queued items. Runs until
    stop_event is set. A failing tick is logged and the loop continues.
    """
    interval = max(1.0, config.interval_sec)
    logger.info("queue_runner_started", interval_sec=interval, batch_size=config.batch_size)
    tick_count = 0
    while not stop_event.is_set():
        tick_start = time.monotonic()
        tick_count += 1
        try:
            summary = processor.process_queue(config.batch_size)
            if summary.claimed == 0:
                logger.debug("queue_tick_empty", tick=tick_count)
            else:
                logger.info("queue_tick_done", tick=tick_count, **summary.to_dict())
        except Exception as e:
            logger.exception("queue_tick_failed", tick=tick_count, error=str(e))
        # Wake at least once a second to check stop_event
        deadline = tick_start + interval
        while not stop_event.is_set() and time.monotonic() < deadline:
            stop_event.wait(timeout=min(1.0, max(0, deadline - time.monotonic())))
    logger.info("queue_runner_stopped", tick_count=tick_count)
