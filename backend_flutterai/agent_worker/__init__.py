"""Analysis queue processing and the periodic background runner."""

from backend_flutterai.agent_worker.queue_processor import QueueProcessor, QueueRunSummary
from backend_flutterai.agent_worker.runner import (
    SHUTDOWN_JOIN_TIMEOUT_SEC,
    QueueRunnerConfig,
    run_periodic_queue_worker,
)

__all__ = [
    "SHUTDOWN_JOIN_TIMEOUT_SEC",
    "QueueProcessor",
    "QueueRunSummary",
    "QueueRunnerConfig",
    "run_periodic_queue_worker",
]
