"""
Database layer: wallet intelligence records, analysis queue and CSV batches.

SQLAlchemy models with a swappable URL (SQLite by default, PostgreSQL via
FLUTTERAI_DB_URL / DATABASE_URL). All access goes through WalletStore.
"""

from backend_flutterai.database.models import (
    AnalysisQueueItem,
    Base,
    WalletBatch,
    WalletIntelligence,
)
from backend_flutterai.database.storage import WalletStore

__all__ = [
    "AnalysisQueueItem",
    "Base",
    "WalletBatch",
    "WalletIntelligence",
    "WalletStore",
]
