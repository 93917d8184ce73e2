"""Wallet collection from platform connections, admin entry, token analysis and CSV uploads."""

from backend_flutterai.ingestion.collector import (
    SOURCE_PRIORITY,
    CollectionOutcome,
    CsvUploadResult,
    WalletCollectionService,
    priority_for_source,
)
from backend_flutterai.ingestion.csv_parser import ParsedCsv, parse_wallet_csv

__all__ = [
    "SOURCE_PRIORITY",
    "CollectionOutcome",
    "CsvUploadResult",
    "ParsedCsv",
    "WalletCollectionService",
    "parse_wallet_csv",
    "priority_for_source",
]
