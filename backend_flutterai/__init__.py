"""
Backend FlutterAI: wallet intelligence service for Solana addresses.

Collects wallet addresses from platform connections, manual entry and CSV
uploads, queues them for analysis, and computes a deterministic social credit
score with advisory AI labels. Modular architecture with clear separation
between ingestion, analysis engine, storage, API server and agent worker.
"""

__version__ = "0.1.0"
