"""
SQLAlchemy models for wallet intelligence, the analysis queue and CSV batches.

Rows are converted to camelCase dicts with to_dict() inside the session so
callers never hold detached ORM instances.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import JSON, Column, Float, Integer, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()

# Collection sources
SOURCE_FLUTTERBYE = "flutterbye_connect"
SOURCE_PERPETRADER = "perpetrader_connect"
SOURCE_MANUAL = "manual_entry"
SOURCE_CSV = "csv_upload"
SOURCE_TOKEN_ANALYSIS = "token_analysis"
SOURCE_AUTOMATIC_PREFIX = "automatic_collection_"

KNOWN_SOURCES = (
    SOURCE_FLUTTERBYE,
    SOURCE_PERPETRADER,
    SOURCE_MANUAL,
    SOURCE_CSV,
    SOURCE_TOKEN_ANALYSIS,
)

# Risk levels
RISK_LOW = "low"
RISK_MEDIUM = "medium"
RISK_HIGH = "high"
RISK_CRITICAL = "critical"
RISK_UNKNOWN = "unknown"
RISK_LEVELS = (RISK_LOW, RISK_MEDIUM, RISK_HIGH, RISK_CRITICAL, RISK_UNKNOWN)

# Wallet analysis status
ANALYSIS_PENDING = "pending_analysis"
ANALYSIS_PROCESSING = "processing"
ANALYSIS_COMPLETED = "completed"
ANALYSIS_FAILED = "failed"

# Queue item status
QUEUE_QUEUED = "queued"
QUEUE_PROCESSING = "processing"
QUEUE_COMPLETED = "completed"
QUEUE_FAILED = "failed"
QUEUE_STATUSES = (QUEUE_QUEUED, QUEUE_PROCESSING, QUEUE_COMPLETED, QUEUE_FAILED)

# Queue priorities (higher is served first)
PRIORITY_LOW = 1
PRIORITY_MEDIUM = 2
PRIORITY_HIGH = 3
PRIORITY_CRITICAL = 4

BATCH_PROCESSING = "processing"
BATCH_COMPLETED = "completed"


def is_known_source(source: str) -> bool:
    return source in KNOWN_SOURCES or source.startswith(SOURCE_AUTOMATIC_PREFIX)


class WalletIntelligence(Base):
    """One row per wallet address: scores, marketing labels and collection provenance."""

    __tablename__ = "wallet_intelligence"

    id = Column(Integer, primary_key=True, autoincrement=True)
    wallet_address = Column(String(64), unique=True, nullable=False, index=True)
    blockchain = Column(String(32), nullable=False, default="solana")
    network = Column(String(32), nullable=True)

    trading_behavior_score = Column(Float, nullable=False, default=0.0)
    portfolio_quality_score = Column(Float, nullable=False, default=0.0)
    liquidity_score = Column(Float, nullable=False, default=0.0)
    activity_score = Column(Float, nullable=False, default=0.0)
    defi_engagement_score = Column(Float, nullable=False, default=0.0)
    social_credit_score = Column(Integer, nullable=False, default=0, index=True)
    risk_level = Column(String(16), nullable=False, default=RISK_UNKNOWN, index=True)

    marketing_segment = Column(String(64), nullable=True, index=True)
    communication_style = Column(String(64), nullable=True)
    preferred_token_types = Column(JSON, nullable=True)
    risk_tolerance = Column(String(32), nullable=True)
    investment_profile = Column(String(64), nullable=True)
    trading_frequency = Column(String(32), nullable=True)
    portfolio_size = Column(String(32), nullable=True)
    influence_score = Column(Float, nullable=True)
    social_connections = Column(Integer, nullable=True)
    marketing_insights = Column(JSON, nullable=True)
    analysis_data = Column(JSON, nullable=True)

    analysis_status = Column(String(32), nullable=False, default=ANALYSIS_PENDING, index=True)
    analysis_error = Column(Text, nullable=True)

    collection_source = Column(String(64), nullable=False, index=True)
    collected_by = Column(String(64), nullable=True)
    associated_user_id = Column(String(64), nullable=True)
    batch_id = Column(String(32), nullable=True, index=True)
    batch_name = Column(String(128), nullable=True)
    tags = Column(JSON, nullable=True)
    notes = Column(Text, nullable=True)
    extra_metadata = Column("metadata", JSON, nullable=True)

    collected_at = Column(Integer, nullable=False)  # Unix
    last_analyzed = Column(Integer, nullable=True)
    updated_at = Column(Integer, nullable=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "walletAddress": self.wallet_address,
            "blockchain": self.blockchain,
            "network": self.network,
            "tradingBehaviorScore": self.trading_behavior_score,
            "portfolioQualityScore": self.portfolio_quality_score,
            "liquidityScore": self.liquidity_score,
            "activityScore": self.activity_score,
            "defiEngagementScore": self.defi_engagement_score,
            "socialCreditScore": self.social_credit_score,
            "riskLevel": self.risk_level,
            "marketingSegment": self.marketing_segment,
            "communicationStyle": self.communication_style,
            "preferredTokenTypes": list(self.preferred_token_types or []),
            "riskTolerance": self.risk_tolerance,
            "investmentProfile": self.investment_profile,
            "tradingFrequency": self.trading_frequency,
            "portfolioSize": self.portfolio_size,
            "influenceScore": self.influence_score,
            "socialConnections": self.social_connections,
            "marketingInsights": self.marketing_insights or {},
            "analysisData": self.analysis_data or {},
            "analysisStatus": self.analysis_status,
            "analysisError": self.analysis_error,
            "collectionSource": self.collection_source,
            "collectedBy": self.collected_by,
            "associatedUserId": self.associated_user_id,
            "batchId": self.batch_id,
            "batchName": self.batch_name,
            "tags": list(self.tags or []),
            "notes": self.notes,
            "metadata": dict(self.extra_metadata or {}),
            "collectedAt": self.collected_at,
            "lastAnalyzed": self.last_analyzed,
            "updatedAt": self.updated_at,
        }


class AnalysisQueueItem(Base):
    """A request to (re-)analyze a wallet. queued -> processing -> completed | queued | failed."""

    __tablename__ = "analysis_queue"

    id = Column(Integer, primary_key=True, autoincrement=True)
    wallet_address = Column(String(64), nullable=False, index=True)
    priority = Column(Integer, nullable=False, default=PRIORITY_MEDIUM, index=True)
    status = Column(String(16), nullable=False, default=QUEUE_QUEUED, index=True)
    attempts = Column(Integer, nullable=False, default=0)
    max_attempts = Column(Integer, nullable=False, default=3)
    batch_id = Column(String(32), nullable=True, index=True)
    requested_by = Column(String(64), nullable=True)
    error_message = Column(Text, nullable=True)
    created_at = Column(Integer, nullable=False, index=True)
    updated_at = Column(Integer, nullable=False)
    started_at = Column(Integer, nullable=True)
    completed_at = Column(Integer, nullable=True)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "walletAddress": self.wallet_address,
            "priority": self.priority,
            "status": self.status,
            "attempts": self.attempts,
            "maxAttempts": self.max_attempts,
            "batchId": self.batch_id,
            "requestedBy": self.requested_by,
            "errorMessage": self.error_message,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "startedAt": self.started_at,
            "completedAt": self.completed_at,
        }


class WalletBatch(Base):
    """One row per CSV upload."""

    __tablename__ = "wallet_batches"

    id = Column(String(32), primary_key=True)
    batch_name = Column(String(128), nullable=False)
    uploaded_by = Column(String(64), nullable=True)
    file_name = Column(String(256), nullable=True)
    total_wallets = Column(Integer, nullable=False, default=0)
    processed_wallets = Column(Integer, nullable=False, default=0)
    invalid_wallets = Column(Integer, nullable=False, default=0)
    status = Column(String(16), nullable=False, default=BATCH_PROCESSING)
    created_at = Column(Integer, nullable=False, index=True)
    updated_at = Column(Integer, nullable=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "batchName": self.batch_name,
            "uploadedBy": self.uploaded_by,
            "fileName": self.file_name,
            "totalWallets": self.total_wallets,
            "processedWallets": self.processed_wallets,
            "invalidWallets": self.invalid_wallets,
            "status": self.status,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
