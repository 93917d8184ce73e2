"""
Request/response models for the FlutterAI API.

Field names are snake_case in Python and camelCase on the wire.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from backend_flutterai.utils.wallet_utils import MAX_WALLET_LENGTH


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ManualCollectRequest(CamelModel):
    """POST /collect/manual body."""

    wallet_address: str = Field(..., min_length=1, max_length=MAX_WALLET_LENGTH, description="Solana wallet address")
    tags: list[str] = Field(default_factory=list, description="Tags appended to the record")
    notes: str | None = Field(None, max_length=4000, description="Admin note")
    requested_by: str | None = Field(None, max_length=64, description="Admin user id")


class ConnectionWebhookRequest(CamelModel):
    """POST /collect/flutterbye-webhook and /collect/perpetrader-webhook body."""

    wallet_address: str = Field(..., min_length=1, max_length=MAX_WALLET_LENGTH)
    user_id: str | None = Field(None, max_length=64, description="Platform user that connected the wallet")


class TokenAnalysisCollectRequest(CamelModel):
    """POST /collect/token-analysis body."""

    wallet_address: str = Field(..., min_length=1, max_length=MAX_WALLET_LENGTH)
    token_source: str = Field(..., min_length=1, max_length=128, description="Token or analysis that surfaced the wallet")
    metadata: dict[str, Any] | None = Field(None, description="Extra fields stored in the record metadata")


class ProcessQueueRequest(CamelModel):
    """POST /process-queue body."""

    batch_size: int = Field(10, ge=1, le=100, description="Max queue items to process")


class BatchAnalyzeRequest(CamelModel):
    """POST /intelligence/batch-analyze body."""

    wallet_addresses: list[str] = Field(..., min_length=1, max_length=100)


class CollectResponse(CamelModel):
    success: bool = True
    message: str
    wallet_address: str
    created: bool = Field(..., description="True if a new record was created")
    queued: bool = Field(..., description="True if the wallet was queued for analysis")
    wallet: dict[str, Any] = Field(default_factory=dict)
