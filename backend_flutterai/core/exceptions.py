"""
Application-level exceptions.

Domain exceptions with an HTTP status code so the API layer can map them to
consistent JSON error responses; workers catch them like any other error.
"""

from __future__ import annotations


class FlutterAIError(Exception):
    """Base class for all FlutterAI domain errors."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidWalletAddressError(FlutterAIError):
    status_code = 400


class WalletNotFoundError(FlutterAIError):
    status_code = 404

    def __init__(self, wallet_address: str) -> None:
        super().__init__("Wallet not found")
        self.wallet_address = wallet_address


class BatchNotFoundError(FlutterAIError):
    status_code = 404

    def __init__(self, batch_id: str) -> None:
        super().__init__("Batch not found")
        self.batch_id = batch_id


class DuplicateWalletError(FlutterAIError):
    """Insert hit the unique index on wallet_address; the record already exists."""

    status_code = 409

    def __init__(self, wallet_address: str) -> None:
        super().__init__(f"Wallet already collected: {wallet_address}")
        self.wallet_address = wallet_address


class TextGenerationError(FlutterAIError):
    """External text-generation call failed or returned nothing usable."""

    status_code = 502


class StorageError(FlutterAIError):
    """Persistence layer failure (wraps SQLAlchemy errors)."""

    status_code = 500
