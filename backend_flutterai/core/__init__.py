"""Core primitives shared across packages: domain exceptions."""

from backend_flutterai.core.exceptions import (
    BatchNotFoundError,
    DuplicateWalletError,
    FlutterAIError,
    InvalidWalletAddressError,
    StorageError,
    TextGenerationError,
    WalletNotFoundError,
)

__all__ = [
    "BatchNotFoundError",
    "DuplicateWalletError",
    "FlutterAIError",
    "InvalidWalletAddressError",
    "StorageError",
    "TextGenerationError",
    "WalletNotFoundError",
]
