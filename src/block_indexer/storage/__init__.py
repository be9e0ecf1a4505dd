"""
Storage module for indexer persistence.

Provides database abstraction for block, index and chain-state persistence.
Uses SQLite for simplicity and correctness.
"""

from .database import Database
from .namespaces import (
    AddressNamespace,
    BlockNamespace,
    ChainStateNamespace,
    HeightIndexNamespace,
    TransactionNamespace,
)
from .sqlite import SQLiteDatabase

__all__ = [
    "Database",
    "SQLiteDatabase",
    "AddressNamespace",
    "BlockNamespace",
    "ChainStateNamespace",
    "HeightIndexNamespace",
    "TransactionNamespace",
]
