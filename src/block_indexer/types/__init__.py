"""Reusable type definitions for the indexer."""

from .base import IndexerModel, StrictBaseModel
from .exceptions import (
    ChainStateError,
    IndexerError,
    NodeAbortedError,
    ServiceError,
    SnapshotError,
    StorageError,
    UnknownParentError,
)
from .hash import BlockHash

__all__ = [
    # Core types
    "BlockHash",
    "IndexerModel",
    "StrictBaseModel",
    # Exceptions
    "ChainStateError",
    "IndexerError",
    "NodeAbortedError",
    "ServiceError",
    "SnapshotError",
    "StorageError",
    "UnknownParentError",
]
