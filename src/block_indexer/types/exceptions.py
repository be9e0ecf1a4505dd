"""Exception hierarchy for the indexer."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .hash import BlockHash


class IndexerError(Exception):
    """
    Base exception for all indexer errors.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r})"


class ChainStateError(IndexerError):
    """Base class for chain-state bookkeeping errors."""


class UnknownParentError(ChainStateError):
    """
    Raised when a block is proposed before its parent is connected.

    This is a caller contract violation: the orchestrator must check
    `has_data(prev_hash)` before proposing.

    Attributes:
        block_hash: The block that was proposed.
        prev_hash: Its unresolved parent.
    """

    def __init__(self, block_hash: BlockHash, prev_hash: BlockHash) -> None:
        self.block_hash = block_hash
        self.prev_hash = prev_hash
        super().__init__(f"Block {block_hash.hex()} proposed with unknown parent {prev_hash.hex()}")


class SnapshotError(ChainStateError):
    """Raised when a persisted chain snapshot is internally inconsistent."""


class ServiceError(IndexerError):
    """
    Raised when an indexing service cannot confirm or unconfirm a block.

    Attributes:
        operation: Either "confirm" or "unconfirm".
        block_hash: The block being applied or rolled back.
    """

    def __init__(self, operation: str, block_hash: BlockHash, detail: str) -> None:
        self.operation = operation
        self.block_hash = block_hash
        self.detail = detail
        super().__init__(f"{operation} of {block_hash.hex()} failed: {detail}")


class StorageError(IndexerError):
    """Raised when the storage layer rejects a write or holds corrupt data."""


class NodeAbortedError(IndexerError):
    """
    Raised by `Node.run()` after a fatal fault stopped the node.

    The causing error is chained as `__cause__` and kept as `reason`.
    """

    def __init__(self, reason: BaseException) -> None:
        self.reason = reason
        super().__init__(f"Node aborted: {reason!r}")
