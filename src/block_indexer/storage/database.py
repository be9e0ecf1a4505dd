"""
Abstract database interface for indexer storage.

Defines the Protocol that all database implementations must follow.
Uses structural subtyping for flexibility.
"""

from __future__ import annotations

from contextlib import AbstractContextManager
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from block_indexer.chain import ChainSnapshot
    from block_indexer.containers import Block
    from block_indexer.types import BlockHash


class Database(Protocol):
    """
    Protocol for indexer storage.

    All database implementations must provide these methods.
    Uses structural subtyping - any class with matching methods satisfies the protocol.

    Storage Organization
    --------------------
    - Blocks: Indexed by hash, stored with their height
    - Height index: Canonical hash at each height
    - Transactions: Containing block per transaction
    - Addresses: Transactions touching each address
    - Chain state: Singleton snapshot of the chain-state manager

    Writes made inside `transaction()` are committed together or not at all.
    Writes made outside it are committed immediately.
    """

    def transaction(self) -> AbstractContextManager[None]:
        """
        Group writes into one atomic unit.

        Nested use joins the outermost transaction.
        """
        ...

    # -------------------------------------------------------------------------
    # Block Operations
    # -------------------------------------------------------------------------

    def get_block(self, block_hash: BlockHash) -> Block | None:
        """
        Retrieve a block by hash.

        Returns:
            Block if found, None otherwise.
        """
        ...

    def put_block(self, block: Block, height: int) -> None:
        """Store a block with the height it was confirmed at."""
        ...

    def delete_block(self, block_hash: BlockHash) -> None:
        """Remove a block. Missing blocks are ignored."""
        ...

    def has_block(self, block_hash: BlockHash) -> bool:
        """Check if a block exists in storage."""
        ...

    # -------------------------------------------------------------------------
    # Height Index Operations
    # -------------------------------------------------------------------------

    def get_hash_by_height(self, height: int) -> BlockHash | None:
        """Canonical block hash at a height, or None."""
        ...

    def put_hash_by_height(self, height: int, block_hash: BlockHash) -> None:
        """Record the canonical block at a height."""
        ...

    def delete_height(self, height: int) -> None:
        """Remove the canonical entry at a height."""
        ...

    def get_indexed_height(self) -> int | None:
        """Highest height in the index, or None while it is empty."""
        ...

    # -------------------------------------------------------------------------
    # Transaction Index Operations
    # -------------------------------------------------------------------------

    def get_transaction_block(self, txid: str) -> BlockHash | None:
        """Most recently indexed block containing a transaction, or None."""
        ...

    def put_transaction(self, txid: str, block_hash: BlockHash) -> None:
        """Record the block containing a transaction."""
        ...

    def delete_transaction(self, txid: str, block_hash: BlockHash) -> None:
        """Remove one block's record of a transaction."""
        ...

    # -------------------------------------------------------------------------
    # Address Index Operations
    # -------------------------------------------------------------------------

    def get_address_txids(self, address: str) -> list[str]:
        """Confirmed transactions touching an address, sorted by txid."""
        ...

    def put_address_txid(self, address: str, txid: str, block_hash: BlockHash) -> None:
        """Link an address to a transaction confirmed in `block_hash`."""
        ...

    def delete_address_txid(self, address: str, txid: str, block_hash: BlockHash) -> None:
        """Drop the link contributed by `block_hash`."""
        ...

    # -------------------------------------------------------------------------
    # Chain State
    # -------------------------------------------------------------------------

    def get_chain_snapshot(self) -> ChainSnapshot | None:
        """
        Retrieve the persisted chain state.

        Returns:
            The snapshot, or None if the chain state was never saved.
        """
        ...

    def put_chain_snapshot(self, snapshot: ChainSnapshot) -> None:
        """Replace the persisted chain state."""
        ...

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def close(self) -> None:
        """Close database connection and release resources."""
        ...
