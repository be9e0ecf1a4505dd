"""
Block service: the canonical block index and the head of the service chain.

Service Chain
-------------
The node only talks to the block service. The block service forwards each
call to the services that depend on it::

    confirm:    block -> transaction -> address
    unconfirm:  address -> transaction -> block

Dependents see a block only after the block index holds it, and lose it
before the block index does. Every call runs inside one database
transaction, so a failure anywhere in the chain leaves no partial writes.

Ordering Guard
--------------
The canonical index only grows and shrinks at its top:

- A confirmed block must sit directly on the indexed tip.
- An unconfirmed block must be the indexed tip.

Anything else means the caller broke the unconfirm-then-confirm ordering,
and the call fails with `ServiceError`.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Sequence
from dataclasses import dataclass, field

from block_indexer.chain import BlockChain
from block_indexer.containers import Block
from block_indexer.storage import Database
from block_indexer.types import BlockHash, ServiceError, StorageError

from .base import IndexService

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class StorageBlockService:
    """Block service backed by a `Database`."""

    database: Database
    """Storage for blocks, the canonical index and the chain state."""

    dependents: Sequence[IndexService] = field(default_factory=tuple)
    """Services confirmed after, and unconfirmed before, the block index."""

    # -------------------------------------------------------------------------
    # Chain state
    # -------------------------------------------------------------------------

    async def get_blockchain(self) -> BlockChain | None:
        """
        Load the chain state, reconciled with the canonical index.

        The index is authoritative. A snapshot whose tip is not the indexed
        tip is stale, and the chain is rebuilt from the indexed blocks.
        """
        snapshot = self.database.get_chain_snapshot()
        top = self.database.get_indexed_height()
        if top is None:
            if snapshot is not None:
                logger.warning("Ignoring saved chain state: the block index is empty")
            return None

        indexed_tip = self.database.get_hash_by_height(top)
        if snapshot is not None:
            chain = BlockChain.from_snapshot(snapshot)
            if chain.tip == indexed_tip:
                logger.info(
                    "Loaded chain state: tip %s at height %d (%d blocks)",
                    chain.tip.short(),
                    chain.tip_height,
                    len(chain),
                )
                return chain
            logger.warning(
                "Saved chain tip %s at height %d does not match indexed height %d, rebuilding",
                chain.tip.short(),
                chain.tip_height,
                top,
            )
        else:
            logger.warning("No saved chain state for %d indexed blocks, rebuilding", top + 1)

        return self._rebuild_from_index(top)

    def _rebuild_from_index(self, top: int) -> BlockChain:
        """Chain holding exactly the canonical blocks at heights 0..top."""
        chain = BlockChain()
        for height in range(top + 1):
            block_hash = self.database.get_hash_by_height(height)
            block = None if block_hash is None else self.database.get_block(block_hash)
            if block is None:
                raise StorageError(f"Block index has no block at height {height}")
            chain.propose_new_block(block)
        logger.info("Rebuilt chain state: tip %s at height %d", chain.tip.short(), chain.tip_height)
        return chain

    async def save_blockchain(self, blockchain: BlockChain) -> None:
        self.database.put_chain_snapshot(blockchain.to_snapshot())
        logger.info(
            "Saved chain state: tip %s at height %d",
            blockchain.tip.short(),
            blockchain.tip_height,
        )

    # -------------------------------------------------------------------------
    # Confirm / unconfirm
    # -------------------------------------------------------------------------

    async def confirm(self, block: Block) -> None:
        """
        Append a block to the canonical index, then confirm it downstream.

        Raises:
            ServiceError: If the block does not extend the indexed tip, or
                storage rejects a write.
        """
        try:
            with self.database.transaction():
                height = self._next_height(block)
                self.database.put_block(block, height)
                self.database.put_hash_by_height(height, block.hash)
                for service in self.dependents:
                    await service.confirm(block)
        except sqlite3.Error as exc:
            raise ServiceError("confirm", block.hash, str(exc)) from exc

        logger.debug("Confirmed %s at height %d", block.hash.short(), height)

    async def unconfirm(self, block: Block) -> None:
        """
        Unconfirm a block downstream, then remove it from the canonical index.

        Raises:
            ServiceError: If the block is not the indexed tip, or storage
                rejects a write.
        """
        try:
            with self.database.transaction():
                height = self.database.get_indexed_height()
                if height is None or self.database.get_hash_by_height(height) != block.hash:
                    raise ServiceError("unconfirm", block.hash, "block is not the indexed tip")
                for service in reversed(self.dependents):
                    await service.unconfirm(block)
                self.database.delete_height(height)
                self.database.delete_block(block.hash)
        except sqlite3.Error as exc:
            raise ServiceError("unconfirm", block.hash, str(exc)) from exc

        logger.debug("Unconfirmed %s from height %d", block.hash.short(), height)

    def _next_height(self, block: Block) -> int:
        """Height the block takes in the canonical index."""
        top = self.database.get_indexed_height()
        if top is None:
            if not block.is_genesis:
                raise ServiceError("confirm", block.hash, "index is empty and block is not genesis")
            return 0

        indexed_tip = self.database.get_hash_by_height(top)
        if indexed_tip != block.prev_hash:
            expected = indexed_tip.hex() if indexed_tip is not None else "none"
            raise ServiceError(
                "confirm",
                block.hash,
                f"parent {block.prev_hash.hex()} is not the indexed tip {expected}",
            )
        return top + 1

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_block(self, block_hash: BlockHash) -> Block | None:
        """Canonical block body by hash, or None."""
        return self.database.get_block(block_hash)

    def get_hash_at(self, height: int) -> BlockHash | None:
        """Canonical block hash at a height, or None."""
        return self.database.get_hash_by_height(height)

    @property
    def indexed_height(self) -> int | None:
        """Height of the indexed tip, or None while nothing is confirmed."""
        return self.database.get_indexed_height()
