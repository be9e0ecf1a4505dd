"""
Contracts between the node and the indexing services.

The node decides *which* blocks join or leave the canonical chain. The
services decide *what* that means for their indexes. Every service speaks
the same two verbs:

- `confirm(block)`: the block joined the canonical chain
- `unconfirm(block)`: the block left the canonical chain

The node always unconfirms children before parents and confirms parents
before children.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from block_indexer.chain import BlockChain
    from block_indexer.containers import Block


class IndexService(Protocol):
    """A derived index that follows the canonical chain."""

    async def confirm(self, block: Block) -> None:
        """Apply a block that joined the canonical chain."""
        ...

    async def unconfirm(self, block: Block) -> None:
        """Roll back a block that left the canonical chain."""
        ...


class BlockService(IndexService, Protocol):
    """
    The root indexing service.

    Besides following the chain, it owns persistence of the chain state so
    the node can resume after a restart.
    """

    async def get_blockchain(self) -> BlockChain | None:
        """
        Load the persisted chain state.

        Returns:
            The chain state, or None on first start.
        """
        ...

    async def save_blockchain(self, blockchain: BlockChain) -> None:
        """Persist the chain state."""
        ...
