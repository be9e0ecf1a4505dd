"""Transaction index: which canonical block contains each transaction."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from block_indexer.containers import Block
from block_indexer.storage import Database
from block_indexer.types import BlockHash

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TransactionService:
    """Maps txid to the hash of the canonical block that contains it."""

    database: Database

    async def confirm(self, block: Block) -> None:
        for tx in block.transactions:
            self.database.put_transaction(tx.txid, block.hash)
        logger.debug(
            "Indexed %d transactions of %s", len(block.transactions), block.hash.short()
        )

    async def unconfirm(self, block: Block) -> None:
        """
        Drop this block's records of its transactions.

        A txid that also appears in another confirmed block keeps that
        block's record and stays resolvable.
        """
        for tx in block.transactions:
            self.database.delete_transaction(tx.txid, block.hash)

    def get_block_hash(self, txid: str) -> BlockHash | None:
        """Canonical block containing a transaction, or None."""
        return self.database.get_transaction_block(txid.lower())
