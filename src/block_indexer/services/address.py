"""Address index: which canonical transactions touch each address."""

from __future__ import annotations

from dataclasses import dataclass

from block_indexer.containers import Block
from block_indexer.storage import Database


@dataclass(slots=True)
class AddressService:
    """Keeps an (address, txid) link per confirming block for every canonical transaction."""

    database: Database

    async def confirm(self, block: Block) -> None:
        for tx in block.transactions:
            for address in tx.addresses:
                self.database.put_address_txid(address, tx.txid, block.hash)

    async def unconfirm(self, block: Block) -> None:
        for tx in block.transactions:
            for address in tx.addresses:
                self.database.delete_address_txid(address, tx.txid, block.hash)

    def get_txids(self, address: str) -> list[str]:
        """Canonical transactions touching an address, sorted by txid."""
        return self.database.get_address_txids(address)
