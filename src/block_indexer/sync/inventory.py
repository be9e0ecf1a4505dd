"""
Inventory of announced blocks.

Records every block hash the network delivered and whether its body is on
hand. The node marks entries as blocks arrive. Nothing consults the
inventory to decide when a resync is due: it only feeds progress reports.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from block_indexer.types import BlockHash


@dataclass(slots=True)
class Inventory:
    """Maps block hash to whether the block's data has been received."""

    _entries: dict[BlockHash, bool] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, block_hash: BlockHash) -> bool:
        return block_hash in self._entries

    def announce(self, block_hash: BlockHash) -> None:
        """Record a hash whose data has not arrived yet."""
        self._entries.setdefault(block_hash, False)

    def mark_received(self, block_hash: BlockHash) -> None:
        """Record that a block's data arrived."""
        self._entries[block_hash] = True

    def has_data(self, block_hash: BlockHash) -> bool:
        return self._entries.get(block_hash, False)

    @property
    def missing(self) -> list[BlockHash]:
        """Announced hashes still waiting for data."""
        return [h for h, received in self._entries.items() if not received]

    @property
    def is_complete(self) -> bool:
        """Whether every announced block has arrived."""
        return all(self._entries.values())
