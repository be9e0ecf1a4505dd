"""
Chain state: which block is the tip, and what changes when a block arrives.

The Problem
-----------
Blocks arrive from many peers, out of order, and sometimes on competing
branches. Downstream indexes must reflect exactly one chain: the connected
branch with the most cumulative proof-of-work. When a heavier branch
appears, the indexes must roll back the abandoned blocks and apply the new
ones in an order that never leaves a child applied without its parent.

How It Works
------------
Every connected block gets a height and a cumulative work value derived
from its parent. A single height index records the canonical block at each
height, from the virtual null root up to the tip.

When a block is proposed there are three outcomes:

1. **Extension**: its parent is the tip. It becomes the new tip.
2. **Reorganization**: it carries more cumulative work than the tip. The
   chain switches branches at the common ancestor.
3. **Side branch**: equal or less work. Metadata is recorded, nothing else
   changes. Equal work keeps the existing tip (first seen wins).

::

             +-- b2 -- b3        (old tip, unconfirmed: b3, b2)
             |
    g -- b1 -+
             |
             +-- c2 -- c3 -- c4  (new tip, confirmed: c2, c3, c4)

The chain state never holds block bodies. Only identifiers, parent links,
heights and work.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from block_indexer.containers import Block
from block_indexer.types import (
    BlockHash,
    SnapshotError,
    StrictBaseModel,
    UnknownParentError,
)

from .config import LOCATOR_DENSE_COUNT, NULL_HASH, NULL_HEIGHT

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ChainDelta:
    """
    The effect of proposing one block.

    Both sequences are in application order: roll back `unconfirmed` first,
    then apply `confirmed`.
    """

    confirmed: tuple[BlockHash, ...] = ()
    """Blocks that joined the canonical chain, lowest height first."""

    unconfirmed: tuple[BlockHash, ...] = ()
    """Blocks that left the canonical chain, highest height first."""

    @property
    def is_empty(self) -> bool:
        """Whether the proposal left the canonical chain untouched."""
        return not self.confirmed and not self.unconfirmed

    @property
    def is_reorg(self) -> bool:
        """Whether any previously canonical block was abandoned."""
        return bool(self.unconfirmed)


class ChainEntry(StrictBaseModel):
    """Persisted metadata for one connected block."""

    hash: BlockHash
    prev_hash: BlockHash
    height: int
    work: int


class ChainSnapshot(StrictBaseModel):
    """
    Serializable form of the chain state.

    Entries are ordered by height so every parent precedes its children.
    """

    tip: BlockHash
    """Canonical tip at the time of the snapshot."""

    entries: tuple[ChainEntry, ...] = ()
    """Metadata for every connected block, side branches included."""


@dataclass(slots=True)
class BlockChain:
    """
    Tracks every connected block and the canonical tip.

    All indexes are private and mutated only by `propose_new_block`.
    Callers read through the accessor methods.
    """

    _height: dict[BlockHash, int] = field(default_factory=lambda: {NULL_HASH: NULL_HEIGHT})
    """Height of every connected block, keyed by hash."""

    _work: dict[BlockHash, int] = field(default_factory=lambda: {NULL_HASH: 0})
    """Cumulative work of every connected block, keyed by hash."""

    _prev: dict[BlockHash, BlockHash] = field(default_factory=dict)
    """Parent link of every connected block. The null root has none."""

    _hash_by_height: dict[int, BlockHash] = field(
        default_factory=lambda: {NULL_HEIGHT: NULL_HASH}
    )
    """Canonical block at each height, from the null root up to the tip."""

    _tip: BlockHash = field(default=NULL_HASH)
    """Hash of the canonical tip."""

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def __len__(self) -> int:
        """Number of connected blocks, excluding the null root."""
        return len(self._height) - 1

    def __contains__(self, block_hash: BlockHash) -> bool:
        return self.has_data(block_hash)

    @property
    def tip(self) -> BlockHash:
        """Hash of the canonical tip. The null hash while the chain is empty."""
        return self._tip

    @property
    def tip_height(self) -> int:
        """Height of the tip. -1 while the chain is empty."""
        return self._height[self._tip]

    @property
    def tip_work(self) -> int:
        """Cumulative work of the tip."""
        return self._work[self._tip]

    @property
    def is_empty(self) -> bool:
        """Whether no block, not even genesis, has been connected."""
        return self._tip == NULL_HASH

    def has_data(self, block_hash: BlockHash) -> bool:
        """
        Check whether a block is connected.

        A connected block's ancestry resolves all the way to the null root.
        The null root itself is always connected, so a genesis block can be
        proposed into an empty chain.
        """
        return block_hash in self._height

    def height_of(self, block_hash: BlockHash) -> int | None:
        """Height of a connected block, or None if unknown."""
        return self._height.get(block_hash)

    def work_of(self, block_hash: BlockHash) -> int | None:
        """Cumulative work of a connected block, or None if unknown."""
        return self._work.get(block_hash)

    def prev_of(self, block_hash: BlockHash) -> BlockHash | None:
        """Parent of a connected block, or None if unknown."""
        return self._prev.get(block_hash)

    def hash_at(self, height: int) -> BlockHash | None:
        """Canonical block at a height, or None above the tip or below genesis."""
        if height < 0:
            return None
        return self._hash_by_height.get(height)

    def is_canonical(self, block_hash: BlockHash) -> bool:
        """Whether a block lies on the path from genesis to the tip."""
        height = self._height.get(block_hash)
        if height is None or height < 0:
            return False
        return self._hash_by_height.get(height) == block_hash

    # -------------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------------

    def propose_new_block(self, block: Block) -> ChainDelta:
        """
        Insert a block and compute its effect on the canonical chain.

        Args:
            block: A block whose parent is already connected.

        Returns:
            The blocks to unconfirm and confirm, in application order.
            Empty for side-branch blocks and for blocks already known.

        Raises:
            UnknownParentError: If the parent is not connected. Callers must
                check `has_data(block.prev_hash)` first.
        """
        block_hash = block.hash
        prev_hash = block.prev_hash

        # Re-delivery of a known block: gossip and locator responses overlap.
        if block_hash in self._height:
            return ChainDelta()

        if prev_hash not in self._height:
            raise UnknownParentError(block_hash, prev_hash)

        self._prev[block_hash] = prev_hash
        self._height[block_hash] = self._height[prev_hash] + 1
        self._work[block_hash] = self._work[prev_hash] + block.work

        if prev_hash == self._tip:
            self._tip = block_hash
            self._hash_by_height[self._height[block_hash]] = block_hash
            return ChainDelta(confirmed=(block_hash,))

        if self._work[block_hash] <= self._work[self._tip]:
            logger.debug(
                "Side-branch block %s at height %d (work %d <= tip work %d)",
                block_hash.short(),
                self._height[block_hash],
                self._work[block_hash],
                self._work[self._tip],
            )
            return ChainDelta()

        return self._reorganize(block_hash)

    def _reorganize(self, new_tip: BlockHash) -> ChainDelta:
        """Switch the canonical chain to the branch ending at `new_tip`."""
        old_tip = self._tip
        old_tip_height = self._height[old_tip]
        ancestor = self.common_ancestor(old_tip, new_tip)

        # Walk the old branch down from its tip: children are rolled back
        # before their parents.
        unconfirmed: list[BlockHash] = []
        cursor = old_tip
        while cursor != ancestor:
            unconfirmed.append(cursor)
            cursor = self._prev[cursor]

        # Walk the new branch down, then reverse: parents are applied first.
        confirmed: list[BlockHash] = []
        cursor = new_tip
        while cursor != ancestor:
            confirmed.append(cursor)
            cursor = self._prev[cursor]
        confirmed.reverse()

        # Rewrite the height index along the changed segment.
        #
        # The new branch may be shorter than the old one (fewer, heavier
        # blocks). Heights above the new tip no longer have a canonical block.
        for block_hash in confirmed:
            self._hash_by_height[self._height[block_hash]] = block_hash
        new_tip_height = self._height[new_tip]
        for height in range(new_tip_height + 1, old_tip_height + 1):
            del self._hash_by_height[height]

        self._tip = new_tip

        logger.info(
            "Reorganization at ancestor %s (height %d): %d unconfirmed, %d confirmed",
            ancestor.short(),
            self._height[ancestor],
            len(unconfirmed),
            len(confirmed),
        )
        return ChainDelta(confirmed=tuple(confirmed), unconfirmed=tuple(unconfirmed))

    def common_ancestor(self, a: BlockHash, b: BlockHash) -> BlockHash:
        """
        Lowest common ancestor of two connected blocks.

        Walks parent links from the higher block until both sides sit at the
        same height, then steps both down together until they meet. Every
        branch ends at the null root, so the walk always terminates.

        Raises:
            KeyError: If either block is not connected.
        """
        height_a = self._height[a]
        height_b = self._height[b]

        while height_a > height_b:
            a = self._prev[a]
            height_a -= 1
        while height_b > height_a:
            b = self._prev[b]
            height_b -= 1

        while a != b:
            a = self._prev[a]
            b = self._prev[b]

        return a

    # -------------------------------------------------------------------------
    # Locator
    # -------------------------------------------------------------------------

    def get_block_locator(self) -> list[BlockHash]:
        """
        Build a sparse list of canonical hashes from the tip backwards.

        The first `LOCATOR_DENSE_COUNT` entries are consecutive. After that
        the step doubles each time. Genesis always closes the list, so a peer
        on any branch finds at least one shared block.

        A peer answering a locator sends the blocks following the first hash
        it recognizes.

        Returns:
            Hashes ordered from the tip downwards. Empty if nothing is
            connected yet.
        """
        if self.is_empty:
            return []

        locator: list[BlockHash] = []
        height = self.tip_height
        step = 1

        while height > 0:
            locator.append(self._hash_by_height[height])
            if len(locator) >= LOCATOR_DENSE_COUNT:
                step *= 2
            height -= step

        locator.append(self._hash_by_height[0])
        return locator

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def to_snapshot(self) -> ChainSnapshot:
        """Capture the chain state in serializable form."""
        entries = sorted(
            (
                ChainEntry(
                    hash=block_hash,
                    prev_hash=prev_hash,
                    height=self._height[block_hash],
                    work=self._work[block_hash],
                )
                for block_hash, prev_hash in self._prev.items()
            ),
            key=lambda entry: entry.height,
        )
        return ChainSnapshot(tip=self._tip, entries=tuple(entries))

    @classmethod
    def from_snapshot(cls, snapshot: ChainSnapshot) -> BlockChain:
        """
        Rebuild a chain state from a snapshot.

        Heights and work are checked against parent links while loading.
        The height index is rebuilt by walking back from the tip.

        Raises:
            SnapshotError: If an entry's parent is missing, a height or work
                value contradicts its parent, or the tip is unknown.
        """
        chain = cls()

        for entry in sorted(snapshot.entries, key=lambda e: e.height):
            parent_height = chain._height.get(entry.prev_hash)
            if parent_height is None:
                raise SnapshotError(
                    f"Entry {entry.hash.hex()} references unknown parent {entry.prev_hash.hex()}"
                )
            if entry.height != parent_height + 1:
                raise SnapshotError(
                    f"Entry {entry.hash.hex()} has height {entry.height}, "
                    f"expected {parent_height + 1}"
                )
            if entry.work <= chain._work[entry.prev_hash]:
                raise SnapshotError(
                    f"Entry {entry.hash.hex()} does not add work over its parent"
                )

            chain._height[entry.hash] = entry.height
            chain._work[entry.hash] = entry.work
            chain._prev[entry.hash] = entry.prev_hash

        if snapshot.tip not in chain._height:
            raise SnapshotError(f"Snapshot tip {snapshot.tip.hex()} is not among its entries")

        cursor = snapshot.tip
        while cursor != NULL_HASH:
            chain._hash_by_height[chain._height[cursor]] = cursor
            cursor = chain._prev[cursor]
        chain._tip = snapshot.tip

        return chain
