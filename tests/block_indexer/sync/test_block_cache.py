"""Tests for the block cache."""

from __future__ import annotations

import pytest

from block_indexer.containers import Block
from block_indexer.sync import MAX_ORPHAN_BLOCKS, PRUNE_DEPTH, BlockCache, CachedBlock
from tests.block_indexer.helpers import make_block, make_chain, make_genesis_block, make_hash


class TestCachedBlock:
    """Tests for individual cache entries."""

    def test_new_entry_is_unannotated(self) -> None:
        block = make_block("b1", make_genesis_block())
        cached = CachedBlock(block=block)

        assert cached.hash == block.hash
        assert cached.prev_hash == block.prev_hash
        assert not cached.is_annotated
        assert cached.height is None
        assert cached.work is None


class TestBlockCacheBasics:
    """Tests for adding, looking up and removing blocks."""

    def test_defaults(self) -> None:
        cache = BlockCache()

        assert cache.max_orphans == MAX_ORPHAN_BLOCKS
        assert cache.prune_depth == PRUNE_DEPTH
        assert cache.is_empty
        assert cache.lowest_height is None

    def test_add_and_get(self) -> None:
        cache = BlockCache()
        block = make_genesis_block()

        cached = cache.add(block)

        assert block.hash in cache
        assert cache.get(block.hash) is cached
        assert len(cache) == 1
        assert cache.orphan_count == 1

    def test_add_duplicate_returns_existing(self) -> None:
        cache = BlockCache()
        block = make_genesis_block()

        first = cache.add(block)
        second = cache.add(block)

        assert first is second
        assert len(cache) == 1

    def test_get_missing(self) -> None:
        assert BlockCache().get(make_hash("missing")) is None

    def test_annotate_leaves_orphan_queue(self) -> None:
        cache = BlockCache()
        block = make_genesis_block()
        cache.add(block)

        cache.annotate(block.hash, 0, 2)

        cached = cache.get(block.hash)
        assert cached is not None
        assert cached.height == 0
        assert cached.work == 2
        assert cache.orphan_count == 0
        assert cache.lowest_height == 0

    def test_annotate_unknown_block_raises(self) -> None:
        with pytest.raises(KeyError):
            BlockCache().annotate(make_hash("missing"), 0, 2)

    def test_remove(self) -> None:
        cache = BlockCache()
        genesis = make_genesis_block()
        child = make_block("b1", genesis)
        cache.add(child)

        removed = cache.remove(child.hash)

        assert removed is not None and removed.block == child
        assert child.hash not in cache
        assert cache.get_children(genesis.hash) == []
        assert cache.remove(child.hash) is None

    def test_clear(self) -> None:
        cache = BlockCache()
        genesis = make_genesis_block()
        cache.add(genesis)
        cache.annotate(genesis.hash, 0, 2)
        cache.add(make_block("b1", genesis))

        cache.clear()

        assert cache.is_empty
        assert cache.orphan_count == 0
        assert cache.lowest_height is None


class TestChildren:
    """Tests for the parent-to-children lookup."""

    def test_children_ordered_by_arrival(self) -> None:
        cache = BlockCache()
        genesis = make_genesis_block()
        first = cache.add(make_block("first", genesis))
        second = cache.add(make_block("second", genesis))

        children = cache.get_children(genesis.hash)

        assert [c.hash for c in children] == [first.hash, second.hash]

    def test_equal_timestamps_keep_arrival_order(self) -> None:
        """Siblings received within one clock tick are still handed out in order."""
        cache = BlockCache()
        genesis = make_genesis_block()
        siblings = [cache.add(make_block(f"s{i}", genesis)) for i in range(16)]
        for cached in siblings:
            cached.received_at = 1.0

        children = cache.get_children(genesis.hash)

        assert [c.hash for c in children] == [c.hash for c in siblings]
        assert [c.arrival for c in children] == sorted(c.arrival for c in siblings)

    def test_annotated_children_excluded(self) -> None:
        """Children already connected are not handed out again."""
        cache = BlockCache()
        genesis = make_genesis_block()
        a, b = make_block("a", genesis), make_block("b", genesis)
        cache.add(a)
        cache.add(b)
        cache.annotate(a.hash, 1, 4)

        assert [c.hash for c in cache.get_children(genesis.hash)] == [b.hash]


class TestOrphanBound:
    """Tests for FIFO eviction of unconnected blocks."""

    def test_oldest_orphan_evicted(self) -> None:
        cache = BlockCache(max_orphans=3)
        blocks = [make_block(f"o{i}", make_hash(f"p{i}")) for i in range(4)]

        for block in blocks:
            cache.add(block)

        assert cache.orphan_count == 3
        assert blocks[0].hash not in cache
        assert all(b.hash in cache for b in blocks[1:])

    def test_annotated_entries_never_evicted(self) -> None:
        cache = BlockCache(max_orphans=2)
        genesis = make_genesis_block()
        cache.add(genesis)
        cache.annotate(genesis.hash, 0, 2)

        for i in range(5):
            cache.add(make_block(f"o{i}", make_hash(f"p{i}")))

        assert genesis.hash in cache
        assert cache.orphan_count == 2


class TestPrune:
    """Tests for depth-based eviction."""

    def _annotated_chain(self, cache: BlockCache, length: int) -> list[Block]:
        genesis = make_genesis_block()
        blocks = [genesis, *make_chain(genesis, length)]
        for height, block in enumerate(blocks):
            cache.add(block)
            cache.annotate(block.hash, height, 2 * (height + 1))
        return blocks

    def test_prune_keeps_window(self) -> None:
        cache = BlockCache(prune_depth=5)
        blocks = self._annotated_chain(cache, 10)

        removed = cache.prune(10)

        assert removed == 5
        assert cache.lowest_height == 5
        assert all(b.hash not in cache for b in blocks[:5])
        assert all(b.hash in cache for b in blocks[5:])

    def test_prune_within_window_is_noop(self) -> None:
        cache = BlockCache(prune_depth=100)
        self._annotated_chain(cache, 10)

        assert cache.prune(10) == 0
        assert len(cache) == 11

    def test_prune_removes_side_branches_and_spares_orphans(self) -> None:
        cache = BlockCache(prune_depth=2)
        blocks = self._annotated_chain(cache, 6)
        side = make_block("side1", blocks[0])
        cache.add(side)
        cache.annotate(side.hash, 1, 4)
        orphan = make_block("orphan", make_hash("unknown"))
        cache.add(orphan)

        cache.prune(6)

        assert side.hash not in cache
        assert orphan.hash in cache
        assert cache.lowest_height == 4
