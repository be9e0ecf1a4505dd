"""
Replay event source backed by a JSON-lines file of blocks.

Behaves like a single well-behaved peer holding every block in the file:

- Announces readiness first.
- Answers locator requests with the blocks following the first locator
  hash it recognizes, breadth first (so in non-decreasing height), at most
  `batch_size` per answer.
- When its queue drains it continues below everything it already sent, the
  way a peer announces the next batch once the previous one was consumed.
- Ends the stream once nothing unsent is reachable.

Each line of the file is one block in JSON form::

    {"hash": "00..6f", "prev_hash": "00..00", "bits": 486604799, "timestamp": 1231006505,
     "transactions": [{"txid": "4a5e..", "addresses": ["1A1z.."]}]}
"""

from __future__ import annotations

import logging
from collections import defaultdict, deque
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Final

from block_indexer.containers import Block
from block_indexer.types import BlockHash

from .events import NetworkItem, NetworkReadyEvent

logger = logging.getLogger(__name__)

MAX_BLOCKS_PER_RESPONSE: Final[int] = 500
"""Blocks returned for one locator request, matching the usual peer inventory limit."""


def load_blocks(path: Path | str) -> list[Block]:
    """
    Read blocks from a JSON-lines file.

    Blank lines are skipped.

    Raises:
        pydantic.ValidationError: If a line is not a valid block.
    """
    blocks: list[Block] = []
    with Path(path).open(encoding="utf-8") as fh:
        for line in fh:
            line = line.strip()
            if line:
                blocks.append(Block.model_validate_json(line))
    return blocks


@dataclass(slots=True)
class ReplayEventSource:
    """Serves a fixed set of blocks in response to locator requests."""

    blocks: Sequence[Block]
    """Every block this source knows about."""

    batch_size: int = MAX_BLOCKS_PER_RESPONSE
    """Maximum blocks sent per answer."""

    _by_hash: dict[BlockHash, Block] = field(default_factory=dict, repr=False)
    _children: defaultdict[BlockHash, list[BlockHash]] = field(
        default_factory=lambda: defaultdict(list), repr=False
    )
    _queue: deque[NetworkItem] = field(default_factory=deque, repr=False)
    _sent: set[BlockHash] = field(default_factory=set, repr=False)
    _announced: bool = field(default=False, repr=False)

    def __post_init__(self) -> None:
        """Index the blocks by hash and by parent."""
        for block in self.blocks:
            if block.hash in self._by_hash:
                continue
            self._by_hash[block.hash] = block
            self._children[block.prev_hash].append(block.hash)

    @classmethod
    def from_file(
        cls, path: Path | str, batch_size: int = MAX_BLOCKS_PER_RESPONSE
    ) -> ReplayEventSource:
        """Build a source from a JSON-lines file."""
        blocks = load_blocks(path)
        logger.info("Loaded %d blocks from %s", len(blocks), path)
        return cls(blocks=blocks, batch_size=batch_size)

    @property
    def pending(self) -> int:
        """Items queued but not yet delivered."""
        return len(self._queue)

    def __aiter__(self) -> ReplayEventSource:
        """Return self as async iterator."""
        return self

    async def __anext__(self) -> NetworkItem:
        """Yield the next queued item, refilling from the sent blocks when drained."""
        if not self._announced:
            self._announced = True
            return NetworkReadyEvent()

        if not self._queue and self._sent:
            self._enqueue(self._descendants(list(self._sent)))

        if not self._queue:
            raise StopAsyncIteration
        return self._queue.popleft()

    async def request_blocks(self, locator: list[BlockHash]) -> None:
        """
        Queue the blocks following the first locator hash this source knows.

        An empty locator, or one sharing nothing with this source, is
        answered from the genesis blocks.
        """
        start = next((h for h in locator if h in self._by_hash), BlockHash.zero())
        batch = self._descendants([start])
        logger.debug(
            "Answering locator of %d hashes from %s with %d blocks",
            len(locator),
            start.short(),
            len(batch),
        )
        self._enqueue(batch)

    def _enqueue(self, batch: list[BlockHash]) -> None:
        if not batch:
            return
        self._sent.update(batch)
        self._queue.extend(self._by_hash[h] for h in batch)

    def _descendants(self, roots: Iterable[BlockHash]) -> list[BlockHash]:
        """Unsent descendants of the roots, breadth first, capped at batch_size."""
        result: list[BlockHash] = []
        frontier = deque(roots)
        seen: set[BlockHash] = set(frontier)

        while frontier and len(result) < self.batch_size:
            current = frontier.popleft()
            for child in self._children.get(current, ()):
                if child in seen:
                    continue
                seen.add(child)
                frontier.append(child)
                if child not in self._sent:
                    result.append(child)
                    if len(result) >= self.batch_size:
                        break

        return result
