"""
Chain state for the indexer.

Tracks the canonical tip, per-block height and cumulative work, and the
confirm/unconfirm delta each new block causes.
"""

from .blockchain import BlockChain, ChainDelta, ChainEntry, ChainSnapshot
from .config import LOCATOR_DENSE_COUNT, NULL_HASH

__all__ = [
    "BlockChain",
    "ChainDelta",
    "ChainEntry",
    "ChainSnapshot",
    "LOCATOR_DENSE_COUNT",
    "NULL_HASH",
]
