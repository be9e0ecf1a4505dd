"""
Sync configuration constants.

Operational parameters for block handling: cache bounds and reporting.
"""

from __future__ import annotations

from typing import Final

from block_indexer.config import INDEXER_ENV

PRUNE_DEPTH: Final[int] = 100
"""Cached blocks deeper than this below the tip are evicted."""

MAX_ORPHAN_BLOCKS: Final[int] = 1024
"""Maximum blocks held while their parent is unknown."""

STATS_INTERVAL_SECONDS: Final[float] = 0.05 if INDEXER_ENV == "test" else 5.0
"""Period of the sync velocity report. Shortened under INDEXER_ENV=test."""
