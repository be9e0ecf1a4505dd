"""
Metrics module for observability.

Provides counters, gauges, and histograms for tracking indexer behavior.
Exposes metrics in Prometheus text format.
"""

from .registry import (
    REGISTRY,
    block_processing_time,
    blocks_confirmed,
    blocks_processed,
    blocks_unconfirmed,
    cache_size,
    events_processed,
    generate_metrics,
    network_errors,
    reorgs,
    sync_velocity,
    tip_height,
)

__all__ = [
    "REGISTRY",
    "block_processing_time",
    "blocks_confirmed",
    "blocks_processed",
    "blocks_unconfirmed",
    "cache_size",
    "events_processed",
    "generate_metrics",
    "network_errors",
    "reorgs",
    "sync_velocity",
    "tip_height",
]
