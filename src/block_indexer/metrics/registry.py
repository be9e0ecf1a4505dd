"""
Metric registry using prometheus_client.

Provides pre-defined metrics for the indexer.
Exposes metrics in Prometheus text format via the /metrics endpoint.
"""

from __future__ import annotations

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

# Dedicated registry: keeps default Python process metrics out of the output.
REGISTRY = CollectorRegistry()

# -----------------------------------------------------------------------------
# Chain State
# -----------------------------------------------------------------------------

tip_height = Gauge(
    "indexer_tip_height",
    "Height of the canonical tip",
    registry=REGISTRY,
)

sync_velocity = Gauge(
    "indexer_sync_velocity_blocks_per_second",
    "Tip height growth over the last reporting interval",
    registry=REGISTRY,
)

reorgs = Counter(
    "indexer_reorgs_total",
    "Chain reorganizations",
    registry=REGISTRY,
)

# -----------------------------------------------------------------------------
# Block Processing
# -----------------------------------------------------------------------------

blocks_processed = Counter(
    "indexer_blocks_processed_total",
    "Blocks connected to the chain state",
    registry=REGISTRY,
)

blocks_confirmed = Counter(
    "indexer_blocks_confirmed_total",
    "Blocks confirmed by the indexing services",
    registry=REGISTRY,
)

blocks_unconfirmed = Counter(
    "indexer_blocks_unconfirmed_total",
    "Blocks rolled back by the indexing services",
    registry=REGISTRY,
)

block_processing_time = Histogram(
    "indexer_block_processing_seconds",
    "Block handling duration, services included",
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0),
    registry=REGISTRY,
)

cache_size = Gauge(
    "indexer_block_cache_size",
    "Blocks held in the block cache",
    registry=REGISTRY,
)

# -----------------------------------------------------------------------------
# Network
# -----------------------------------------------------------------------------

events_processed = Counter(
    "indexer_events_processed_total",
    "Items published on the event bus",
    ["event_type"],
    registry=REGISTRY,
)

network_errors = Counter(
    "indexer_network_errors_total",
    "Errors reported by the network monitor",
    registry=REGISTRY,
)


def generate_metrics() -> bytes:
    """
    Generate Prometheus metrics output.

    Returns:
        Prometheus text format output as bytes.
    """
    return generate_latest(REGISTRY)
