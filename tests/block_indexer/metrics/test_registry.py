"""Tests for the Prometheus metrics registry."""

from __future__ import annotations

from block_indexer.metrics import (
    REGISTRY,
    block_processing_time,
    blocks_processed,
    events_processed,
    generate_metrics,
    reorgs,
    tip_height,
)


class TestMetricTypes:
    """Tests for metric type behavior."""

    def test_counter_increments(self) -> None:
        initial = reorgs._value.get()
        reorgs.inc()
        assert reorgs._value.get() == initial + 1.0

    def test_gauge_sets_value(self) -> None:
        tip_height.set(7)
        assert tip_height._value.get() == 7.0

    def test_histogram_observes_values(self) -> None:
        """Histogram metrics record observations."""
        initial_samples = list(block_processing_time.collect())[0].samples
        initial_count = next(s.value for s in initial_samples if s.name.endswith("_count"))

        block_processing_time.observe(0.01)

        new_samples = list(block_processing_time.collect())[0].samples
        new_count = next(s.value for s in new_samples if s.name.endswith("_count"))
        assert new_count == initial_count + 1

    def test_labelled_counter(self) -> None:
        before = REGISTRY.get_sample_value(
            "indexer_events_processed_total", {"event_type": "Block"}
        )
        events_processed.labels(event_type="Block").inc()
        after = REGISTRY.get_sample_value(
            "indexer_events_processed_total", {"event_type": "Block"}
        )
        assert after == (before or 0.0) + 1.0


class TestGenerateMetrics:
    """Tests for Prometheus text output."""

    def test_output_contains_indexer_metrics(self) -> None:
        blocks_processed.inc()
        output = generate_metrics().decode()

        assert "indexer_tip_height" in output
        assert "indexer_blocks_processed_total" in output
        assert "indexer_block_processing_seconds_bucket" in output

    def test_output_excludes_default_process_metrics(self) -> None:
        """The dedicated registry does not carry process collectors."""
        output = generate_metrics().decode()

        assert "process_cpu_seconds_total" not in output
