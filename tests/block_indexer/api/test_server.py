"""Tests for the API server status, health and metrics endpoints."""

from __future__ import annotations

import asyncio

import httpx

from block_indexer.api import ApiServer, ApiServerConfig
from block_indexer.node import Node, NodeConfig
from block_indexer.sync import SyncProgress
from tests.block_indexer.helpers import (
    MockBlockService,
    MockEventSource,
    make_genesis_block,
    make_hash,
)


def sample_progress() -> SyncProgress:
    return SyncProgress(
        tip=make_hash("tip"),
        tip_height=42,
        blocks_processed=43,
        reorgs=1,
        cache_size=10,
        orphan_count=2,
        inventory_size=45,
        velocity=3.5,
    )


class TestApiServerConfiguration:
    """Tests for API server configuration behavior."""

    def test_default_config(self) -> None:
        """Default configuration binds to localhost on port 3001."""
        config = ApiServerConfig()

        assert config.host == "127.0.0.1"
        assert config.port == 3001
        assert config.enabled is True

    def test_server_created_without_progress(self) -> None:
        server = ApiServer(config=ApiServerConfig())

        assert server.progress_getter() is None


class TestHealthEndpoint:
    """Tests for the /health endpoint behavior."""

    def test_returns_healthy_status_json(self) -> None:
        async def run_test() -> None:
            server = ApiServer(config=ApiServerConfig(port=15101))
            await server.start()

            try:
                async with httpx.AsyncClient() as client:
                    response = await client.get("http://127.0.0.1:15101/health")

                    assert response.status_code == 200
                    assert response.json() == {
                        "status": "healthy",
                        "service": "block-indexer-api",
                    }
            finally:
                server.stop()
                await asyncio.sleep(0.1)

        asyncio.run(run_test())


class TestStatusEndpoint:
    """Tests for the /status endpoint behavior."""

    def test_returns_503_before_chain_state(self) -> None:
        async def run_test() -> None:
            server = ApiServer(config=ApiServerConfig(port=15102))
            await server.start()

            try:
                async with httpx.AsyncClient() as client:
                    response = await client.get("http://127.0.0.1:15102/status")

                    assert response.status_code == 503
            finally:
                server.stop()
                await asyncio.sleep(0.1)

        asyncio.run(run_test())

    def test_returns_progress_json(self) -> None:
        progress = sample_progress()

        async def run_test() -> None:
            server = ApiServer(config=ApiServerConfig(port=15103), progress_getter=lambda: progress)
            await server.start()

            try:
                async with httpx.AsyncClient() as client:
                    response = await client.get("http://127.0.0.1:15103/status")

                    assert response.status_code == 200
                    data = response.json()
                    assert data["tip"] == make_hash("tip").hex()
                    assert data["tip_height"] == 42
                    assert data["reorgs"] == 1
                    assert data["velocity"] == 3.5
            finally:
                server.stop()
                await asyncio.sleep(0.1)

        asyncio.run(run_test())

    def test_node_status_unavailable_until_started(self) -> None:
        """A wired node reports 503 before its chain state exists, then its tip."""

        async def run_test() -> None:
            genesis = make_genesis_block()
            node = Node.create(
                NodeConfig(
                    genesis=genesis,
                    event_source=MockEventSource(),
                    block_service=MockBlockService(),
                    api_config=ApiServerConfig(port=15106),
                )
            )
            server = node.api_server
            assert server is not None
            await server.start()

            try:
                async with httpx.AsyncClient() as client:
                    before = await client.get("http://127.0.0.1:15106/status")
                    await node.start()
                    after = await client.get("http://127.0.0.1:15106/status")

                    assert before.status_code == 503
                    assert after.status_code == 200
                    assert after.json()["tip"] == genesis.hash.hex()
                    assert after.json()["tip_height"] == 0
            finally:
                server.stop()
                await node.network_monitor.wait_stopped()
                await asyncio.sleep(0.1)

        asyncio.run(run_test())


class TestMetricsEndpoint:
    """Tests for the /metrics endpoint behavior."""

    def test_returns_prometheus_text(self) -> None:
        async def run_test() -> None:
            server = ApiServer(config=ApiServerConfig(port=15104))
            await server.start()

            try:
                async with httpx.AsyncClient() as client:
                    response = await client.get("http://127.0.0.1:15104/metrics")

                    assert response.status_code == 200
                    assert response.headers["content-type"].startswith("text/plain")
                    assert "indexer_tip_height" in response.text
            finally:
                server.stop()
                await asyncio.sleep(0.1)

        asyncio.run(run_test())


class TestDisabledServer:
    """Tests for a server turned off by configuration."""

    def test_disabled_server_does_not_listen(self) -> None:
        async def run_test() -> None:
            server = ApiServer(config=ApiServerConfig(port=15105, enabled=False))
            await server.start()

            async with httpx.AsyncClient() as client:
                try:
                    await client.get("http://127.0.0.1:15105/health")
                except httpx.ConnectError:
                    return
            raise AssertionError("disabled server accepted a connection")

        asyncio.run(run_test())
