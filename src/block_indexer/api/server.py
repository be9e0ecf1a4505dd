"""
Status API for a running indexer.

Routes
------
- ``GET /health``   liveness probe, always 200 while the server is up
- ``GET /status``   sync progress as JSON, 503 until the chain state exists
- ``GET /metrics``  Prometheus text exposition
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from aiohttp import web

from block_indexer.metrics import generate_metrics

if TYPE_CHECKING:
    from block_indexer.sync import SyncProgress

logger = logging.getLogger(__name__)

SERVICE_NAME = "block-indexer-api"
"""Identifier reported by /health."""

PROMETHEUS_FORMAT_VERSION = "0.0.4"


@dataclass(frozen=True, slots=True)
class ApiServerConfig:
    """Where and whether to serve the status API."""

    host: str = "127.0.0.1"
    """Bind address. Loopback unless exposed on purpose."""

    port: int = 3001
    """TCP port."""

    enabled: bool = True
    """When False, `start()` returns without binding."""


@dataclass(slots=True)
class ApiServer:
    """
    aiohttp server reporting the node's progress.

    The server never touches node state directly. It calls `progress_getter`
    on each /status request and renders whatever snapshot comes back.
    """

    config: ApiServerConfig

    progress_getter: Callable[[], SyncProgress | None] = lambda: None
    """Returns the current progress, or None before the chain state is loaded."""

    _runner: web.AppRunner | None = field(default=None, init=False)
    _site: web.TCPSite | None = field(default=None, init=False)
    _stop_requested: asyncio.Event = field(default_factory=asyncio.Event, init=False)

    def create_app(self) -> web.Application:
        """Application with every route mounted."""
        app = web.Application()
        app.router.add_get("/health", self._health)
        app.router.add_get("/status", self._status)
        app.router.add_get("/metrics", self._metrics)
        return app

    async def start(self) -> None:
        """Bind and begin serving. Returns once the socket is listening."""
        if not self.config.enabled:
            logger.info("API server is disabled")
            return

        runner = web.AppRunner(self.create_app())
        await runner.setup()
        site = web.TCPSite(runner, self.config.host, self.config.port)
        await site.start()

        self._runner, self._site = runner, site
        logger.info("API server listening on %s:%d", self.config.host, self.config.port)

    async def run(self) -> None:
        """Serve until `stop()` is called. Returns at once when disabled."""
        await self.start()
        if self._runner is None:
            return
        await self._stop_requested.wait()
        await self._async_stop()

    def stop(self) -> None:
        """
        Request shutdown from synchronous code.

        A request that arrives while `run()` is still binding is honored once
        binding completes.
        """
        self._stop_requested.set()
        if self._runner is not None:
            asyncio.create_task(self._async_stop())

    async def _async_stop(self) -> None:
        runner, self._runner, self._site = self._runner, None, None
        if runner is not None:
            await runner.cleanup()
            logger.info("API server stopped")

    # -------------------------------------------------------------------------
    # Handlers
    # -------------------------------------------------------------------------

    async def _health(self, _request: web.Request) -> web.Response:
        return web.json_response({"status": "healthy", "service": SERVICE_NAME})

    async def _status(self, _request: web.Request) -> web.Response:
        progress = self.progress_getter()
        if progress is None:
            raise web.HTTPServiceUnavailable(reason="Chain state not initialized")
        return web.json_response(progress.to_dict())

    async def _metrics(self, _request: web.Request) -> web.Response:
        return web.Response(
            body=generate_metrics(),
            content_type="text/plain",
            charset="utf-8",
            headers={"X-Prometheus-Format": PROMETHEUS_FORMAT_VERSION},
        )
