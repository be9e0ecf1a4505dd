"""
Indexer node orchestrator.

Wires together the event bus, the network monitor, the block cache, the
chain state and the indexing services, and runs them with structured
concurrency.

Block Flow
----------
::

    network monitor --Block--> EventBus --> Node.on_block
                                               |
                                   cache body, mark inventory
                                               |
                       parent unknown? --yes--> request blocks from tip
                                               |
                                  BlockChain.propose_new_block
                                               |
                                 unconfirm abandoned (tip first)
                                               |
                                 confirm adopted (parent first)
                                               |
                             prune cache, process waiting children

Any failure while the services apply a delta is fatal: the node aborts the
network monitor, skips saving the chain state, and `run()` raises
`NodeAbortedError`. No retry is attempted.
"""

from __future__ import annotations

import asyncio
import logging
import signal
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Final

from block_indexer import metrics
from block_indexer.api import ApiServer, ApiServerConfig
from block_indexer.chain import BlockChain, ChainDelta
from block_indexer.containers import Block
from block_indexer.events import EventBus
from block_indexer.networking import (
    BlockRequester,
    EventSourceMonitor,
    NetworkDisconnectedEvent,
    NetworkErrorEvent,
    NetworkEventSource,
    NetworkMonitor,
    NetworkReadyEvent,
    NetworkStopEvent,
)
from block_indexer.services import (
    AddressService,
    BlockService,
    StorageBlockService,
    TransactionService,
)
from block_indexer.storage import Database, SQLiteDatabase
from block_indexer.sync import (
    STATS_INTERVAL_SECONDS,
    BlockCache,
    Inventory,
    SyncProgress,
)
from block_indexer.types import (
    BlockHash,
    ChainStateError,
    NodeAbortedError,
    ServiceError,
)

logger = logging.getLogger(__name__)

DEFAULT_NETWORK: Final = "livenet"
"""Network name used when none is configured."""

DEFAULT_DATABASE_PATH: Final = Path("db") / "indexer.sqlite3"
"""SQLite file used when none is configured."""


@dataclass(frozen=True, slots=True)
class NodeConfig:
    """
    Configuration for an indexer node.

    Collaborators left as None are built by `Node.create`. A network monitor
    passed here must publish on the bus passed here.
    """

    genesis: Block
    """Block proposed first when no chain state was persisted."""

    network: str = DEFAULT_NETWORK
    """Name of the indexed network, for logging."""

    database_path: Path | str = DEFAULT_DATABASE_PATH
    """
    Path to the SQLite database file.

    Parent directories are created. Use ":memory:" for an in-memory
    database (testing only).
    """

    event_source: NetworkEventSource | None = field(default=None)
    """Source of blocks and lifecycle events for the default monitor."""

    requester: BlockRequester | None = field(default=None)
    """
    Where locator requests go.

    Defaults to the event source when it can answer requests itself.
    """

    api_config: ApiServerConfig | None = field(default=None)
    """Optional API server configuration. If None, API server is disabled."""

    stats_interval: float = STATS_INTERVAL_SECONDS
    """Seconds between sync velocity reports."""

    parallel_confirm: bool = False
    """
    Confirm the blocks of one delta concurrently.

    Rollbacks always complete first. Only enable with services that do not
    depend on confirm order.
    """

    time_fn: Callable[[], float] = field(default=time.monotonic)
    """Time source for velocity reports (injectable for deterministic testing)."""

    bus: EventBus | None = field(default=None)
    """Event bus override."""

    block_service: BlockService | None = field(default=None)
    """Block service override. Skips opening the SQLite database."""

    network_monitor: NetworkMonitor | None = field(default=None)
    """Network monitor override. Skips building the event-source monitor."""


@dataclass(slots=True)
class Node:
    """
    Indexer node orchestrator.

    Owns the chain state and drives the indexing services so their indexes
    follow the canonical chain.
    """

    bus: EventBus
    """Event bus shared with the network monitor."""

    network_monitor: NetworkMonitor
    """Source of blocks and lifecycle events."""

    block_service: BlockService
    """Root indexing service. Also persists the chain state."""

    genesis: Block
    """Block proposed first on a fresh start."""

    block_cache: BlockCache = field(default_factory=BlockCache)
    """Received block bodies."""

    inventory: Inventory = field(default_factory=Inventory)
    """Every block hash seen."""

    network: str = DEFAULT_NETWORK
    """Name of the indexed network."""

    stats_interval: float = STATS_INTERVAL_SECONDS
    """Seconds between sync velocity reports."""

    parallel_confirm: bool = False
    """Confirm the blocks of one delta concurrently."""

    time_fn: Callable[[], float] = field(default=time.monotonic)
    """Time source for velocity reports."""

    api_server: ApiServer | None = field(default=None)
    """Optional API server for status and metrics."""

    database: Database | None = field(default=None)
    """Database opened by `create`, closed when `run` exits."""

    blockchain: BlockChain | None = field(default=None)
    """Chain state. None until `start` loads or creates it."""

    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)
    """Serializes block handling."""

    _shutdown: asyncio.Event = field(default_factory=asyncio.Event, repr=False)
    """Event signaling shutdown request."""

    _fault: BaseException | None = field(default=None, repr=False)
    """First fatal error, if any."""

    _started: bool = field(default=False, repr=False)

    _blocks_processed: int = field(default=0, repr=False)
    _reorgs: int = field(default=0, repr=False)

    _velocity: float = field(default=0.0, repr=False)
    _last_stats_height: int | None = field(default=None, repr=False)
    _last_stats_time: float = field(default=0.0, repr=False)

    @classmethod
    def create(cls, config: NodeConfig) -> Node:
        """
        Create a fully-wired node.

        Builds whatever the configuration does not override: an event bus,
        the SQLite database with the block, transaction and address
        services, and an event-source network monitor.

        Raises:
            ValueError: If neither a network monitor nor an event source is
                configured, or the event source cannot answer block requests
                and no requester is given.
        """
        bus = config.bus if config.bus is not None else EventBus()

        database: Database | None = None
        block_service = config.block_service
        if block_service is None:
            if str(config.database_path) != ":memory:":
                Path(config.database_path).parent.mkdir(parents=True, exist_ok=True)
            database = SQLiteDatabase(config.database_path)

            # Confirm order: block, then transaction, then address.
            block_service = StorageBlockService(
                database=database,
                dependents=(TransactionService(database), AddressService(database)),
            )

        network_monitor = config.network_monitor
        if network_monitor is None:
            if config.event_source is None:
                raise ValueError("NodeConfig needs either a network_monitor or an event_source")
            requester = config.requester
            if requester is None:
                if not hasattr(config.event_source, "request_blocks"):
                    raise ValueError("Event source cannot answer block requests; pass a requester")
                requester = config.event_source  # type: ignore[assignment]
            network_monitor = EventSourceMonitor(
                bus=bus,
                event_source=config.event_source,
                requester=requester,
            )

        node = cls(
            bus=bus,
            network_monitor=network_monitor,
            block_service=block_service,
            genesis=config.genesis,
            network=config.network,
            stats_interval=config.stats_interval,
            parallel_confirm=config.parallel_confirm,
            time_fn=config.time_fn,
            database=database,
        )

        if config.api_config is not None:
            node.api_server = ApiServer(config=config.api_config, progress_getter=node.get_progress)

        return node

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        """
        Load or create the chain state, then start the network monitor.

        On a fresh start the genesis block is published on the bus before
        anything is requested from the network.

        Raises:
            RuntimeError: If the node was already started.
            ChainStateError: If the persisted chain state was built on a
                different genesis block.
        """
        if self._started:
            raise RuntimeError("Node already started")
        self._started = True

        self.bus.register(Block, self.on_block)
        self.bus.register(NetworkReadyEvent, self._on_ready)
        self.bus.register(NetworkStopEvent, self._on_stop)
        self.bus.register(NetworkErrorEvent, self._on_error)
        self.bus.register(NetworkDisconnectedEvent, self._on_disconnected)
        self.bus.on_any(self._observe)

        self.blockchain = await self.block_service.get_blockchain()
        if self.blockchain is None:
            logger.info(
                "No chain state found for %s, starting from genesis %s",
                self.network,
                self.genesis.hash.short(),
            )
            self.blockchain = BlockChain()
            await self.bus.process(self.genesis)
        elif self.blockchain.hash_at(0) != self.genesis.hash:
            raise ChainStateError(
                f"Persisted chain state starts at {self.blockchain.hash_at(0)}, "
                f"configured genesis is {self.genesis.hash}"
            )
        else:
            logger.info(
                "Resuming %s at height %d (tip %s)",
                self.network,
                self.blockchain.tip_height,
                self.blockchain.tip.short(),
            )

        metrics.tip_height.set(self.blockchain.tip_height)
        self._last_stats_height = self.blockchain.tip_height
        self._last_stats_time = self.time_fn()

        # Genesis itself could not be indexed. Nothing to synchronize.
        if self._fault is not None:
            return

        await self.network_monitor.start()

    def stop(self, reason: BaseException | None = None) -> None:
        """
        Request shutdown.

        Aborts the network monitor. A non-None reason marks the stop as
        fatal: the chain state is not saved and `run` raises.
        """
        if reason is not None and self._fault is None:
            self._fault = reason
        self.network_monitor.abort(reason)
        self._shutdown.set()

    async def run(self, *, install_signal_handlers: bool = False) -> None:
        """
        Run the node until shutdown.

        Returns once the network monitor stopped and the chain state was
        saved.

        Args:
            install_signal_handlers: Whether to handle SIGINT/SIGTERM.
                Disable for testing or non-main threads.

        Raises:
            NodeAbortedError: If a fatal fault stopped the node. The fault
                is chained as the cause.
        """
        if install_signal_handlers:
            self._install_signal_handlers()

        try:
            await self.start()
            if self._fault is None:
                async with asyncio.TaskGroup() as tg:
                    tg.create_task(self._stats_loop())
                    if self.api_server is not None:
                        tg.create_task(self.api_server.run())
                    tg.create_task(self._wait_shutdown())
        finally:
            if self.database is not None:
                self.database.close()

        if self._fault is not None:
            raise NodeAbortedError(self._fault) from self._fault

    @property
    def is_running(self) -> bool:
        """Check if node is started and not shut down."""
        return self._started and not self._shutdown.is_set()

    @property
    def fault(self) -> BaseException | None:
        """The fatal error that stopped the node, if any."""
        return self._fault

    def _install_signal_handlers(self) -> None:
        """
        Install signal handlers for graceful shutdown.

        Silently ignores errors if handlers cannot be installed.
        This happens in non-main threads or embedded contexts.
        """
        try:
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(sig, self.stop)
        except (ValueError, RuntimeError):
            pass

    async def _wait_shutdown(self) -> None:
        """Wait for the shutdown signal, then for the monitor to drain."""
        await self._shutdown.wait()

        # The monitor publishes its stop event last; the chain state is
        # saved in that handler.
        await self.network_monitor.wait_stopped()

        if self.api_server is not None:
            self.api_server.stop()

    # -------------------------------------------------------------------------
    # Block handling
    # -------------------------------------------------------------------------

    async def on_block(self, block: Block) -> None:
        """
        Handle a block published on the bus.

        Blocks are handled one at a time. A block whose parent is not
        connected stays cached and triggers a request from the tip. A
        connected block is proposed to the chain state, and the resulting
        delta is applied to the services. Cached children waiting for it
        are then handled the same way, lowest height first.
        """
        async with self._lock:
            if self._fault is not None:
                logger.debug("Ignoring block %s after fatal error", block.hash.short())
                return

            chain = self._require_chain()
            self.block_cache.add(block)
            self.inventory.mark_received(block.hash)

            if not chain.has_data(block.prev_hash):
                logger.info(
                    "Block %s has unknown parent %s, requesting from tip",
                    block.hash.short(),
                    block.prev_hash.short(),
                )
                self.inventory.announce(block.prev_hash)
                await self.request_from_tip()
                return

            pending = deque([block])
            while pending and self._fault is None:
                current = pending.popleft()
                if await self._connect(current):
                    pending.extend(c.block for c in self.block_cache.get_children(current.hash))

    async def _connect(self, block: Block) -> bool:
        """
        Propose one block and apply its delta.

        Returns:
            True if the block was newly connected and its delta applied.
        """
        chain = self._require_chain()
        already_known = chain.has_data(block.hash)

        with metrics.block_processing_time.time():
            delta = chain.propose_new_block(block)

            height = chain.height_of(block.hash)
            work = chain.work_of(block.hash)
            assert height is not None and work is not None
            self.block_cache.annotate(block.hash, height, work)

            if already_known:
                return False

            self._blocks_processed += 1
            metrics.blocks_processed.inc()
            if delta.is_reorg:
                self._reorgs += 1
                metrics.reorgs.inc()

            try:
                await self._apply_delta(delta)
            except Exception as exc:
                logger.error(
                    "Failed to apply delta of block %s (%d unconfirmed, %d confirmed): %r",
                    block.hash.short(),
                    len(delta.unconfirmed),
                    len(delta.confirmed),
                    exc,
                )
                self.stop(exc)
                return False

        self.block_cache.prune(chain.tip_height)
        metrics.tip_height.set(chain.tip_height)
        metrics.cache_size.set(len(self.block_cache))
        return True

    async def _apply_delta(self, delta: ChainDelta) -> None:
        """Unconfirm the abandoned blocks, then confirm the adopted ones."""
        for block_hash in delta.unconfirmed:
            await self.block_service.unconfirm(self._cached_block(block_hash, "unconfirm"))
            metrics.blocks_unconfirmed.inc()

        blocks = [self._cached_block(h, "confirm") for h in delta.confirmed]
        if self.parallel_confirm and len(blocks) > 1:
            async with asyncio.TaskGroup() as tg:
                for block in blocks:
                    tg.create_task(self.block_service.confirm(block))
            metrics.blocks_confirmed.inc(len(blocks))
            return

        for block in blocks:
            await self.block_service.confirm(block)
            metrics.blocks_confirmed.inc()

    def _cached_block(self, block_hash: BlockHash, operation: str) -> Block:
        cached = self.block_cache.get(block_hash)
        if cached is None:
            raise ServiceError(operation, block_hash, "block body is no longer cached")
        return cached.block

    async def request_from_tip(self) -> None:
        """Ask the network for the blocks following the canonical tip."""
        chain = self._require_chain()
        locator = chain.get_block_locator()
        logger.info(
            "Requesting blocks from height %d with a locator of %d hashes",
            chain.tip_height,
            len(locator),
        )
        await self.network_monitor.request_blocks(locator)

    def _require_chain(self) -> BlockChain:
        if self.blockchain is None:
            raise ChainStateError("Chain state not loaded; call start() first")
        return self.blockchain

    # -------------------------------------------------------------------------
    # Network lifecycle
    # -------------------------------------------------------------------------

    async def _on_ready(self, _event: NetworkReadyEvent) -> None:
        logger.info("Network ready")
        await self.request_from_tip()

    async def _on_stop(self, event: NetworkStopEvent) -> None:
        """Persist the chain state, unless a fatal error left the services behind."""
        if self._fault is not None:
            logger.warning(
                "Network stopped after fatal error %r; chain state not saved", self._fault
            )
        elif self.blockchain is not None:
            await self.block_service.save_blockchain(self.blockchain)
            logger.info("Network stopped (%r); chain state saved", event.reason)
        self._shutdown.set()

    async def _on_error(self, event: NetworkErrorEvent) -> None:
        logger.error("Network error: %r", event.error)
        metrics.network_errors.inc()

    async def _on_disconnected(self, _event: NetworkDisconnectedEvent) -> None:
        logger.warning("Network disconnected")

    def _observe(self, item: object) -> None:
        name = type(item).__name__
        logger.debug("Bus processed %s", name)
        metrics.events_processed.labels(event_type=name).inc()

    # -------------------------------------------------------------------------
    # Statistics
    # -------------------------------------------------------------------------

    async def _stats_loop(self) -> None:
        """Report sync velocity every `stats_interval` seconds until shutdown."""
        while not self._shutdown.is_set():
            try:
                await asyncio.wait_for(self._shutdown.wait(), timeout=self.stats_interval)
            except TimeoutError:
                self.report_stats()

    def report_stats(self) -> None:
        """
        Log and export the tip height growth since the previous report.

        Velocity is `(height - previous_height) * 1000 / elapsed_ms` blocks
        per second. No-op until the chain state exists.
        """
        if self.blockchain is None:
            return

        now = self.time_fn()
        height = self.blockchain.tip_height

        if self._last_stats_height is not None:
            elapsed_ms = (now - self._last_stats_time) * 1000
            if elapsed_ms > 0:
                self._velocity = (height - self._last_stats_height) * 1000 / elapsed_ms

        self._last_stats_height = height
        self._last_stats_time = now

        metrics.sync_velocity.set(self._velocity)
        logger.info(
            "Sync status: height %d, tip %s, velocity %.2f blocks/s, cache %d (%d orphans)",
            height,
            self.blockchain.tip.short(),
            self._velocity,
            len(self.block_cache),
            self.block_cache.orphan_count,
        )

    def get_progress(self) -> SyncProgress | None:
        """
        Get current sync progress.

        Returns:
            Snapshot of node state for monitoring, or None until `start`
            has loaded or created the chain state.
        """
        chain = self.blockchain
        if chain is None:
            return None
        return SyncProgress(
            tip=chain.tip,
            tip_height=chain.tip_height,
            blocks_processed=self._blocks_processed,
            reorgs=self._reorgs,
            cache_size=len(self.block_cache),
            orphan_count=self.block_cache.orphan_count,
            inventory_size=len(self.inventory),
            velocity=self._velocity,
        )
