"""
Block indexer CLI entry point.

Replay a JSON-lines file of blocks through the node and index them.

Usage::

    python -m block_indexer --genesis genesis.yaml --blocks blocks.jsonl
    python -m block_indexer --genesis genesis.yaml --blocks blocks.jsonl --database index.sqlite3
    python -m block_indexer --genesis genesis.yaml --blocks blocks.jsonl --api-port 3001

Options:
    --genesis      Path to genesis YAML file (required)
    --blocks       Path to JSON-lines block file (required)
    --database     SQLite database file (default: db/indexer.sqlite3)
    --api-port     Serve /health, /status and /metrics on this port
    --batch-size   Blocks answered per locator request (default: 500)
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from block_indexer.api import ApiServerConfig
from block_indexer.genesis import GenesisConfig
from block_indexer.networking import MAX_BLOCKS_PER_RESPONSE, ReplayEventSource
from block_indexer.node import DEFAULT_DATABASE_PATH, Node, NodeConfig
from block_indexer.types import IndexerError

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure root logging with timestamps."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def build_config(
    genesis_path: Path,
    blocks_path: Path,
    database_path: Path | str = DEFAULT_DATABASE_PATH,
    api_port: int | None = None,
    batch_size: int = MAX_BLOCKS_PER_RESPONSE,
) -> NodeConfig:
    """
    Assemble the node configuration from CLI arguments.

    Raises:
        FileNotFoundError: If an input file does not exist.
        yaml.YAMLError: If the genesis file is not valid YAML.
        pydantic.ValidationError: If the genesis or a block is invalid.
    """
    genesis = GenesisConfig.from_yaml_file(genesis_path)
    source = ReplayEventSource.from_file(blocks_path, batch_size=batch_size)

    return NodeConfig(
        genesis=genesis.to_block(),
        network=genesis.network,
        database_path=database_path,
        event_source=source,
        api_config=ApiServerConfig(port=api_port) if api_port is not None else None,
    )


async def run_node(config: NodeConfig) -> None:
    """Run the node until the block file is exhausted or a signal arrives."""
    node = Node.create(config)
    await node.run(install_signal_handlers=True)

    progress = node.get_progress()
    if progress is None:
        return
    logger.info(
        "Indexed up to height %d (tip %s): %d blocks processed, %d reorgs",
        progress.tip_height,
        progress.tip.short(),
        progress.blocks_processed,
        progress.reorgs,
    )


def main(argv: list[str] | None = None) -> int:
    """CLI entry point. Returns the process exit code."""
    parser = argparse.ArgumentParser(
        description="Blockchain block indexer",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--genesis",
        required=True,
        type=Path,
        help="Path to genesis YAML file",
    )
    parser.add_argument(
        "--blocks",
        required=True,
        type=Path,
        help="Path to JSON-lines file of blocks to replay",
    )
    parser.add_argument(
        "--database",
        type=Path,
        default=DEFAULT_DATABASE_PATH,
        help=f"SQLite database file (default: {DEFAULT_DATABASE_PATH})",
    )
    parser.add_argument(
        "--api-port",
        type=int,
        default=None,
        help="Serve the status API on this port (default: disabled)",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=MAX_BLOCKS_PER_RESPONSE,
        help=f"Blocks answered per locator request (default: {MAX_BLOCKS_PER_RESPONSE})",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args(argv)

    setup_logging(args.verbose)

    try:
        config = build_config(
            args.genesis,
            args.blocks,
            database_path=args.database,
            api_port=args.api_port,
            batch_size=args.batch_size,
        )
    except (OSError, yaml.YAMLError, ValidationError) as e:
        logger.error("Invalid input: %s", e)
        return 2

    try:
        asyncio.run(run_node(config))
    except IndexerError as e:
        logger.error("%s", e.message)
        return 1
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
