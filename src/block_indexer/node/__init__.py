"""Node orchestrator for the block indexer."""

from .node import DEFAULT_DATABASE_PATH, DEFAULT_NETWORK, Node, NodeConfig

__all__ = ["DEFAULT_DATABASE_PATH", "DEFAULT_NETWORK", "Node", "NodeConfig"]
