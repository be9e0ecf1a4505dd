"""
Database namespace definitions for storage tables.

Defines table names and schema constants for SQLite storage.
Each namespace represents a logical grouping of related data.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class BlockNamespace:
    """
    Namespace for block bodies.

    Blocks are stored by hash as JSON, with their height alongside.
    """

    TABLE_NAME: str = "blocks"
    """Table name for block storage."""

    CREATE_TABLE: str = """
        CREATE TABLE IF NOT EXISTS blocks (
            hash BLOB PRIMARY KEY,
            height INTEGER NOT NULL,
            data TEXT NOT NULL
        )
    """
    """SQL to create blocks table."""

    CREATE_INDEX: str = """
        CREATE INDEX IF NOT EXISTS idx_blocks_height ON blocks(height)
    """
    """SQL to create height index."""


@dataclass(frozen=True, slots=True)
class HeightIndexNamespace:
    """
    Namespace for the canonical height-to-hash mapping.

    Only blocks on the canonical chain appear here.
    """

    TABLE_NAME: str = "height_index"
    """Table name for the height index."""

    CREATE_TABLE: str = """
        CREATE TABLE IF NOT EXISTS height_index (
            height INTEGER PRIMARY KEY,
            hash BLOB NOT NULL
        )
    """
    """SQL to create height index table."""


@dataclass(frozen=True, slots=True)
class TransactionNamespace:
    """
    Namespace for the transaction index.

    One row per (transaction, containing block). A txid confirmed in more
    than one block has a row for each, and lookups return the newest.
    """

    TABLE_NAME: str = "transactions"
    """Table name for the transaction index."""

    CREATE_TABLE: str = """
        CREATE TABLE IF NOT EXISTS transactions (
            txid TEXT NOT NULL,
            block_hash BLOB NOT NULL,
            PRIMARY KEY (txid, block_hash)
        )
    """
    """SQL to create transactions table."""

    CREATE_INDEX: str = """
        CREATE INDEX IF NOT EXISTS idx_transactions_block ON transactions(block_hash)
    """
    """SQL to create block lookup index."""


@dataclass(frozen=True, slots=True)
class AddressNamespace:
    """
    Namespace for the address index.

    One row per (address, transaction, containing block).
    """

    TABLE_NAME: str = "addresses"
    """Table name for the address index."""

    CREATE_TABLE: str = """
        CREATE TABLE IF NOT EXISTS addresses (
            address TEXT NOT NULL,
            txid TEXT NOT NULL,
            block_hash BLOB NOT NULL,
            PRIMARY KEY (address, txid, block_hash)
        )
    """
    """SQL to create addresses table."""


@dataclass(frozen=True, slots=True)
class ChainStateNamespace:
    """
    Namespace for the persisted chain state.

    Uses a key-value pattern with fixed keys.
    """

    TABLE_NAME: str = "chain_state"
    """Table name for chain-state storage."""

    KEY_SNAPSHOT: str = "snapshot"
    """Key for the chain-state snapshot."""

    CREATE_TABLE: str = """
        CREATE TABLE IF NOT EXISTS chain_state (
            key TEXT PRIMARY KEY,
            data TEXT NOT NULL
        )
    """
    """SQL to create chain-state table."""


# Singleton instances for convenient access
BLOCKS = BlockNamespace()
HEIGHT_INDEX = HeightIndexNamespace()
TRANSACTIONS = TransactionNamespace()
ADDRESSES = AddressNamespace()
CHAIN_STATE = ChainStateNamespace()

ALL_NAMESPACES = [BLOCKS, HEIGHT_INDEX, TRANSACTIONS, ADDRESSES, CHAIN_STATE]
"""All namespace definitions for schema initialization."""
