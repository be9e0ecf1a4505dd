"""
SQLite database implementation for indexer storage.

This module provides persistent storage for:

- Confirmed block bodies indexed by hash
- The canonical height-to-hash index
- Transaction and address indexes
- The chain-state snapshot

Blocks and snapshots are stored as JSON produced by their pydantic models.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from pydantic import ValidationError

from block_indexer.chain import ChainSnapshot
from block_indexer.containers import Block
from block_indexer.types import BlockHash, StorageError

from .namespaces import (
    ADDRESSES,
    ALL_NAMESPACES,
    BLOCKS,
    CHAIN_STATE,
    HEIGHT_INDEX,
    TRANSACTIONS,
)

logger = logging.getLogger(__name__)


class SQLiteDatabase:
    """
    SQLite implementation of the Database protocol.

    Stores indexer data in a single SQLite file.

    Every write outside `transaction()` commits on its own. Inside it,
    writes are committed when the outermost block exits cleanly and rolled
    back if it raises.
    """

    def __init__(self, path: Path | str) -> None:
        """
        Initialize SQLite database.

        Creates database file and tables if they don't exist.

        Args:
            path: Path to SQLite database file.
                  Use ":memory:" for in-memory database.
        """
        self._path = Path(path) if isinstance(path, str) else path

        self._conn = sqlite3.connect(
            str(self._path),
            check_same_thread=False,
        )

        # Row factory enables dict-like access: row["column_name"].
        self._conn.row_factory = sqlite3.Row

        self._depth = 0
        """Nesting depth of open transaction() blocks."""

        self._init_schema()

    def _init_schema(self) -> None:
        """Create tables and indexes if they don't exist."""
        cursor = self._conn.cursor()
        for namespace in ALL_NAMESPACES:
            cursor.execute(namespace.CREATE_TABLE)
            create_index = getattr(namespace, "CREATE_INDEX", None)
            if create_index is not None:
                cursor.execute(create_index)
        self._conn.commit()

    def _commit(self) -> None:
        """Commit unless an outer transaction() block owns the commit."""
        if self._depth == 0:
            self._conn.commit()

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """
        Group writes into one atomic unit.

        Nested blocks join the outermost one. Only the outermost block
        commits or rolls back.
        """
        self._depth += 1
        try:
            yield
        except BaseException:
            self._depth -= 1
            if self._depth == 0:
                self._conn.rollback()
            raise
        else:
            self._depth -= 1
            if self._depth == 0:
                self._conn.commit()

    # -------------------------------------------------------------------------
    # Block Operations
    # -------------------------------------------------------------------------

    def get_block(self, block_hash: BlockHash) -> Block | None:
        """Retrieve a block by hash."""
        cursor = self._conn.cursor()
        cursor.execute(
            f"SELECT data FROM {BLOCKS.TABLE_NAME} WHERE hash = ?",
            (bytes(block_hash),),
        )
        row = cursor.fetchone()
        if row is None:
            return None
        return Block.model_validate_json(row["data"])

    def put_block(self, block: Block, height: int) -> None:
        """Store a block with its height."""
        cursor = self._conn.cursor()

        # INSERT OR REPLACE: the same block may be confirmed, unconfirmed and
        # confirmed again across reorgs.
        cursor.execute(
            f"""
            INSERT OR REPLACE INTO {BLOCKS.TABLE_NAME} (hash, height, data)
            VALUES (?, ?, ?)
            """,
            (bytes(block.hash), height, block.model_dump_json()),
        )
        self._commit()

    def delete_block(self, block_hash: BlockHash) -> None:
        """Remove a block."""
        cursor = self._conn.cursor()
        cursor.execute(
            f"DELETE FROM {BLOCKS.TABLE_NAME} WHERE hash = ?",
            (bytes(block_hash),),
        )
        self._commit()

    def has_block(self, block_hash: BlockHash) -> bool:
        """Check if a block exists in storage."""
        cursor = self._conn.cursor()
        cursor.execute(
            f"SELECT 1 FROM {BLOCKS.TABLE_NAME} WHERE hash = ?",
            (bytes(block_hash),),
        )
        return cursor.fetchone() is not None

    # -------------------------------------------------------------------------
    # Height Index Operations
    # -------------------------------------------------------------------------
    #
    # During reorgs the same height points to different blocks at different
    # times. The index always reflects the canonical chain as confirmed so far.

    def get_hash_by_height(self, height: int) -> BlockHash | None:
        """Canonical block hash at a height."""
        cursor = self._conn.cursor()
        cursor.execute(
            f"SELECT hash FROM {HEIGHT_INDEX.TABLE_NAME} WHERE height = ?",
            (height,),
        )
        row = cursor.fetchone()
        if row is None:
            return None
        return BlockHash(row["hash"])

    def put_hash_by_height(self, height: int, block_hash: BlockHash) -> None:
        """Record the canonical block at a height."""
        cursor = self._conn.cursor()
        cursor.execute(
            f"""
            INSERT OR REPLACE INTO {HEIGHT_INDEX.TABLE_NAME} (height, hash)
            VALUES (?, ?)
            """,
            (height, bytes(block_hash)),
        )
        self._commit()

    def delete_height(self, height: int) -> None:
        """Remove the canonical entry at a height."""
        cursor = self._conn.cursor()
        cursor.execute(
            f"DELETE FROM {HEIGHT_INDEX.TABLE_NAME} WHERE height = ?",
            (height,),
        )
        self._commit()

    def get_indexed_height(self) -> int | None:
        """Highest height in the index."""
        cursor = self._conn.cursor()
        cursor.execute(f"SELECT MAX(height) AS top FROM {HEIGHT_INDEX.TABLE_NAME}")
        row = cursor.fetchone()
        return None if row is None else row["top"]

    # -------------------------------------------------------------------------
    # Transaction Index Operations
    # -------------------------------------------------------------------------

    def get_transaction_block(self, txid: str) -> BlockHash | None:
        """Most recently indexed block containing a transaction."""
        cursor = self._conn.cursor()
        cursor.execute(
            f"""
            SELECT block_hash FROM {TRANSACTIONS.TABLE_NAME}
            WHERE txid = ? ORDER BY rowid DESC LIMIT 1
            """,
            (txid,),
        )
        row = cursor.fetchone()
        if row is None:
            return None
        return BlockHash(row["block_hash"])

    def put_transaction(self, txid: str, block_hash: BlockHash) -> None:
        """Record the block containing a transaction."""
        cursor = self._conn.cursor()
        cursor.execute(
            f"""
            INSERT OR REPLACE INTO {TRANSACTIONS.TABLE_NAME} (txid, block_hash)
            VALUES (?, ?)
            """,
            (txid, bytes(block_hash)),
        )
        self._commit()

    def delete_transaction(self, txid: str, block_hash: BlockHash) -> None:
        """Remove one block's record of a transaction."""
        cursor = self._conn.cursor()
        cursor.execute(
            f"DELETE FROM {TRANSACTIONS.TABLE_NAME} WHERE txid = ? AND block_hash = ?",
            (txid, bytes(block_hash)),
        )
        self._commit()

    # -------------------------------------------------------------------------
    # Address Index Operations
    # -------------------------------------------------------------------------

    def get_address_txids(self, address: str) -> list[str]:
        """Confirmed transactions touching an address."""
        cursor = self._conn.cursor()
        cursor.execute(
            f"SELECT DISTINCT txid FROM {ADDRESSES.TABLE_NAME} WHERE address = ? ORDER BY txid",
            (address,),
        )
        return [row["txid"] for row in cursor.fetchall()]

    def put_address_txid(self, address: str, txid: str, block_hash: BlockHash) -> None:
        """Link an address to a transaction confirmed in `block_hash`."""
        cursor = self._conn.cursor()
        cursor.execute(
            f"""
            INSERT OR IGNORE INTO {ADDRESSES.TABLE_NAME} (address, txid, block_hash)
            VALUES (?, ?, ?)
            """,
            (address, txid, bytes(block_hash)),
        )
        self._commit()

    def delete_address_txid(self, address: str, txid: str, block_hash: BlockHash) -> None:
        """Drop the link contributed by `block_hash`."""
        cursor = self._conn.cursor()
        cursor.execute(
            f"""
            DELETE FROM {ADDRESSES.TABLE_NAME}
            WHERE address = ? AND txid = ? AND block_hash = ?
            """,
            (address, txid, bytes(block_hash)),
        )
        self._commit()

    # -------------------------------------------------------------------------
    # Chain State
    # -------------------------------------------------------------------------

    def get_chain_snapshot(self) -> ChainSnapshot | None:
        """Retrieve the persisted chain state."""
        cursor = self._conn.cursor()
        cursor.execute(
            f"SELECT data FROM {CHAIN_STATE.TABLE_NAME} WHERE key = ?",
            (CHAIN_STATE.KEY_SNAPSHOT,),
        )
        row = cursor.fetchone()
        if row is None:
            return None
        try:
            return ChainSnapshot.model_validate_json(row["data"])
        except ValidationError as exc:
            raise StorageError(f"Corrupt chain-state snapshot in {self._path}") from exc

    def put_chain_snapshot(self, snapshot: ChainSnapshot) -> None:
        """Replace the persisted chain state."""
        cursor = self._conn.cursor()
        cursor.execute(
            f"""
            INSERT OR REPLACE INTO {CHAIN_STATE.TABLE_NAME} (key, data)
            VALUES (?, ?)
            """,
            (CHAIN_STATE.KEY_SNAPSHOT, snapshot.model_dump_json()),
        )
        self._commit()
        logger.debug("Saved chain snapshot with %d entries", len(snapshot.entries))

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def close(self) -> None:
        """Close database connection."""
        self._conn.close()

    def __enter__(self) -> SQLiteDatabase:
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()
