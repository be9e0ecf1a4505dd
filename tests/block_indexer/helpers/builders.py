"""
Factory functions for constructing test fixtures.

Provides deterministic builders for blocks, transactions and chains.
Blocks are identified by readable labels hashed into 32-byte values.
"""

from __future__ import annotations

import hashlib
from typing import Final

from block_indexer.containers import Block, Transaction
from block_indexer.types import BlockHash

EASY_BITS: Final = 0x207FFFFF
"""Regtest difficulty. Each block adds 2 units of work."""

HARD_BITS: Final = 0x1F00FFFF
"""A much harder target. One such block outweighs thousands of easy ones."""


def make_hash(label: str) -> BlockHash:
    """Create a deterministic block hash from a label."""
    return BlockHash(hashlib.sha256(label.encode()).digest())


def make_txid(label: str) -> str:
    """Create a deterministic transaction id from a label."""
    return hashlib.sha256(f"tx:{label}".encode()).hexdigest()


def make_transaction(label: str, *addresses: str) -> Transaction:
    """Create a transaction touching the given addresses."""
    return Transaction(txid=make_txid(label), addresses=addresses)


def make_block(
    label: str,
    parent: Block | BlockHash | None = None,
    *,
    bits: int = EASY_BITS,
    transactions: tuple[Transaction, ...] = (),
) -> Block:
    """
    Create a block on top of a parent.

    A None parent produces a genesis block.
    """
    if parent is None:
        prev_hash = BlockHash.zero()
    elif isinstance(parent, Block):
        prev_hash = parent.hash
    else:
        prev_hash = parent
    return Block(
        hash=make_hash(label),
        prev_hash=prev_hash,
        bits=bits,
        transactions=transactions,
    )


def make_genesis_block() -> Block:
    """Create the genesis block used across tests."""
    return make_block("genesis", transactions=(make_transaction("coinbase-0", "addr-genesis"),))


def make_chain(
    parent: Block,
    length: int,
    *,
    prefix: str = "b",
    bits: int = EASY_BITS,
) -> list[Block]:
    """
    Create `length` blocks extending `parent`.

    Labels are `{prefix}{n}` for n starting at 1.
    """
    blocks: list[Block] = []
    current = parent
    for n in range(1, length + 1):
        current = make_block(f"{prefix}{n}", current, bits=bits)
        blocks.append(current)
    return blocks
