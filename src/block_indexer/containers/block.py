"""
Block container.

Blocks reach the indexer already parsed by the network layer. The indexer
only needs a block's identity, its parent link, its difficulty (to derive
proof-of-work), and the transactions the downstream services index.
"""

from __future__ import annotations

from pydantic import Field, field_validator

from block_indexer.types import BlockHash, StrictBaseModel

from .work import work_from_bits


class Transaction(StrictBaseModel):
    """A parsed transaction, reduced to what the indexes consume."""

    txid: str
    """Transaction identifier as 64 hex characters."""

    addresses: tuple[str, ...] = ()
    """Addresses touched by the transaction's inputs and outputs."""

    @field_validator("txid")
    @classmethod
    def _check_txid(cls, v: str) -> str:
        if len(v) != 64:
            raise ValueError(f"txid must be 64 hex characters, got {len(v)}")
        int(v, 16)
        return v.lower()


class Block(StrictBaseModel):
    """
    An immutable block as delivered by the network monitor.

    Height and cumulative work are not part of the block. The chain state
    assigns them once the parent is connected, and the block cache keeps
    that annotation next to the block body.
    """

    hash: BlockHash
    """Block identifier."""

    prev_hash: BlockHash
    """
    Identifier of the parent block.

    All-zero for a genesis block.
    """

    bits: int = Field(ge=0, le=0xFFFFFFFF)
    """Compact encoding of the proof-of-work target."""

    timestamp: int = 0
    """Header timestamp in seconds since the epoch."""

    transactions: tuple[Transaction, ...] = ()
    """Parsed transactions, in block order."""

    @field_validator("bits")
    @classmethod
    def _check_target(cls, v: int) -> int:
        # Raises on zero, negative or overflowing targets.
        work_from_bits(v)
        return v

    @property
    def work(self) -> int:
        """Expected number of hashes needed to produce this block."""
        return work_from_bits(self.bits)

    @property
    def is_genesis(self) -> bool:
        """Whether this block has no parent."""
        return self.prev_hash.is_zero
