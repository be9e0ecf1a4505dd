"""Block and transaction containers."""

from .block import Block, Transaction
from .work import target_from_bits, work_from_bits

__all__ = [
    "Block",
    "Transaction",
    "target_from_bits",
    "work_from_bits",
]
