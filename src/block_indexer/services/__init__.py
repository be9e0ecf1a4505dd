"""
Indexing services driven by the node.

Each service follows the canonical chain through confirm/unconfirm calls.
The block service heads the chain and owns chain-state persistence.
"""

from .address import AddressService
from .base import BlockService, IndexService
from .block import StorageBlockService
from .transaction import TransactionService

__all__ = [
    "AddressService",
    "BlockService",
    "IndexService",
    "StorageBlockService",
    "TransactionService",
]
