"""Genesis configuration loader.

Loads the genesis block of the indexed network from a YAML file:

    NETWORK: livenet
    GENESIS_HASH: "000000000019d6689c085ae165831e934ff763ae46a2a6c172b3f1b60a8ce26f"
    GENESIS_BITS: 0x1d00ffff
    GENESIS_TIMESTAMP: 1231006505

Quote the hash. An unquoted hash made only of digits is read as a number
by YAML and rejected.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import Field, field_validator

from block_indexer.containers import Block, Transaction
from block_indexer.types import BlockHash, StrictBaseModel


class GenesisConfig(StrictBaseModel):
    """
    The starting point of the indexed chain.

    Every block the node connects traces its ancestry back to this block.
    A fresh node proposes it before requesting anything from the network.

    Field names use UPPERCASE to match the YAML convention.
    Pydantic aliases map them to snake_case Python attributes.
    """

    network: str = Field(default="livenet", alias="NETWORK")
    """Name of the network the genesis belongs to."""

    genesis_hash: BlockHash = Field(alias="GENESIS_HASH")
    """Hash of the genesis block."""

    genesis_bits: int = Field(alias="GENESIS_BITS", ge=0, le=0xFFFFFFFF)
    """Compact difficulty target of the genesis block."""

    genesis_timestamp: int = Field(default=0, alias="GENESIS_TIMESTAMP")
    """Header timestamp of the genesis block."""

    genesis_transactions: tuple[Transaction, ...] = Field(
        default=(), alias="GENESIS_TRANSACTIONS"
    )
    """Transactions of the genesis block, if they should be indexed."""

    @field_validator("genesis_hash", mode="before")
    @classmethod
    def reject_numeric_hash(cls, v: Any) -> Any:
        """YAML turns digit-only scalars into integers, losing leading zeros."""
        if isinstance(v, int):
            raise ValueError("GENESIS_HASH must be a quoted hex string")
        return v

    def to_block(self) -> Block:
        """Build the genesis block."""
        return Block(
            hash=self.genesis_hash,
            prev_hash=BlockHash.zero(),
            bits=self.genesis_bits,
            timestamp=self.genesis_timestamp,
            transactions=self.genesis_transactions,
        )

    @classmethod
    def from_yaml_file(cls, path: Path | str) -> GenesisConfig:
        """
        Load configuration from a YAML file.

        Raises:
            FileNotFoundError: If the file does not exist.
            yaml.YAMLError: If the file is not valid YAML.
            pydantic.ValidationError: If the data fails validation.
        """
        path = Path(path)
        with path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f)
        return cls.model_validate(data)

    @classmethod
    def from_yaml(cls, content: str) -> GenesisConfig:
        """
        Load configuration from a YAML string.

        Useful for testing or programmatic config generation.
        """
        data = yaml.safe_load(content)
        return cls.model_validate(data)
