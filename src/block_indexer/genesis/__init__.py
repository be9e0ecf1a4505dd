"""Genesis block configuration."""

from .config import GenesisConfig

__all__ = ["GenesisConfig"]
