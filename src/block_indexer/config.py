"""
Global configuration for the indexer.

This module contains environment-specific settings that apply across all modules.
"""

import os

_SUPPORTED_INDEXER_ENVS: list[str] = ["prod", "test"]

INDEXER_ENV = os.environ.get("INDEXER_ENV", "prod").lower()
"""The environment flag ('prod' or 'test'). Defaults to 'prod'."""

if INDEXER_ENV not in _SUPPORTED_INDEXER_ENVS:
    raise ValueError(
        f"Invalid INDEXER_ENV environment variable: '{INDEXER_ENV}'. "
        f"Supported values: {_SUPPORTED_INDEXER_ENVS}"
    )
