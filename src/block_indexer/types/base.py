"""Reusable, strict base models for the indexer."""

from typing import Any, Self

from pydantic import BaseModel, ConfigDict


class IndexerModel(BaseModel):
    """
    A base model shared by every serializable indexer type.

    Arbitrary types are allowed so custom identifier types (block hashes)
    can appear as fields with their own validation hooks.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        validate_default=True,
        arbitrary_types_allowed=True,
    )

    def copy(self: Self, **kwargs: Any) -> Self:
        """Create a copy of the model with the updated fields that are validated."""
        return self.__class__(**(self.model_dump(exclude_unset=True) | kwargs))


class StrictBaseModel(IndexerModel):
    """A strict, immutable pydantic base model."""

    model_config = IndexerModel.model_config | {
        "extra": "forbid",
        "frozen": True,
    }
