"""
Block identifier type.

A block hash is a 32-byte value. It is displayed, logged and serialized as
64 hexadecimal characters in the byte order used by block explorers (the
order a parser produces after reversing the wire bytes).
"""

from __future__ import annotations

from typing import Any, ClassVar, Iterable, Self, SupportsIndex

from pydantic.annotated_handlers import GetCoreSchemaHandler
from pydantic_core import core_schema


def _coerce_to_bytes(value: Any) -> bytes:
    """
    Coerce a variety of inputs to raw bytes.

    Accepts:
      - `bytes` / `bytearray` (returned as immutable `bytes`)
      - Iterables of integers in [0, 255]
      - Hex strings, with or without a '0x' prefix (e.g. "0xdeadbeef" or "deadbeef")

    Raises:
      ValueError / TypeError if conversion is not possible or out-of-range.
    """
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str):
        return bytes.fromhex(value.removeprefix("0x"))
    if isinstance(value, Iterable):
        return bytes(bytearray(value))
    return bytes(value)


class BlockHash(bytes):
    """
    Fixed-size 32-byte block identifier.

    Instances are immutable byte objects with strict length checking.
    """

    LENGTH: ClassVar[int] = 32
    """The exact number of bytes in a block hash."""

    def __new__(cls, value: Any = b"") -> Self:
        """
        Create and validate a new block hash.

        Args:
            value: Any value coercible to bytes (see `_coerce_to_bytes`).

        Raises:
            ValueError: If the resulting byte length differs from `LENGTH`.
        """
        b = _coerce_to_bytes(value)
        if len(b) != cls.LENGTH:
            raise ValueError(f"{cls.__name__} expects exactly {cls.LENGTH} bytes, got {len(b)}")
        return super().__new__(cls, b)

    @classmethod
    def zero(cls) -> Self:
        """
        The all-zero hash.

        Used as the parent of a genesis block.
        """
        return cls(b"\x00" * cls.LENGTH)

    @property
    def is_zero(self) -> bool:
        """Whether this is the all-zero hash."""
        return not any(self)

    @classmethod
    def __get_pydantic_core_schema__(
        cls, source_type: Any, handler: GetCoreSchemaHandler
    ) -> core_schema.CoreSchema:
        """
        Hook into Pydantic's validation system.

        1. If the input is already an instance of the class, accept it.
        2. Bytes or hex strings are coerced and length-checked.
        3. For serialization (e.g., to JSON), convert to hex string.
        """
        return core_schema.union_schema(
            [
                core_schema.is_instance_schema(cls),
                core_schema.chain_schema(
                    [
                        core_schema.union_schema(
                            [core_schema.str_schema(), core_schema.bytes_schema()]
                        ),
                        core_schema.no_info_plain_validator_function(cls),
                    ]
                ),
            ],
            serialization=core_schema.plain_serializer_function_ser_schema(lambda x: x.hex()),
        )

    def __repr__(self) -> str:
        """Return a string representation of the hash."""
        return f"{type(self).__name__}({self.hex()})"

    def __str__(self) -> str:
        """Return the hex form, which is how hashes appear in logs."""
        return self.hex()

    def __hash__(self) -> int:
        """Return the hash of the bytes."""
        return hash((type(self), bytes(self)))

    def hex(self, sep: str | bytes | None = None, bytes_per_sep: SupportsIndex = 1) -> str:
        """Return the hexadecimal string representation of the underlying bytes."""
        return bytes(self).hex() if sep is None else bytes(self).hex(sep, bytes_per_sep)

    def short(self) -> str:
        """Abbreviated hex form for log lines."""
        return f"{self.hex()[:8]}..{self.hex()[-4:]}"
