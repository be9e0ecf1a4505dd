"""
Proof-of-work arithmetic.

The compact "bits" field packs a 256-bit target into 32 bits: one byte of
base-256 exponent and a 23-bit mantissa with a sign bit. The work a block
represents is the expected number of hash attempts needed to hit a hash
below its target.
"""

from __future__ import annotations

from typing import Final

_TWO_256: Final = 1 << 256

_SIGN_BIT: Final = 0x00800000
_MANTISSA_MASK: Final = 0x007FFFFF


def target_from_bits(bits: int) -> int:
    """
    Decode a compact target.

    Args:
        bits: The compact encoding from the block header.

    Returns:
        The full 256-bit target.

    Raises:
        ValueError: If the encoding is negative, zero or exceeds 256 bits.
    """
    exponent = bits >> 24
    mantissa = bits & _MANTISSA_MASK

    if mantissa != 0 and bits & _SIGN_BIT:
        raise ValueError(f"Negative target in bits 0x{bits:08x}")

    if exponent <= 3:
        target = mantissa >> (8 * (3 - exponent))
    else:
        target = mantissa << (8 * (exponent - 3))

    if target == 0:
        raise ValueError(f"Zero target in bits 0x{bits:08x}")
    if target >= _TWO_256:
        raise ValueError(f"Target overflows 256 bits in bits 0x{bits:08x}")
    return target


def work_from_bits(bits: int) -> int:
    """
    Work contributed by a block with the given compact target.

    Equal to floor(2**256 / (target + 1)).
    """
    return _TWO_256 // (target_from_bits(bits) + 1)
