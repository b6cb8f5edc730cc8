import math
import struct
from decimal import Decimal
from typing import Tuple


def words_to_uint32(low: int, high: int) -> int:
    """Combine two words with the low word supplying bits 0..15."""
    return ((high & 0xFFFF) << 16) | (low & 0xFFFF)


def uint32_to_words(value: int) -> Tuple[int, int]:
    """Split a 32-bit quantity into (low, high) words."""
    value &= 0xFFFFFFFF
    return value & 0xFFFF, (value >> 16) & 0xFFFF


def uint32_to_float32(value: int) -> float:
    """Reinterpret a 32-bit pattern as an IEEE-754 single (little-endian)."""
    return struct.unpack('<f', struct.pack('<I', value & 0xFFFFFFFF))[0]


def float32_to_uint32(value: float) -> int:
    """Round a Python float to single precision and return its bit pattern.

    Values beyond the float32 range become signed infinity, matching what a
    typed-array store does.
    """
    try:
        packed = struct.pack('<f', value)
    except OverflowError:
        packed = struct.pack('<f', math.copysign(math.inf, value))
    return struct.unpack('<I', packed)[0]


def format_float32(value: float) -> str:
    """Render a float the way the monitor shows it.

    Non-finite values are spelled ``Infinity``, ``-Infinity`` and ``NaN``;
    integral values drop the trailing ``.0``. Magnitudes from 1e-6 up to
    1e21 are written in plain decimal, others as ``1.5e-9`` / ``1e+21``.
    """
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    text = repr(value)
    if "e" not in text:
        return text
    if 1e-6 <= abs(value) < 1e21:
        return format(Decimal(text), "f")
    mantissa, _, exp = text.partition("e")
    return f"{mantissa}e{int(exp):+d}"
