"""Word decoding helpers for the monitor table.

Centralizes the logic for turning one cached word (or an even/odd word
pair) into the bit cells, formatted value and raw hex shown for a row.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

from wordmon.core.address import DeviceAddress
from wordmon.core.cache import WordCache
from wordmon.core.formats import DisplayFormat, is_combined
from wordmon.utils.ieee754 import format_float32, uint32_to_float32, words_to_uint32


@dataclass(frozen=True)
class RowState:
    """Everything a view needs to draw one row."""

    address: DeviceAddress
    bits: Tuple[bool, ...]  # bit 15 first
    formatted: str
    raw: str
    suppressed: bool = False

    @property
    def row_id(self) -> str:
        return f"row-{self.address.key}-{self.address.addr}"

    @property
    def label(self) -> str:
        return self.address.label


def word_bits(word: int) -> Tuple[bool, ...]:
    """Bit vector of a word, most significant bit first."""
    word &= 0xFFFF
    return tuple(((word >> b) & 1) == 1 for b in range(15, -1, -1))


def hex16(word: int) -> str:
    return f"0x{word & 0xFFFF:04X}"


def hex32(value: int) -> str:
    return f"0x{value & 0xFFFFFFFF:08X}"


def to_int16(word: int) -> int:
    word &= 0xFFFF
    return word - 0x10000 if word & 0x8000 else word


def to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


def _printable(byte: int) -> str:
    return chr(byte) if 32 <= byte <= 126 else "."


def format_word(word: int, fmt: DisplayFormat) -> str:
    """Format a single word under one of the 16-bit formats."""
    word &= 0xFFFF
    if fmt == DisplayFormat.BIN:
        return f"{word:016b}"
    if fmt == DisplayFormat.I16:
        return str(to_int16(word))
    if fmt == DisplayFormat.HEX:
        return hex16(word)
    if fmt == DisplayFormat.ASCII:
        return _printable((word >> 8) & 0xFF) + _printable(word & 0xFF)
    return str(word)


def format_pair(low: int, high: int, fmt: DisplayFormat) -> str:
    """Format a low/high word pair under one of the 32-bit formats."""
    value = words_to_uint32(low, high)
    if fmt == DisplayFormat.I32:
        return str(to_int32(value))
    if fmt == DisplayFormat.F32:
        return format_float32(uint32_to_float32(value))
    return str(value)


def partner_of(address: DeviceAddress) -> DeviceAddress:
    """The other half of the even/odd pair this address belongs to."""
    return address.offset(1) if address.addr % 2 == 0 else address.offset(-1)


def render_row(address: DeviceAddress, cache: WordCache, fmt: DisplayFormat) -> RowState:
    """Compute the display state for one row.

    Absent words render as 0. Under a 32-bit format the even address shows
    the combined value (or nothing while its high word is unknown) and the
    odd address is suppressed.
    """
    cached: Optional[int] = cache.get(address)
    word = 0 if cached is None else cached
    bits = word_bits(word)

    if not is_combined(fmt):
        return RowState(address, bits, format_word(word, fmt), hex16(word))

    if address.addr % 2 == 1:
        return RowState(address, bits, "", "", suppressed=True)

    high = cache.get(address.offset(1))
    if high is None:
        return RowState(address, bits, "", hex16(word))
    return RowState(address, bits, format_pair(word, high, fmt), hex32(words_to_uint32(word, high)))
