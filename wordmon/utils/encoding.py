"""Edit-literal encoding helpers for word writes.

Centralizes the logic for turning the text typed into the edit surface
into one or two words, the inverse of ``wordmon.utils.decoding``.
"""

from dataclasses import dataclass
from typing import List, Tuple

from wordmon.core.address import DeviceAddress
from wordmon.core.formats import DisplayFormat, is_combined
from wordmon.utils.ieee754 import float32_to_uint32, uint32_to_words


class EncodingError(Exception):
    """Raised when a literal cannot be encoded for the chosen format."""
    pass


@dataclass(frozen=True)
class WritePlan:
    """Consecutive words to write starting at ``address``."""

    address: DeviceAddress
    words: Tuple[int, ...]

    def targets(self) -> List[Tuple[DeviceAddress, int]]:
        return [(self.address.offset(i), w) for i, w in enumerate(self.words)]


_DIGITS = {2: "01", 10: "0123456789", 16: "0123456789abcdefABCDEF"}


def _parse_int(raw: str, base: int, fmt: DisplayFormat) -> int:
    # int() would accept "+", "_" separators and inner prefixes; only a leading "-" on decimals is allowed
    body = raw[1:] if base == 10 and raw.startswith("-") else raw
    if not body or any(ch not in _DIGITS[base] for ch in body):
        raise EncodingError(f"Invalid {fmt.value} literal: {raw!r}")
    return int(raw, base)


def _strip_prefix(raw: str, prefix: str) -> str:
    return raw[len(prefix):] if raw.lower().startswith(prefix) else raw


def encode_word(raw: str, fmt: DisplayFormat) -> int:
    """Encode a literal under a 16-bit format into one masked word.

    Args:
        raw: Text entered by the user
        fmt: One of BIN, U16, I16, HEX, ASCII

    Returns:
        Word value 0..0xFFFF

    Raises:
        EncodingError: If the literal does not parse

    Examples:
        >>> encode_word("-1", DisplayFormat.I16)
        65535
        >>> encode_word("AB", DisplayFormat.ASCII)
        16706
    """
    if fmt == DisplayFormat.ASCII:
        chars = (raw.strip() + "\0\0")[:2]
        return ((ord(chars[0]) & 0xFF) << 8) | (ord(chars[1]) & 0xFF)

    text = raw.strip()
    if not text:
        raise EncodingError(f"Empty {fmt.value} literal")
    if fmt in (DisplayFormat.U16, DisplayFormat.I16):
        if text.lower().startswith("0x"):
            value = _parse_int(text[2:], 16, fmt)
        else:
            value = _parse_int(text, 10, fmt)
    elif fmt == DisplayFormat.HEX:
        value = _parse_int(_strip_prefix(text, "0x"), 16, fmt)
    elif fmt == DisplayFormat.BIN:
        value = _parse_int(_strip_prefix(text, "0b"), 2, fmt)
    else:
        raise EncodingError(f"{fmt.value} is not a single-word format")
    return value & 0xFFFF


def encode_dword(raw: str, fmt: DisplayFormat) -> Tuple[int, int]:
    """Encode a literal under a 32-bit format into (low, high) words."""
    text = raw.strip()
    if not text:
        raise EncodingError(f"Empty {fmt.value} literal")
    if fmt == DisplayFormat.F32:
        try:
            value = float(text)
        except ValueError:
            raise EncodingError(f"Invalid F32 literal: {raw!r}")
        return uint32_to_words(float32_to_uint32(value))
    if fmt in (DisplayFormat.U32, DisplayFormat.I32):
        return uint32_to_words(_parse_int(text, 10, fmt))
    raise EncodingError(f"{fmt.value} is not a two-word format")


def encode_literal(raw: str, fmt: DisplayFormat, address: DeviceAddress) -> WritePlan:
    """Build the write for a literal targeting ``address``.

    32-bit formats always write the pair at the even base address, even
    when ``address`` is the odd half.
    """
    if is_combined(fmt):
        low, high = encode_dword(raw, fmt)
        base = address if address.addr % 2 == 0 else address.offset(-1)
        return WritePlan(base, (low, high))
    return WritePlan(address, (encode_word(raw, fmt),))


def parse_word_list(raw: str) -> List[int]:
    """Parse a comma-separated list of words (decimal or 0xHEX).

    Items that do not parse become 0; every value is masked to 16 bits.
    """
    words: List[int] = []
    for part in raw.split(","):
        p = part.strip()
        if not p:
            continue
        try:
            value = int(p[2:], 16) if p.lower().startswith("0x") else int(p, 10)
        except ValueError:
            value = 0
        words.append(value & 0xFFFF)
    return words

