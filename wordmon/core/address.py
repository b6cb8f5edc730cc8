"""Device address parsing and formatting helpers.

Centralizes logic for turning a human-entered target token such as
``"D100"`` or ``"WFF"`` into a device key plus numeric address.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

_HEX_LETTERS = frozenset("ABCDEF")


class AddressError(ValueError):
    """Raised when a target token cannot be parsed."""
    pass


@dataclass(frozen=True)
class DeviceAddress:
    """A single word location: alphabetic device key plus numeric address."""

    key: str
    addr: int

    def __post_init__(self) -> None:
        if not self.key or not self.key.isalpha():
            raise AddressError(f"Device key must be alphabetic: {self.key!r}")
        if self.addr < 0:
            raise AddressError(f"Address must be non-negative: {self.addr}")

    @property
    def cache_key(self) -> str:
        return f"{self.key}:{self.addr}"

    @property
    def label(self) -> str:
        return f"{self.key}{self.addr}"

    def offset(self, delta: int) -> "DeviceAddress":
        return DeviceAddress(self.key, self.addr + delta)

    @classmethod
    def from_cache_key(cls, text: str) -> "DeviceAddress":
        key, _, addr = text.partition(":")
        return cls(key, int(addr, 10))


def parse_target(token: Optional[str]) -> Optional[DeviceAddress]:
    """Parse a target token into a ``DeviceAddress``.

    The leading run of letters is the device key and the remainder the
    address literal. A literal containing any of A-F is read as base-16,
    otherwise base-10. When the letter scan swallows the whole token
    (``"WFF"``), the first letter is the key and the rest the literal.

    Args:
        token: Target text, case-insensitive, surrounding blanks ignored

    Returns:
        The parsed address, or None if the token is malformed

    Examples:
        >>> parse_target("D100")
        DeviceAddress(key='D', addr=100)
        >>> parse_target("WFF")
        DeviceAddress(key='W', addr=255)
    """
    if not token:
        return None
    up = token.strip().upper()

    i = 0
    while i < len(up) and "A" <= up[i] <= "Z":
        i += 1
    if i == 0:
        return None

    key = up[:i]
    literal = up[i:].strip()
    if not literal and len(key) > 1:
        key, literal = key[0], key[1:]
    if not literal:
        return None

    base = 16 if any(ch in _HEX_LETTERS for ch in literal) else 10
    # int() would accept "+1", "_" separators and "0x" prefixes; only plain digits are valid here
    digits = "0123456789ABCDEF" if base == 16 else "0123456789"
    if any(ch not in digits for ch in literal):
        return None
    return DeviceAddress(key, int(literal, base))


def parse_device_address(token: str) -> DeviceAddress:
    """Strict variant of ``parse_target`` raising ``AddressError``."""
    parsed = parse_target(token)
    if parsed is None:
        raise AddressError(f"Invalid device address: {token!r}")
    return parsed


def parse_target_or_default(token: Optional[str], default_key: str = "D") -> DeviceAddress:
    """Parse a target, falling back to its letters at address 0.

    Used where the user typed something unparseable but a usable view is
    still wanted (e.g. ``"D-"`` becomes ``D0``).
    """
    parsed = parse_target(token)
    if parsed is not None:
        return parsed
    letters = "".join(ch for ch in (token or "").upper() if "A" <= ch <= "Z")
    return DeviceAddress(letters or default_key, 0)


def format_address(address: DeviceAddress) -> str:
    """Format an address the way the backend expects a monitor target."""
    return address.label
