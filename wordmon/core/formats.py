from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional


class DisplayFormat(str, Enum):
    """Global rendering format for the monitor table."""

    BIN = "BIN"
    U16 = "U16"
    I16 = "I16"
    HEX = "HEX"
    ASCII = "ASCII"
    U32 = "U32"
    I32 = "I32"
    F32 = "F32"


@dataclass(frozen=True)
class FormatProperties:
    label: str
    word_count: int
    signed: bool
    floating: bool


FORMAT_PROPERTIES: Dict[DisplayFormat, FormatProperties] = {
    DisplayFormat.BIN: FormatProperties(label="Binary", word_count=1, signed=False, floating=False),
    DisplayFormat.U16: FormatProperties(label="Unsigned 16", word_count=1, signed=False, floating=False),
    DisplayFormat.I16: FormatProperties(label="Signed 16", word_count=1, signed=True, floating=False),
    DisplayFormat.HEX: FormatProperties(label="Hex", word_count=1, signed=False, floating=False),
    DisplayFormat.ASCII: FormatProperties(label="ASCII", word_count=1, signed=False, floating=False),
    DisplayFormat.U32: FormatProperties(label="Unsigned 32", word_count=2, signed=False, floating=False),
    DisplayFormat.I32: FormatProperties(label="Signed 32", word_count=2, signed=True, floating=False),
    DisplayFormat.F32: FormatProperties(label="Float 32", word_count=2, signed=True, floating=True),
}


_FORMAT_ALIASES = {
    "bin": DisplayFormat.BIN,
    "binary": DisplayFormat.BIN,
    "u16": DisplayFormat.U16,
    "uint16": DisplayFormat.U16,
    "unsigned": DisplayFormat.U16,
    "i16": DisplayFormat.I16,
    "int16": DisplayFormat.I16,
    "signed": DisplayFormat.I16,
    "hex": DisplayFormat.HEX,
    "ascii": DisplayFormat.ASCII,
    "u32": DisplayFormat.U32,
    "uint32": DisplayFormat.U32,
    "i32": DisplayFormat.I32,
    "int32": DisplayFormat.I32,
    "f32": DisplayFormat.F32,
    "float": DisplayFormat.F32,
    "float32": DisplayFormat.F32,
}


def parse_display_format(value: Optional[str]) -> DisplayFormat:
    if not value:
        return default_display_format()
    fmt = _FORMAT_ALIASES.get(value.strip().lower())
    if fmt is None:
        raise ValueError(f"Unknown display format '{value}'")
    return fmt


def is_combined(fmt: DisplayFormat) -> bool:
    """True for the formats that pair two words into one 32-bit value."""
    return FORMAT_PROPERTIES[fmt].word_count == 2


def default_display_format() -> DisplayFormat:
    return DisplayFormat.U16
