"""
Address arithmetic for the ADDR-* rules.

Base addresses must be 0x-prefixed hex literals (underscore digit grouping
allowed). Sizes may be hex, plain decimal, or decimal with a binary unit
suffix (B, KB, MB, GB, TB). Ranges are half-open: [base, base + size).
"""

import re
from dataclasses import dataclass

HEX_LITERAL = re.compile(r"^0[xX][0-9a-fA-F]+(?:_[0-9a-fA-F]+)*$")
SIZE_LITERAL = re.compile(r"^(\d+(?:\.\d+)?)\s*(B|KB|MB|GB|TB)?$", re.IGNORECASE)

UNIT_SCALE = {
    "B": 1,
    "KB": 1024,
    "MB": 1024 ** 2,
    "GB": 1024 ** 3,
    "TB": 1024 ** 4,
}


class AddressParseError(ValueError):
    """A declared address or size string could not be parsed."""


def is_hex_literal(text: str) -> bool:
    return bool(HEX_LITERAL.match(text.strip()))


def looks_hex(text: str) -> bool:
    return text.strip().lower().startswith("0x")


def parse_address(text: str) -> int:
    cleaned = text.strip()
    if not HEX_LITERAL.match(cleaned):
        raise AddressParseError(f"'{text}' is not a 0x-prefixed hex literal")
    return int(cleaned.replace("_", ""), 16)


def parse_size(text: str) -> int:
    """Region size in bytes. Zero, negative and fractional byte counts are rejected."""
    cleaned = text.strip()
    if looks_hex(cleaned):
        size = parse_address(cleaned)
    else:
        match = SIZE_LITERAL.match(cleaned)
        if not match:
            raise AddressParseError(f"'{text}' is not a size (hex, decimal, or B/KB/MB/GB/TB)")
        scaled = float(match.group(1)) * UNIT_SCALE[(match.group(2) or "B").upper()]
        if scaled != int(scaled):
            raise AddressParseError(f"'{text}' is not a whole number of bytes")
        size = int(scaled)
    if size <= 0:
        raise AddressParseError(f"'{text}' is not a positive size")
    return size


def format_address(value: int) -> str:
    return f"0x{value:x}"


def next_aligned(base: int, size: int) -> int:
    """First address above ``base`` that is a multiple of ``size``."""
    return (base // size + 1) * size


@dataclass(frozen=True)
class AddressRange:
    node_id: str
    label: str
    base: int
    size: int

    @property
    def end(self) -> int:
        """Exclusive end address."""
        return self.base + self.size

    def overlaps(self, other: "AddressRange") -> bool:
        return self.base < other.end and other.base < self.end

    @property
    def is_aligned(self) -> bool:
        return self.base % self.size == 0

    def describe(self) -> str:
        return f"[{format_address(self.base)}, {format_address(self.end)})"
