"""
Fixed-capacity bit vector and the StatusList2021 text encoding.

The wire form renders every bit as an ASCII '0' or '1' character (highest
index first) and base64-encodes that text. Bits are not packed on the wire;
the packed form is only used in memory.
"""

from __future__ import annotations

import base64
import binascii
import re
from collections.abc import Iterator

DEFAULT_SIZE = 16384

_NON_BASE64 = re.compile(r"[^A-Za-z0-9+/]")


class IndexOutOfRange(IndexError):
    """Raised when a bit index falls outside the vector."""


class BitString:
    """Bit vector with immutable length, stored MSB-first in a bytearray."""

    __slots__ = ("_size", "_data")

    def __init__(self, size: int) -> None:
        if size < 0:
            raise ValueError(f"BitString size must not be negative: {size}")
        self._size = size
        self._data = bytearray((size + 7) // 8)

    def __len__(self) -> int:
        return self._size

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BitString):
            return NotImplemented
        return self._size == other._size and self._data == other._data

    def __repr__(self) -> str:
        return f"BitString(size={self._size}, set={list(self.set_indices())})"

    def _locate(self, index: int) -> tuple[int, int]:
        if index < 0 or index >= self._size:
            raise IndexOutOfRange(
                f"Bit index {index} out of range [0, {self._size})"
            )
        return index // 8, 7 - (index % 8)

    def get(self, index: int) -> bool:
        byte_index, bit_position = self._locate(index)
        return bool((self._data[byte_index] >> bit_position) & 1)

    def set(self, index: int) -> None:
        byte_index, bit_position = self._locate(index)
        self._data[byte_index] |= 1 << bit_position

    def clear(self, index: int) -> None:
        byte_index, bit_position = self._locate(index)
        self._data[byte_index] &= ~(1 << bit_position) & 0xFF

    def set_indices(self) -> Iterator[int]:
        """Yield the indices of all set bits in ascending order."""
        for byte_index, byte in enumerate(self._data):
            if not byte:
                continue
            for offset in range(8):
                if byte & (0x80 >> offset):
                    yield byte_index * 8 + offset

    def to_bytes(self) -> bytes:
        """Packed representation, bit 0 is the MSB of byte 0."""
        return bytes(self._data)

    @classmethod
    def from_bytes(cls, data: bytes, size: int) -> BitString:
        """Rebuild a vector from its packed representation."""
        if len(data) != (size + 7) // 8:
            raise ValueError(
                f"Packed data holds {len(data) * 8} bits, expected room for {size}"
            )
        bits = cls(size)
        bits._data[:] = data
        # Padding bits past the end are not part of the vector.
        if size % 8:
            bits._data[-1] &= (0xFF << (8 - size % 8)) & 0xFF
        return bits

    def to_text(self) -> str:
        """Render as '0'/'1' characters, highest index first."""
        return "".join(
            "1" if self.get(index) else "0"
            for index in range(self._size - 1, -1, -1)
        )


def create(size: int = DEFAULT_SIZE) -> BitString:
    """Create an all-zero bit vector of ``size`` bits."""
    if size <= 0:
        raise ValueError(f"BitString size must be positive: {size}")
    return BitString(size)


def encode(bits: BitString) -> str:
    """Encode a vector to its base64 text form."""
    return base64.b64encode(bits.to_text().encode("ascii")).decode("ascii")


def _lenient_b64decode(encoded: str) -> bytes:
    # Accept url-safe characters, skip anything outside the alphabet and
    # stop at the first padding character.
    cleaned = encoded.split("=", 1)[0].replace("-", "+").replace("_", "/")
    cleaned = _NON_BASE64.sub("", cleaned)
    if len(cleaned) % 4 == 1:
        cleaned = cleaned[:-1]
    cleaned += "=" * (-len(cleaned) % 4)
    try:
        return base64.b64decode(cleaned)
    except binascii.Error:
        return b""


def decode(encoded: str) -> BitString:
    """Decode base64 text into a vector.

    Decoding never raises: characters other than '1' leave their bit unset,
    and malformed base64 yields fewer (or zero) bits.
    """
    text = _lenient_b64decode(encoded).decode("utf-8", errors="replace")
    length = len(text)
    bits = BitString(length)
    for position, char in enumerate(text):
        if char == "1":
            bits.set(length - 1 - position)
    return bits
