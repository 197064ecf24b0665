"""Shared helpers for SMB2 wire structures: alignment, UTF-16 and the encoder protocol."""

from __future__ import annotations

import struct
from abc import ABC, abstractmethod

__all__ = [
    "Encoder",
    "roundup",
    "utf16_from_string",
    "utf16_to_string",
    "encode_utf16le",
    "decode_utf16le",
    "encoded_len",
]


class Encoder(ABC):
    """A structure that knows its wire size and can serialise itself."""

    @abstractmethod
    def size(self) -> int:
        """Return the number of bytes ``encode`` produces."""

    @abstractmethod
    def encode(self) -> bytes:
        """Return the wire representation of the structure."""


def roundup(x: int, align: int) -> int:
    """Round ``x`` up to the next multiple of ``align`` (a power of two)."""
    return (x + (align - 1)) & ~(align - 1)


def utf16_from_string(s: str) -> list[int]:
    """Return the UTF-16 code units of ``s``."""
    raw = s.encode("utf-16-le", errors="surrogatepass")
    return list(struct.unpack(f"<{len(raw) // 2}H", raw))


def utf16_to_string(units: list[int]) -> str:
    """Build a string from UTF-16 code units; unpaired surrogates become U+FFFD."""
    raw = struct.pack(f"<{len(units)}H", *units)
    return raw.decode("utf-16-le", errors="replace")


def encode_utf16le(s: str) -> bytes:
    """Encode ``s`` as UTF-16 little endian."""
    return s.encode("utf-16-le", errors="surrogatepass")


def decode_utf16le(data: bytes) -> str:
    """Decode UTF-16 little endian bytes; a trailing odd byte is ignored."""
    data = bytes(data)
    if len(data) % 2:
        data = data[:-1]
    return data.decode("utf-16-le", errors="replace")


def encoded_len(s: str) -> int:
    """Return the length in bytes of ``s`` encoded as UTF-16 little endian."""
    return len(encode_utf16le(s))