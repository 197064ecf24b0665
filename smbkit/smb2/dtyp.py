"""Basic data types: FILETIME and security identifiers."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field

from .util import Encoder

__all__ = ["Filetime", "nsec_to_filetime", "Sid"]

_EPOCH_DIFF = 116444736000000000  # 100ns intervals between 1601-01-01 and 1970-01-01


@dataclass(frozen=True)
class Filetime(Encoder):
    """A 64-bit count of 100ns intervals since 1601, split into two halves."""

    low_date_time: int = 0
    high_date_time: int = 0

    def size(self) -> int:
        return 8

    def encode(self) -> bytes:
        return struct.pack("<II", self.low_date_time, self.high_date_time)

    def nanoseconds(self) -> int:
        """Return nanoseconds since the Unix epoch."""
        value = (self.high_date_time << 32) + self.low_date_time
        return (value - _EPOCH_DIFF) * 100

    @classmethod
    def from_bytes(cls, data: bytes) -> Filetime:
        if len(data) < 8:
            raise ValueError("FILETIME needs 8 bytes")
        low, high = struct.unpack_from("<II", data)
        return cls(low, high)


def nsec_to_filetime(nsec: int) -> Filetime:
    """Convert nanoseconds since the Unix epoch to a Filetime."""
    ticks = abs(nsec) // 100
    if nsec < 0:
        ticks = -ticks
    ticks += _EPOCH_DIFF
    return Filetime(ticks & 0xFFFFFFFF, (ticks >> 32) & 0xFFFFFFFF)


@dataclass(frozen=True)
class Sid(Encoder):
    """A Windows security identifier."""

    revision: int
    identifier_authority: int
    sub_authority: tuple[int, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "sub_authority", tuple(self.sub_authority))

    def __str__(self) -> str:
        parts = ["S", str(self.revision)]
        if self.identifier_authority < 1 << 32:
            parts.append(str(self.identifier_authority))
        else:
            parts.append(f"0x{self.identifier_authority:x}")
        parts.extend(str(a) for a in self.sub_authority)
        return "-".join(parts)

    def size(self) -> int:
        return 8 + 4 * len(self.sub_authority)

    def encode(self) -> bytes:
        head = bytes([self.revision, len(self.sub_authority)])
        authority = (self.identifier_authority & 0xFFFFFFFFFFFF).to_bytes(6, "big")
        subs = struct.pack(f"<{len(self.sub_authority)}I", *self.sub_authority)
        return head + authority + subs

    @classmethod
    def from_bytes(cls, data: bytes) -> Sid:
        if len(data) < 8:
            raise ValueError("SID is too short")
        count = data[1]
        if len(data) < 8 + 4 * count:
            raise ValueError("SID sub-authorities are truncated")
        authority = int.from_bytes(data[2:8], "big")
        subs = struct.unpack_from(f"<{count}I", data, 8)
        return cls(data[0], authority, subs)