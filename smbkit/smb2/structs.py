"""SMB2 file ids, negotiate contexts and quota queries."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field

from .const import SMB2_ENCRYPTION_CAPABILITIES, SMB2_PREAUTH_INTEGRITY_CAPABILITIES
from .dtyp import Sid
from .util import Encoder, roundup

__all__ = [
    "FileId",
    "HashContext",
    "CipherContext",
    "NegotiateContext",
    "HashContextData",
    "CipherContextData",
    "QueryQuotaInfo",
]


@dataclass(frozen=True)
class FileId(Encoder):
    """An SMB2 file handle: persistent and volatile halves of 8 bytes each."""

    persistent: bytes = bytes(8)
    volatile: bytes = bytes(8)

    def __post_init__(self) -> None:
        for name in ("persistent", "volatile"):
            value = bytes(getattr(self, name))
            if len(value) != 8:
                raise ValueError(f"{name} must be 8 bytes")
            object.__setattr__(self, name, value)

    def is_zero(self) -> bool:
        return not any(self.persistent) and not any(self.volatile)

    def size(self) -> int:
        return 16

    def encode(self) -> bytes:
        return self.persistent + self.volatile

    @classmethod
    def from_bytes(cls, data: bytes) -> FileId:
        if len(data) < 16:
            raise ValueError("file id needs 16 bytes")
        return cls(bytes(data[:8]), bytes(data[8:16]))


def _context_header(context_type: int, data_length: int) -> bytes:
    return struct.pack("<HHI", context_type, data_length, 0)


@dataclass
class HashContext(Encoder):
    """SMB2_PREAUTH_INTEGRITY_CAPABILITIES negotiate context."""

    hash_algorithms: list[int] = field(default_factory=list)
    hash_salt: bytes = b""

    def size(self) -> int:
        return 8 + 4 + 2 * len(self.hash_algorithms) + len(self.hash_salt)

    def encode(self) -> bytes:
        n = len(self.hash_algorithms)
        body = struct.pack(f"<HH{n}H", n, len(self.hash_salt), *self.hash_algorithms)
        body += bytes(self.hash_salt)
        return _context_header(SMB2_PREAUTH_INTEGRITY_CAPABILITIES, len(body)) + body


@dataclass
class CipherContext(Encoder):
    """SMB2_ENCRYPTION_CAPABILITIES negotiate context."""

    ciphers: list[int] = field(default_factory=list)

    def size(self) -> int:
        return 8 + 2 + 2 * len(self.ciphers)

    def encode(self) -> bytes:
        n = len(self.ciphers)
        body = struct.pack(f"<H{n}H", n, *self.ciphers)
        return _context_header(SMB2_ENCRYPTION_CAPABILITIES, len(body)) + body


@dataclass(frozen=True)
class NegotiateContext:
    """A decoded negotiate context: its type and data."""

    context_type: int
    data: bytes

    @classmethod
    def from_bytes(cls, data: bytes) -> NegotiateContext:
        if len(data) < 8:
            raise ValueError("negotiate context is too short")
        context_type, length = struct.unpack_from("<HH", data)
        if len(data) < 8 + length:
            raise ValueError("negotiate context data is truncated")
        return cls(context_type, bytes(data[8:8 + length]))

    def next_offset(self) -> int:
        """Return the distance to the next context in a list."""
        return roundup(8 + len(self.data), 8)


@dataclass(frozen=True)
class HashContextData:
    """The data of a preauth integrity negotiate context."""

    hash_algorithms: tuple[int, ...]
    salt: bytes

    @classmethod
    def from_bytes(cls, data: bytes) -> HashContextData:
        if len(data) < 4:
            raise ValueError("hash context data is too short")
        count, salt_len = struct.unpack_from("<HH", data)
        end = 4 + 2 * count
        if len(data) < end + salt_len:
            raise ValueError("hash context data is truncated")
        algorithms = struct.unpack_from(f"<{count}H", data, 4)
        return cls(tuple(algorithms), bytes(data[end:end + salt_len]))


@dataclass(frozen=True)
class CipherContextData:
    """The data of an encryption capabilities negotiate context."""

    ciphers: tuple[int, ...]

    @classmethod
    def from_bytes(cls, data: bytes) -> CipherContextData:
        if len(data) < 2:
            raise ValueError("cipher context data is too short")
        (count,) = struct.unpack_from("<H", data)
        if len(data) < 2 + 2 * count:
            raise ValueError("cipher context data is truncated")
        return cls(tuple(struct.unpack_from(f"<{count}H", data, 2)))


@dataclass
class QueryQuotaInfo(Encoder):
    """SMB2_QUERY_QUOTA_INFO input buffer."""

    return_single: bool = False
    restart_scan: bool = False
    sids: list[Sid] = field(default_factory=list)

    def size(self) -> int:
        if not self.sids:
            return 16
        if len(self.sids) == 1:
            return 16 + self.sids[0].size()
        return 16 + sum(8 + sid.size() for sid in self.sids)

    def encode(self) -> bytes:
        buf = bytearray(self.size())
        buf[0] = 1 if self.return_single else 0
        buf[1] = 1 if self.restart_scan else 0
        if len(self.sids) == 1:
            sid = self.sids[0]
            buf[16:16 + sid.size()] = sid.encode()
            struct.pack_into("<II", buf, 8, sid.size(), 0)
        elif self.sids:
            struct.pack_into("<I", buf, 4, 1)
            off = 16
            for sid in self.sids:
                size = sid.size()
                struct.pack_into("<II", buf, off, off + size, size)
                buf[off + 8:off + 8 + size] = sid.encode()
                off += 8 + size
        return bytes(buf)