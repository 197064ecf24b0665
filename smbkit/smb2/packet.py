"""SMB2 packet header and transform header codecs."""

from __future__ import annotations

import struct
from dataclasses import dataclass

from .const import MAGIC, MAGIC2

__all__ = ["PacketHeader", "PacketCodec", "TransformCodec"]

HEADER_SIZE = 64
TRANSFORM_HEADER_SIZE = 52


class _UInt:
    """A little-endian integer field at a fixed offset of ``obj.raw``."""

    def __init__(self, fmt: str, offset: int) -> None:
        self._struct = struct.Struct("<" + fmt)
        self._offset = offset

    def __get__(self, obj, owner=None):
        if obj is None:
            return self
        return self._struct.unpack_from(obj.raw, self._offset)[0]

    def __set__(self, obj, value: int) -> None:
        self._struct.pack_into(obj.raw, self._offset, value)


class _Slice:
    """A fixed-width byte field of ``obj.raw``."""

    def __init__(self, start: int, stop: int) -> None:
        self._start = start
        self._stop = stop

    def __get__(self, obj, owner=None):
        if obj is None:
            return self
        return bytes(obj.raw[self._start:self._stop])

    def __set__(self, obj, value: bytes) -> None:
        value = bytes(value)
        n = min(len(value), self._stop - self._start)
        obj.raw[self._start:self._start + n] = value[:n]


class _Codec:
    """Base for views over a mutable packet buffer."""

    def __init__(self, data: bytes | bytearray = b"") -> None:
        self.raw = bytearray(data)

    def __bytes__(self) -> bytes:
        return bytes(self.raw)

    def __len__(self) -> int:
        return len(self.raw)


class PacketCodec(_Codec):
    """A view over an SMB2 packet: the 64-byte header followed by the body."""

    protocol_id = _Slice(0, 4)
    structure_size = _UInt("H", 4)
    credit_charge = _UInt("H", 6)
    status = _UInt("I", 8)
    channel_sequence = _UInt("H", 8)
    command = _UInt("H", 12)
    credit_request = _UInt("H", 14)
    credit_response = _UInt("H", 14)
    flags = _UInt("I", 16)
    next_command = _UInt("I", 20)
    message_id = _UInt("Q", 24)
    async_id = _UInt("Q", 32)
    tree_id = _UInt("I", 36)
    session_id = _UInt("Q", 40)
    signature = _Slice(48, 64)

    def is_invalid(self) -> bool:
        """Return True unless the buffer holds a well-formed SMB2 header."""
        if len(self.raw) < HEADER_SIZE:
            return True
        if self.protocol_id != MAGIC:
            return True
        if self.structure_size != HEADER_SIZE:
            return True
        return self.next_command & 7 != 0

    def data(self) -> bytes:
        """Return the bytes that follow the header."""
        return bytes(self.raw[HEADER_SIZE:])


class TransformCodec(_Codec):
    """A view over an SMB3 TRANSFORM_HEADER and the encrypted message."""

    protocol_id = _Slice(0, 4)
    signature = _Slice(4, 20)
    nonce = _Slice(20, 36)
    original_message_size = _UInt("I", 36)
    encryption_algorithm = _UInt("H", 42)
    flags = _UInt("H", 42)
    session_id = _UInt("Q", 44)

    def is_invalid(self) -> bool:
        """Return True unless the buffer starts with a transform header."""
        if len(self.raw) < TRANSFORM_HEADER_SIZE:
            return True
        return self.protocol_id != MAGIC2

    def associated_data(self) -> bytes:
        """Return the header bytes authenticated alongside the payload."""
        return bytes(self.raw[20:TRANSFORM_HEADER_SIZE])

    def encrypted_data(self) -> bytes:
        """Return the encrypted message that follows the header."""
        return bytes(self.raw[TRANSFORM_HEADER_SIZE:])


@dataclass
class PacketHeader:
    """The fields a sender fills in for an SMB2 packet header."""

    credit_charge: int = 0
    channel_sequence: int = 0
    status: int = 0
    command: int = 0
    credit_request_response: int = 0
    flags: int = 0
    message_id: int = 0
    async_id: int = 0
    tree_id: int = 0
    session_id: int = 0

    def encode(self) -> bytes:
        """Return the 64-byte wire header."""
        codec = PacketCodec(bytes(HEADER_SIZE))
        codec.protocol_id = MAGIC
        codec.structure_size = HEADER_SIZE
        codec.credit_charge = self.credit_charge
        if self.channel_sequence:
            codec.channel_sequence = self.channel_sequence
        elif self.status:
            codec.status = self.status
        codec.command = self.command
        codec.credit_request = self.credit_request_response
        codec.flags = self.flags
        codec.message_id = self.message_id
        if self.tree_id:
            codec.tree_id = self.tree_id
        elif self.async_id:
            codec.async_id = self.async_id
        codec.session_id = self.session_id
        return bytes(codec)