"""NTLMv2 primitives: flags, AV pairs, key derivation and message signatures."""

from __future__ import annotations

import hashlib
import hmac
import struct
import zlib
from dataclasses import dataclass, field
from enum import IntEnum, IntFlag
from typing import Protocol

from Crypto.Hash import MD4

from ..smb2.util import Encoder

__all__ = [
    "NegotiateFlags",
    "AvId",
    "TargetInfoEncoder",
    "ntowfv2",
    "ntowfv2_hash",
    "ntlmv2_response",
    "mac",
    "sign_key",
    "seal_key",
    "parse_av_pairs",
    "SIGNATURE",
    "VERSION",
    "DEFAULT_FLAGS",
    "NTLM_NEGOTIATE",
    "NTLM_CHALLENGE",
    "NTLM_AUTHENTICATE",
    "ANONYMOUS_KEY_EXCHANGE_KEY",
]


class NegotiateFlags(IntFlag):
    """NTLMSSP negotiate flags."""

    NEGOTIATE_UNICODE = 1 << 0
    NEGOTIATE_OEM = 1 << 1
    REQUEST_TARGET = 1 << 2
    NEGOTIATE_SIGN = 1 << 4
    NEGOTIATE_SEAL = 1 << 5
    NEGOTIATE_DATAGRAM = 1 << 6
    NEGOTIATE_LM_KEY = 1 << 7
    NEGOTIATE_NTLM = 1 << 9
    ANONYMOUS = 1 << 11
    NEGOTIATE_OEM_DOMAIN_SUPPLIED = 1 << 12
    NEGOTIATE_OEM_WORKSTATION_SUPPLIED = 1 << 13
    NEGOTIATE_ALWAYS_SIGN = 1 << 15
    TARGET_TYPE_DOMAIN = 1 << 16
    TARGET_TYPE_SERVER = 1 << 17
    NEGOTIATE_EXTENDED_SESSIONSECURITY = 1 << 19
    NEGOTIATE_IDENTIFY = 1 << 20
    REQUEST_NON_NT_SESSION_KEY = 1 << 22
    NEGOTIATE_TARGET_INFO = 1 << 23
    NEGOTIATE_VERSION = 1 << 25
    NEGOTIATE_128 = 1 << 29
    NEGOTIATE_KEY_EXCH = 1 << 30
    NEGOTIATE_56 = 1 << 31


class AvId(IntEnum):
    """Attribute identifiers of AV pairs in target info."""

    EOL = 0
    NB_COMPUTER_NAME = 1
    NB_DOMAIN_NAME = 2
    DNS_COMPUTER_NAME = 3
    DNS_DOMAIN_NAME = 4
    DNS_TREE_NAME = 5
    FLAGS = 6
    TIMESTAMP = 7
    SINGLE_HOST = 8
    TARGET_NAME = 9
    CHANNEL_BINDINGS = 10


NTLM_NEGOTIATE = 0x00000001
NTLM_CHALLENGE = 0x00000002
NTLM_AUTHENTICATE = 0x00000003

WINDOWS_MAJOR_VERSION_5 = 0x05
WINDOWS_MAJOR_VERSION_6 = 0x06
WINDOWS_MAJOR_VERSION_10 = 0x0A

WINDOWS_MINOR_VERSION_0 = 0x00
WINDOWS_MINOR_VERSION_1 = 0x01
WINDOWS_MINOR_VERSION_2 = 0x02
WINDOWS_MINOR_VERSION_3 = 0x03

NTLMSSP_REVISION_W2K3 = 0x0F

SIGNATURE = b"NTLMSSP\x00"

VERSION = bytes(
    [WINDOWS_MAJOR_VERSION_10, WINDOWS_MINOR_VERSION_0, 0, 0, 0, 0, 0, NTLMSSP_REVISION_W2K3]
)

DEFAULT_FLAGS = (
    NegotiateFlags.NEGOTIATE_56
    | NegotiateFlags.NEGOTIATE_KEY_EXCH
    | NegotiateFlags.NEGOTIATE_128
    | NegotiateFlags.NEGOTIATE_TARGET_INFO
    | NegotiateFlags.NEGOTIATE_EXTENDED_SESSIONSECURITY
    | NegotiateFlags.NEGOTIATE_ALWAYS_SIGN
    | NegotiateFlags.NEGOTIATE_NTLM
    | NegotiateFlags.NEGOTIATE_SIGN
    | NegotiateFlags.REQUEST_TARGET
    | NegotiateFlags.NEGOTIATE_UNICODE
    | NegotiateFlags.NEGOTIATE_VERSION
)

# MS-NLMP: the key-exchange key for anonymous logins is all zeros.
ANONYMOUS_KEY_EXCHANGE_KEY = bytes(16)

_CLIENT_SIGN_MAGIC = b"session key to client-to-server signing key magic constant\x00"
_SERVER_SIGN_MAGIC = b"session key to server-to-client signing key magic constant\x00"
_CLIENT_SEAL_MAGIC = b"session key to client-to-server sealing key magic constant\x00"
_SERVER_SEAL_MAGIC = b"session key to server-to-client sealing key magic constant\x00"


class _KeyStream(Protocol):
    def encrypt(self, data: bytes) -> bytes: ...


def _hmac_md5(key: bytes, *parts: bytes) -> bytes:
    h = hmac.new(bytes(key), digestmod=hashlib.md5)
    for part in parts:
        h.update(bytes(part))
    return h.digest()


def ntowfv2(user: bytes, password: bytes, domain: bytes) -> bytes:
    """Derive the NTLMv2 key from the UTF-16 upper-case user, password and domain."""
    password_hash = MD4.new(bytes(password)).digest()
    return ntowfv2_hash(user, password_hash, domain)


def ntowfv2_hash(user: bytes, password_hash: bytes, domain: bytes) -> bytes:
    """Derive the NTLMv2 key from an NT password hash."""
    return _hmac_md5(password_hash, user, domain)


def ntlmv2_response(
    key: bytes,
    server_challenge: bytes,
    client_challenge: bytes,
    timestamp: bytes,
    target_info: bytes | Encoder,
) -> bytes:
    """Build an NTLMv2Response: the 16-byte proof followed by the client challenge blob."""
    info = target_info.encode() if isinstance(target_info, Encoder) else bytes(target_info)
    blob = (
        b"\x01\x01"
        + bytes(6)
        + (bytes(timestamp) + bytes(8))[:8]
        + (bytes(client_challenge) + bytes(8))[:8]
        + bytes(4)
        + info
        + bytes(4)
    )
    proof = _hmac_md5(key, server_challenge, blob)
    return proof + blob


def _parse_av_offsets(data: bytes) -> dict[int, tuple[int, int]]:
    if len(data) < 4:
        raise ValueError("target info is too short")
    if any(data[-4:]):
        raise ValueError("target info does not end with MsvAvEOL")
    pairs: dict[int, tuple[int, int]] = {}
    off = 0
    while off < len(data):
        if len(data) - off < 4:
            raise ValueError("truncated AV pair header")
        av_id, av_len = struct.unpack_from("<HH", data, off)
        if len(data) - off < 4 + av_len:
            raise ValueError("truncated AV pair value")
        pairs[av_id] = (off + 4, av_len)
        off += 4 + av_len
    return pairs


def parse_av_pairs(data: bytes) -> dict[int, bytes]:
    """Parse a target info block into a mapping of AV id to value."""
    data = bytes(data)
    return {
        av_id: data[start:start + length]
        for av_id, (start, length) in _parse_av_offsets(data).items()
    }


@dataclass(frozen=True)
class TargetInfoEncoder(Encoder):
    """The server's target info, extended with the client's flags, bindings and SPN."""

    info: bytes
    spn: bytes = b""
    info_map: dict[int, bytes] = field(default_factory=dict)
    _offsets: dict[int, tuple[int, int]] = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def from_bytes(cls, info: bytes, spn: bytes) -> TargetInfoEncoder:
        info = bytes(info)
        offsets = _parse_av_offsets(info)
        info_map = {k: info[s:s + n] for k, (s, n) in offsets.items()}
        return cls(info, bytes(spn or b""), info_map, offsets)

    def size(self) -> int:
        size = len(self.info)
        if AvId.FLAGS not in self.info_map:
            size += 8
        size += 20
        if self.spn:
            size += 4 + len(self.spn)
        return size

    def encode(self) -> bytes:
        buf = bytearray(self.info)
        flags_at = self._offsets.get(AvId.FLAGS)
        if flags_at is not None:
            start, length = flags_at
            if length < 4:
                raise ValueError("MsvAvFlags value is shorter than 4 bytes")
            (value,) = struct.unpack_from("<I", buf, start)
            struct.pack_into("<I", buf, start, value | 0x02)
            out = bytearray(buf[:-4])
        else:
            out = bytearray(buf[:-4])
            out += struct.pack("<HHI", AvId.FLAGS, 4, 0x02)
        out += struct.pack("<HH", AvId.CHANNEL_BINDINGS, 16) + bytes(16)
        if self.spn:
            out += struct.pack("<HH", AvId.TARGET_NAME, len(self.spn)) + self.spn
        out += struct.pack("<HH", AvId.EOL, 0)
        return bytes(out)


def mac(
    negotiate_flags: int,
    handle: _KeyStream | None,
    signing_key: bytes | None,
    seq_num: int,
    msg: bytes,
) -> tuple[bytes, int]:
    """Compute a 16-byte message signature and return it with the next sequence number."""
    seq_num &= 0xFFFFFFFF
    msg = bytes(msg)
    if not negotiate_flags & NegotiateFlags.NEGOTIATE_EXTENDED_SESSIONSECURITY:
        body = struct.pack("<III", 0, zlib.crc32(msg) & 0xFFFFFFFF, 0)
        enc = handle.encrypt(body)
        seq_bytes = seq_num.to_bytes(4, "little")
        seq_part = bytes(a ^ b for a, b in zip(enc[8:12], seq_bytes))
        tag = struct.pack("<I", 1) + bytes(4) + enc[4:8] + seq_part
        if not negotiate_flags & NegotiateFlags.NEGOTIATE_DATAGRAM:
            seq_num = (seq_num + 1) & 0xFFFFFFFF
        return tag, seq_num

    seq_bytes = struct.pack("<I", seq_num)
    checksum = _hmac_md5(signing_key or b"", seq_bytes, msg)[:8]
    if negotiate_flags & NegotiateFlags.NEGOTIATE_KEY_EXCH:
        checksum = handle.encrypt(checksum)
    tag = struct.pack("<I", 1) + checksum + seq_bytes
    return tag, (seq_num + 1) & 0xFFFFFFFF


def sign_key(negotiate_flags: int, random_session_key: bytes, from_client: bool) -> bytes | None:
    """Derive a signing key; None unless extended session security is negotiated."""
    if not negotiate_flags & NegotiateFlags.NEGOTIATE_EXTENDED_SESSIONSECURITY:
        return None
    magic = _CLIENT_SIGN_MAGIC if from_client else _SERVER_SIGN_MAGIC
    return hashlib.md5(bytes(random_session_key) + magic).digest()


def seal_key(negotiate_flags: int, random_session_key: bytes, from_client: bool) -> bytes:
    """Derive a sealing key."""
    key = bytes(random_session_key)
    if negotiate_flags & NegotiateFlags.NEGOTIATE_EXTENDED_SESSIONSECURITY:
        if negotiate_flags & NegotiateFlags.NEGOTIATE_128:
            material = key
        elif negotiate_flags & NegotiateFlags.NEGOTIATE_56:
            material = key[:7]
        else:
            material = key[:5]
        magic = _CLIENT_SEAL_MAGIC if from_client else _SERVER_SEAL_MAGIC
        return hashlib.md5(material + magic).digest()

    if negotiate_flags & NegotiateFlags.NEGOTIATE_LM_KEY:
        if negotiate_flags & NegotiateFlags.NEGOTIATE_56:
            return key[:7] + b"\xa0"
        return key[:5] + b"\xe5\x38\xb0"

    return key