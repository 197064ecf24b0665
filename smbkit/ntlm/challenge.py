"""Parsing of the NTLM CHALLENGE_MESSAGE."""

from __future__ import annotations

import struct
from dataclasses import dataclass

from ..smb2.util import encode_utf16le
from .crypto import NTLM_CHALLENGE, SIGNATURE, NegotiateFlags, TargetInfoEncoder

__all__ = ["ChallengeMessage"]


def _field(msg: bytes, at: int, what: str) -> bytes:
    length, max_length, offset = struct.unpack_from("<HHI", msg, at)
    if max_length < length:
        raise ValueError(f"invalid {what} format")
    if len(msg) < offset + length:
        raise ValueError(f"invalid {what} format")
    return msg[offset:offset + length]


@dataclass(frozen=True)
class ChallengeMessage:
    """A server challenge, with the flags both sides agreed on."""

    raw: bytes
    flags: int
    info: TargetInfoEncoder
    target_name: bytes

    @property
    def server_challenge(self) -> bytes:
        return self.raw[24:32]

    @classmethod
    def parse(cls, cmsg: bytes, nmsg: bytes, target_spn: str) -> ChallengeMessage:
        """Parse ``cmsg`` against the negotiate message ``nmsg`` that prompted it."""
        cmsg = bytes(cmsg)
        nmsg = bytes(nmsg)
        if len(cmsg) < 48:
            raise ValueError("message length is too short")
        if cmsg[:8] != SIGNATURE:
            raise ValueError("invalid signature")
        if struct.unpack_from("<I", cmsg, 8)[0] != NTLM_CHALLENGE:
            raise ValueError("invalid message type")
        if len(nmsg) < 16:
            raise ValueError("negotiate message is too short")

        flags = struct.unpack_from("<I", nmsg, 12)[0] & struct.unpack_from("<I", cmsg, 20)[0]
        if not flags & NegotiateFlags.REQUEST_TARGET:
            raise ValueError("invalid negotiate flags")
        target_name = _field(cmsg, 12, "target name")

        if not flags & NegotiateFlags.NEGOTIATE_TARGET_INFO:
            raise ValueError("invalid negotiate flags")
        target_info = _field(cmsg, 40, "target info")
        try:
            info = TargetInfoEncoder.from_bytes(target_info, encode_utf16le(target_spn))
        except ValueError as exc:
            raise ValueError("invalid target info format") from exc

        return cls(raw=cmsg, flags=flags, info=info, target_name=target_name)