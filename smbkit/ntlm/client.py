"""The client side of an NTLMv2 exchange."""

from __future__ import annotations

import hashlib
import hmac
import os
import struct
import time
from dataclasses import dataclass, field

from Crypto.Cipher import ARC4

from ..smb2.util import encode_utf16le
from .challenge import ChallengeMessage
from .crypto import (
    ANONYMOUS_KEY_EXCHANGE_KEY,
    DEFAULT_FLAGS,
    NTLM_AUTHENTICATE,
    NTLM_NEGOTIATE,
    SIGNATURE,
    VERSION,
    AvId,
    NegotiateFlags,
    ntlmv2_response,
    ntowfv2,
    ntowfv2_hash,
)
from .session import Session

__all__ = ["Client"]

_EPOCH_DIFF = 116444736000000000
_AUTHENTICATE_HEADER_SIZE = 88


def _place(msg: bytearray, at: int, value: bytes, off: int) -> int:
    """Copy ``value`` to ``off``, describe it in the field at ``at``, return the new offset."""
    msg[off:off + len(value)] = value
    struct.pack_into("<HHI", msg, at, len(value), len(value), off)
    return off + len(value)


@dataclass
class Client:
    """NTLMv2 client credentials and the state of one exchange."""

    user: str = ""
    password: str = ""
    nt_hash: bytes | None = None
    domain: str = ""
    workstation: str = ""
    target_spn: str = ""

    _nmsg: bytes | None = field(default=None, init=False, repr=False)
    _session: Session | None = field(default=None, init=False, repr=False)

    @property
    def session(self) -> Session | None:
        """The session established by ``authenticate``, if any."""
        return self._session

    def _is_anonymous(self) -> bool:
        return not self.user and not self.password and self.nt_hash is None

    def negotiate(self) -> bytes:
        """Build the NEGOTIATE_MESSAGE that opens the exchange."""
        nmsg = bytearray(40)
        nmsg[:8] = SIGNATURE
        struct.pack_into("<II", nmsg, 8, NTLM_NEGOTIATE, int(DEFAULT_FLAGS))
        nmsg[32:40] = VERSION
        self._nmsg = bytes(nmsg)
        return self._nmsg

    def authenticate(self, cmsg: bytes) -> bytes:
        """Answer the server's CHALLENGE_MESSAGE with an AUTHENTICATE_MESSAGE."""
        if self._nmsg is None:
            raise RuntimeError("negotiate must be called before authenticate")
        cmsg = bytes(cmsg)
        challenge = ChallengeMessage.parse(cmsg, self._nmsg, self.target_spn)
        info = challenge.info
        flags = challenge.flags

        domain = encode_utf16le(self.domain) if self.domain else challenge.target_name
        user = encode_utf16le(self.user)
        workstation = encode_utf16le(self.workstation)
        anonymous = self._is_anonymous()

        if anonymous:
            lm_len, nt_len = 0, 0
        else:
            lm_len, nt_len = 24, 16 + 28 + info.size() + 4
        key_len = 16

        total = (
            _AUTHENTICATE_HEADER_SIZE
            + len(domain)
            + len(user)
            + len(workstation)
            + lm_len
            + nt_len
            + key_len
        )
        amsg = bytearray(total)
        amsg[:8] = SIGNATURE
        struct.pack_into("<I", amsg, 8, NTLM_AUTHENTICATE)

        off = _place(amsg, 28, domain, _AUTHENTICATE_HEADER_SIZE)
        if user:
            off = _place(amsg, 36, user, off)
        if workstation:
            off = _place(amsg, 44, workstation, off)

        upper_user = encode_utf16le(self.user.upper())
        if self.nt_hash is not None:
            hash_key = ntowfv2_hash(upper_user, self.nt_hash, domain)
        else:
            hash_key = ntowfv2(upper_user, encode_utf16le(self.password), domain)

        struct.pack_into("<HHI", amsg, 12, lm_len, lm_len, off)
        off += lm_len

        if nt_len:
            client_challenge = os.urandom(8)
            if AvId.TIMESTAMP in info.info_map:
                timestamp = info.info_map[AvId.TIMESTAMP]
            else:
                timestamp = struct.pack("<Q", time.time_ns() // 100 + _EPOCH_DIFF)
            response = ntlmv2_response(
                hash_key, challenge.server_challenge, client_challenge, timestamp, info
            )
            amsg[off:off + nt_len] = response
            struct.pack_into("<HHI", amsg, 20, nt_len, nt_len, off)
            off = total - key_len
            session_base_key = hmac.new(hash_key, response[:16], hashlib.md5).digest()
        else:
            session_base_key = hmac.new(hash_key, b"", hashlib.md5).digest()

        key_exchange_key = ANONYMOUS_KEY_EXCHANGE_KEY if anonymous else session_base_key

        if flags & NegotiateFlags.NEGOTIATE_KEY_EXCH:
            exported_session_key = os.urandom(16)
            amsg[off:off + 16] = ARC4.new(key_exchange_key).encrypt(exported_session_key)
            struct.pack_into("<HHI", amsg, 52, 16, 16, off)
        else:
            exported_session_key = key_exchange_key

        struct.pack_into("<I", amsg, 60, flags)
        amsg[64:72] = VERSION
        mic = hmac.new(
            exported_session_key, self._nmsg + cmsg + bytes(amsg), hashlib.md5
        ).digest()
        amsg[72:88] = mic

        self._session = Session(
            is_client_side=True,
            user=self.user,
            negotiate_flags=flags,
            session_key=exported_session_key,
            av_pairs=info.info_map,
        )
        return bytes(amsg)