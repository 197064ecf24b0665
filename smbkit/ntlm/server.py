"""The server side of an NTLMv2 exchange."""

from __future__ import annotations

import hashlib
import hmac
import os
import struct

from Crypto.Cipher import ARC4

from ..smb2.util import decode_utf16le, encode_utf16le
from .crypto import (
    ANONYMOUS_KEY_EXCHANGE_KEY,
    DEFAULT_FLAGS,
    NTLM_AUTHENTICATE,
    NTLM_CHALLENGE,
    NTLM_NEGOTIATE,
    SIGNATURE,
    VERSION,
    NegotiateFlags,
    ntowfv2,
)
from .session import Session

__all__ = ["Server"]

_CHALLENGE_HEADER_SIZE = 48


def _field(msg: bytes, at: int, what: str) -> bytes:
    """Return the payload described by the length/max-length/offset field at ``at``."""
    length, max_length, offset = struct.unpack_from("<HHI", msg, at)
    if max_length < length:
        raise ValueError(f"invalid {what} format")
    if len(msg) < offset + length:
        raise ValueError(f"invalid {what} format")
    return bytes(msg[offset:offset + length])


class Server:
    """An NTLMv2 acceptor holding a table of user accounts."""

    def __init__(self, target_name: str) -> None:
        self.target_name = target_name
        self._accounts: dict[str, str] = {}
        self._nmsg: bytes | None = None
        self._cmsg: bytes | None = None
        self._session: Session | None = None

    @property
    def session(self) -> Session | None:
        """The session established by ``authenticate``, if any."""
        return self._session

    def add_account(self, user: str, password: str) -> None:
        """Register (or replace) the password of ``user``."""
        self._accounts[user] = password

    def challenge(self, nmsg: bytes) -> bytes:
        """Answer a NEGOTIATE_MESSAGE with a CHALLENGE_MESSAGE."""
        nmsg = bytes(nmsg)
        self._nmsg = nmsg

        if len(nmsg) < 32:
            raise ValueError("message length is too short")
        if nmsg[:8] != SIGNATURE:
            raise ValueError("invalid signature")
        if struct.unpack_from("<I", nmsg, 8)[0] != NTLM_NEGOTIATE:
            raise ValueError("invalid message type")

        flags = struct.unpack_from("<I", nmsg, 12)[0] & int(DEFAULT_FLAGS)

        off = _CHALLENGE_HEADER_SIZE
        if flags & NegotiateFlags.NEGOTIATE_VERSION:
            off += 8

        target_name = encode_utf16le(self.target_name)
        cmsg = bytearray(off + len(target_name) + 4)
        cmsg[:8] = SIGNATURE
        struct.pack_into("<I", cmsg, 8, NTLM_CHALLENGE)
        struct.pack_into("<I", cmsg, 20, flags)

        if target_name and flags & NegotiateFlags.REQUEST_TARGET:
            cmsg[off:off + len(target_name)] = target_name
            struct.pack_into("<HHI", cmsg, 12, len(target_name), len(target_name), off)
            off += len(target_name)

        if flags & NegotiateFlags.NEGOTIATE_TARGET_INFO:
            # A target info holding only MsvAvEOL.
            cmsg[off:off + 4] = bytes(4)
            struct.pack_into("<HHI", cmsg, 40, 4, 4, off)

        cmsg[24:32] = os.urandom(8)

        if flags & NegotiateFlags.NEGOTIATE_VERSION:
            cmsg[48:56] = VERSION

        self._cmsg = bytes(cmsg)
        return self._cmsg

    def authenticate(self, amsg: bytes) -> None:
        """Verify an AUTHENTICATE_MESSAGE; raise ValueError if it is malformed or wrong."""
        if self._nmsg is None or self._cmsg is None:
            raise RuntimeError("challenge must be called before authenticate")
        amsg = bytearray(amsg)

        if len(amsg) < 64:
            raise ValueError("message length is too short")
        if amsg[:8] != SIGNATURE:
            raise ValueError("invalid signature")
        if struct.unpack_from("<I", amsg, 8)[0] != NTLM_AUTHENTICATE:
            raise ValueError("invalid message type")

        flags = struct.unpack_from("<I", amsg, 60)[0]

        nt_response = _field(amsg, 20, "LM challenge")
        domain_name = _field(amsg, 28, "domain name")
        user_name = _field(amsg, 36, "user name")
        encrypted_key = _field(amsg, 52, "user name")

        user = decode_utf16le(user_name)
        upper_user = encode_utf16le(user.upper())
        password = encode_utf16le(self._accounts.get(user, ""))
        response_key = ntowfv2(upper_user, password, domain_name)

        if user_name or nt_response:
            if len(nt_response) < 16 + 28:
                raise ValueError("invalid NT challenge response format")
            client_blob = nt_response[16:]
            timestamp = client_blob[8:16]
            client_challenge = client_blob[16:24]
            target_info = client_blob[28:]
            expected_blob = (
                b"\x01\x01" + bytes(6) + timestamp + client_challenge + bytes(4) + target_info
            )
            server_challenge = self._cmsg[24:32]
            proof = hmac.new(
                response_key, server_challenge + expected_blob, hashlib.md5
            ).digest()
            if not hmac.compare_digest(nt_response, proof + expected_blob):
                raise ValueError("login failure")
            session_base_key = hmac.new(response_key, nt_response[:16], hashlib.md5).digest()
        else:
            session_base_key = hmac.new(response_key, b"", hashlib.md5).digest()

        key_exchange_key = session_base_key if user_name else ANONYMOUS_KEY_EXCHANGE_KEY

        if flags & NegotiateFlags.NEGOTIATE_KEY_EXCH:
            if len(encrypted_key) > 16:
                raise ValueError("invalid encrypted session key format")
            decrypted = ARC4.new(key_exchange_key).decrypt(encrypted_key)
            exported_session_key = decrypted + bytes(16 - len(decrypted))
        else:
            exported_session_key = key_exchange_key

        mic_at = 72 if flags & NegotiateFlags.NEGOTIATE_VERSION else 64
        if len(amsg) < mic_at + 16:
            raise ValueError("message length is too short")
        mic = bytes(amsg[mic_at:mic_at + 16])
        amsg[mic_at:mic_at + 16] = bytes(16)
        expected_mic = hmac.new(
            exported_session_key, self._nmsg + self._cmsg + bytes(amsg), hashlib.md5
        ).digest()
        if not hmac.compare_digest(mic, expected_mic):
            raise ValueError("login failure")

        self._session = Session(
            is_client_side=False,
            user=user,
            negotiate_flags=flags,
            session_key=exported_session_key,
        )