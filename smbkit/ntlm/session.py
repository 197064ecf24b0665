"""An established NTLM security context: message signing and sealing."""

from __future__ import annotations

import hmac
from dataclasses import dataclass

from Crypto.Cipher import ARC4

from ..smb2.util import decode_utf16le
from .crypto import AvId, NegotiateFlags, mac, seal_key, sign_key

__all__ = ["InfoMap", "Session"]

_SIGNATURE_SIZE = 16


@dataclass(frozen=True)
class InfoMap:
    """Names the server announced in its target info."""

    nb_computer_name: str = ""
    nb_domain_name: str = ""
    dns_computer_name: str = ""
    dns_domain_name: str = ""
    dns_tree_name: str = ""


class Session:
    """Keys and cipher state negotiated by an NTLM exchange."""

    def __init__(
        self,
        is_client_side: bool,
        user: str,
        negotiate_flags: int,
        session_key: bytes,
        av_pairs: dict[int, bytes] | None = None,
    ) -> None:
        self.is_client_side = is_client_side
        self.user = user
        self.negotiate_flags = int(negotiate_flags)
        self.session_key = bytes(session_key)
        self._av_pairs = dict(av_pairs or {})

        flags = self.negotiate_flags
        self.client_signing_key = sign_key(flags, self.session_key, True)
        self.server_signing_key = sign_key(flags, self.session_key, False)
        self._client_handle = ARC4.new(seal_key(flags, self.session_key, True))
        self._server_handle = ARC4.new(seal_key(flags, self.session_key, False))

    def _outgoing(self):
        if self.is_client_side:
            return self._client_handle, self.client_signing_key
        return self._server_handle, self.server_signing_key

    def _incoming(self):
        if self.is_client_side:
            return self._server_handle, self.server_signing_key
        return self._client_handle, self.client_signing_key

    def _signs(self) -> bool:
        return bool(self.negotiate_flags & NegotiateFlags.NEGOTIATE_SIGN)

    def _seals(self) -> bool:
        return bool(self.negotiate_flags & NegotiateFlags.NEGOTIATE_SEAL)

    def info_map(self) -> InfoMap:
        """Decode the names from the server's target info."""

        def name(av_id: AvId) -> str:
            return decode_utf16le(self._av_pairs.get(av_id, b""))

        return InfoMap(
            nb_computer_name=name(AvId.NB_COMPUTER_NAME),
            nb_domain_name=name(AvId.NB_DOMAIN_NAME),
            dns_computer_name=name(AvId.DNS_COMPUTER_NAME),
            dns_domain_name=name(AvId.DNS_DOMAIN_NAME),
            dns_tree_name=name(AvId.DNS_TREE_NAME),
        )

    def overhead(self) -> int:
        """Return the number of bytes a signature adds to a message."""
        return _SIGNATURE_SIZE

    def sum(self, plaintext: bytes, seq_num: int) -> tuple[bytes | None, int]:
        """Sign an outgoing message; return the signature and the next sequence number."""
        if not self._signs():
            return None, 0
        handle, key = self._outgoing()
        return mac(self.negotiate_flags, handle, key, seq_num, plaintext)

    def check_sum(
        self, signature: bytes | None, plaintext: bytes, seq_num: int
    ) -> tuple[bool, int]:
        """Verify an incoming signature; return whether it matched and the next sequence number."""
        if not self._signs():
            return signature is None, 0
        if signature is None:
            return False, 0
        handle, key = self._incoming()
        expected, next_seq = mac(self.negotiate_flags, handle, key, seq_num, plaintext)
        if not hmac.compare_digest(bytes(signature), expected):
            return False, 0
        return True, next_seq

    def seal(self, plaintext: bytes, seq_num: int) -> tuple[bytes, int]:
        """Return the signature followed by the (possibly encrypted) message, and the next sequence number."""
        plaintext = bytes(plaintext)
        if self._seals():
            body = self._client_handle.encrypt(plaintext)
            handle, key = self._outgoing()
            tag, seq_num = mac(self.negotiate_flags, handle, key, seq_num, plaintext)
        elif self._signs():
            body = plaintext
            handle, key = self._outgoing()
            tag, seq_num = mac(self.negotiate_flags, handle, key, seq_num, plaintext)
        else:
            body = plaintext
            tag = bytes(_SIGNATURE_SIZE)
        return tag + body, seq_num

    def unseal(self, ciphertext: bytes, seq_num: int) -> tuple[bytes, int]:
        """Verify and decrypt a sealed message; raise ValueError on a bad signature."""
        ciphertext = bytes(ciphertext)
        if len(ciphertext) < _SIGNATURE_SIZE:
            raise ValueError("ciphertext is too short")
        header, body = ciphertext[:_SIGNATURE_SIZE], ciphertext[_SIGNATURE_SIZE:]

        if self._seals() or self._signs():
            plaintext = self._server_handle.decrypt(body) if self._seals() else body
            handle, key = self._incoming()
            expected, seq_num = mac(self.negotiate_flags, handle, key, seq_num, plaintext)
            if not hmac.compare_digest(header, expected):
                raise ValueError("signature mismatch")
            return plaintext, seq_num

        if any(header):
            raise ValueError("signature mismatch")
        return body, seq_num