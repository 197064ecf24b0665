import struct

import pytest

from smbkit.ntlm.challenge import ChallengeMessage
from smbkit.ntlm.crypto import (
    DEFAULT_FLAGS,
    NTLM_CHALLENGE,
    NTLM_NEGOTIATE,
    SIGNATURE,
    AvId,
    NegotiateFlags,
    parse_av_pairs,
)
from smbkit.smb2.util import encode_utf16le

SERVER_CHALLENGE = bytes(range(1, 9))


def _negotiate(flags=DEFAULT_FLAGS):
    return SIGNATURE + struct.pack("<II", NTLM_NEGOTIATE, int(flags)) + bytes(24)


def _target_info():
    name = encode_utf16le("Server")
    return struct.pack("<HH", AvId.NB_COMPUTER_NAME, len(name)) + name + bytes(4)


def _challenge(
    flags=DEFAULT_FLAGS,
    target_name=None,
    target_info=None,
    msg_type=NTLM_CHALLENGE,
    signature=SIGNATURE,
):
    target_name = encode_utf16le("server") if target_name is None else target_name
    target_info = _target_info() if target_info is None else target_info
    off = 56
    name_off = off
    info_off = off + len(target_name)
    head = signature + struct.pack("<I", msg_type)
    head += struct.pack("<HHI", len(target_name), len(target_name), name_off)
    head += struct.pack("<I", int(flags)) + SERVER_CHALLENGE + bytes(8)
    head += struct.pack("<HHI", len(target_info), len(target_info), info_off)
    head += bytes(8)
    return head + target_name + target_info


def test_parse_valid_message():
    cmsg = _challenge()
    msg = ChallengeMessage.parse(cmsg, _negotiate(), "")
    assert msg.raw == cmsg
    assert msg.target_name == encode_utf16le("server")
    assert msg.server_challenge == SERVER_CHALLENGE
    assert msg.flags == DEFAULT_FLAGS
    assert msg.info.info == _target_info()
    assert msg.info.info_map[AvId.NB_COMPUTER_NAME] == encode_utf16le("Server")
    assert msg.info.spn == b""


def test_flags_are_intersection():
    server_flags = DEFAULT_FLAGS | NegotiateFlags.NEGOTIATE_SEAL
    client_flags = DEFAULT_FLAGS & ~NegotiateFlags.NEGOTIATE_KEY_EXCH
    msg = ChallengeMessage.parse(_challenge(flags=server_flags), _negotiate(client_flags), "")
    assert msg.flags == int(server_flags) & int(client_flags)
    assert not msg.flags & NegotiateFlags.NEGOTIATE_SEAL
    assert not msg.flags & NegotiateFlags.NEGOTIATE_KEY_EXCH


def test_spn_goes_into_encoded_target_info():
    msg = ChallengeMessage.parse(_challenge(), _negotiate(), "cifs/remotehost:1020")
    assert msg.info.spn == encode_utf16le("cifs/remotehost:1020")
    pairs = parse_av_pairs(msg.info.encode())
    assert pairs[AvId.TARGET_NAME] == encode_utf16le("cifs/remotehost:1020")


def test_too_short():
    with pytest.raises(ValueError, match="too short"):
        ChallengeMessage.parse(_challenge()[:40], _negotiate(), "")


def test_bad_signature():
    with pytest.raises(ValueError, match="signature"):
        ChallengeMessage.parse(_challenge(signature=b"XTLMSSP\x00"), _negotiate(), "")


def test_bad_message_type():
    with pytest.raises(ValueError, match="message type"):
        ChallengeMessage.parse(_challenge(msg_type=NTLM_NEGOTIATE), _negotiate(), "")


def test_missing_request_target():
    flags = DEFAULT_FLAGS & ~NegotiateFlags.REQUEST_TARGET
    with pytest.raises(ValueError, match="negotiate flags"):
        ChallengeMessage.parse(_challenge(), _negotiate(flags), "")


def test_missing_target_info_flag():
    flags = DEFAULT_FLAGS & ~NegotiateFlags.NEGOTIATE_TARGET_INFO
    with pytest.raises(ValueError, match="negotiate flags"):
        ChallengeMessage.parse(_challenge(flags=flags), _negotiate(), "")


def test_target_name_max_len_below_len():
    cmsg = bytearray(_challenge())
    struct.pack_into("<H", cmsg, 14, 0)
    with pytest.raises(ValueError, match="target name"):
        ChallengeMessage.parse(bytes(cmsg), _negotiate(), "")


def test_target_name_out_of_range():
    cmsg = bytearray(_challenge())
    struct.pack_into("<I", cmsg, 16, len(cmsg))
    with pytest.raises(ValueError, match="target name"):
        ChallengeMessage.parse(bytes(cmsg), _negotiate(), "")


def test_target_info_out_of_range():
    cmsg = bytearray(_challenge())
    struct.pack_into("<I", cmsg, 44, len(cmsg) - 2)
    with pytest.raises(ValueError, match="target info"):
        ChallengeMessage.parse(bytes(cmsg), _negotiate(), "")


def test_target_info_without_eol():
    bad_info = struct.pack("<HH", AvId.NB_COMPUTER_NAME, 4) + b"abcd"
    with pytest.raises(ValueError, match="target info"):
        ChallengeMessage.parse(_challenge(target_info=bad_info), _negotiate(), "")


def test_negotiate_message_too_short():
    with pytest.raises(ValueError):
        ChallengeMessage.parse(_challenge(), SIGNATURE, "")