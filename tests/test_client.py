import hashlib
import hmac
import struct

import pytest
from Crypto.Cipher import ARC4
from Crypto.Hash import MD4

from smbkit.ntlm.client import Client
from smbkit.ntlm.crypto import (
    DEFAULT_FLAGS,
    NTLM_AUTHENTICATE,
    NTLM_CHALLENGE,
    NTLM_NEGOTIATE,
    SIGNATURE,
    VERSION,
    AvId,
    NegotiateFlags,
    ntlmv2_response,
    ntowfv2,
    parse_av_pairs,
)
from smbkit.ntlm.session import Session

SERVER_CHALLENGE = bytes.fromhex("0123456789abcdef")
EOL = bytes(4)


def utf16(s):
    return s.encode("utf-16-le")


def av(av_id, value):
    return struct.pack("<HH", av_id, len(value)) + value


def make_challenge(flags=int(DEFAULT_FLAGS), target_name="SERVER", target_info=EOL):
    name = utf16(target_name)
    buf = bytearray(56)
    buf[:8] = SIGNATURE
    struct.pack_into("<I", buf, 8, NTLM_CHALLENGE)
    struct.pack_into("<HHI", buf, 12, len(name), len(name), 56)
    struct.pack_into("<I", buf, 20, flags)
    buf[24:32] = SERVER_CHALLENGE
    struct.pack_into("<HHI", buf, 40, len(target_info), len(target_info), 56 + len(name))
    buf[48:56] = VERSION
    return bytes(buf) + name + target_info


def read_field(msg, at):
    length, _, offset = struct.unpack_from("<HHI", msg, at)
    return msg[offset:offset + length]


def run(client, cmsg=None):
    nmsg = client.negotiate()
    cmsg = cmsg if cmsg is not None else make_challenge()
    return nmsg, cmsg, client.authenticate(cmsg)


def test_negotiate_message_layout():
    nmsg = Client().negotiate()
    assert len(nmsg) == 40
    assert nmsg[:8] == SIGNATURE
    assert struct.unpack_from("<II", nmsg, 8) == (NTLM_NEGOTIATE, int(DEFAULT_FLAGS))
    assert nmsg[32:40] == VERSION


def test_authenticate_before_negotiate_fails():
    with pytest.raises(RuntimeError):
        Client(user="user").authenticate(make_challenge())


def test_authenticate_header_and_names():
    password = "password"
    client = Client(user="user", password=password, domain="Domain", workstation="HOME-PC")
    _, _, amsg = run(client)
    assert amsg[:8] == SIGNATURE
    assert struct.unpack_from("<I", amsg, 8)[0] == NTLM_AUTHENTICATE
    assert struct.unpack_from("<I", amsg, 60)[0] == int(DEFAULT_FLAGS)
    assert amsg[64:72] == VERSION
    assert read_field(amsg, 28) == utf16("Domain")
    assert read_field(amsg, 36) == utf16("user")
    assert read_field(amsg, 44) == utf16("HOME-PC")
    assert read_field(amsg, 12) == bytes(24)


def test_domain_falls_back_to_target_name():
    password = "password"
    client = Client(user="user", password=password)
    _, _, amsg = run(client)
    assert read_field(amsg, 28) == utf16("SERVER")
    assert struct.unpack_from("<HHI", amsg, 44) == (0, 0, 0)


def test_nt_response_verifies_against_password_key():
    password = "password"
    client = Client(user="user", password=password, domain="Domain")
    _, _, amsg = run(client)
    nt = read_field(amsg, 20)
    blob = nt[16:]
    key = ntowfv2(utf16("USER"), utf16(password), utf16("Domain"))
    expected = ntlmv2_response(key, SERVER_CHALLENGE, blob[16:24], blob[8:16], blob[28:-4])
    assert nt == expected


def test_nt_hash_matches_password_derivation():
    password = "password"
    nt_hash = MD4.new(utf16(password)).digest()
    client = Client(user="user", nt_hash=nt_hash, domain="Domain")
    _, _, amsg = run(client)
    nt = read_field(amsg, 20)
    blob = nt[16:]
    key = ntowfv2(utf16("USER"), utf16(password), utf16("Domain"))
    assert nt == ntlmv2_response(key, SERVER_CHALLENGE, blob[16:24], blob[8:16], blob[28:-4])


def test_encrypted_session_key_and_mic():
    password = "password"
    client = Client(user="user", password=password, domain="Domain")
    nmsg, cmsg, amsg = run(client)
    session = client.session
    nt = read_field(amsg, 20)
    key = ntowfv2(utf16("USER"), utf16(password), utf16("Domain"))
    key_exchange_key = hmac.new(key, nt[:16], hashlib.md5).digest()
    encrypted = read_field(amsg, 52)
    assert ARC4.new(key_exchange_key).decrypt(encrypted) == session.session_key
    assert struct.unpack_from("<I", amsg, 56)[0] + 16 == len(amsg)

    zeroed = amsg[:72] + bytes(16) + amsg[88:]
    mic = hmac.new(session.session_key, nmsg + cmsg + zeroed, hashlib.md5).digest()
    assert amsg[72:88] == mic


def test_without_key_exchange_session_key_is_key_exchange_key():
    password = "password"
    flags = int(DEFAULT_FLAGS) & ~int(NegotiateFlags.NEGOTIATE_KEY_EXCH)
    client = Client(user="user", password=password, domain="Domain")
    _, _, amsg = run(client, make_challenge(flags=flags))
    assert struct.unpack_from("<HHI", amsg, 52) == (0, 0, 0)
    nt = read_field(amsg, 20)
    key = ntowfv2(utf16("USER"), utf16(password), utf16("Domain"))
    assert client.session.session_key == hmac.new(key, nt[:16], hashlib.md5).digest()


def test_anonymous_login():
    client = Client()
    _, _, amsg = run(client)
    assert read_field(amsg, 12) == b""
    assert read_field(amsg, 20) == b""
    encrypted = read_field(amsg, 52)
    assert ARC4.new(bytes(16)).decrypt(encrypted) == client.session.session_key
    assert client.session.user == ""


def test_target_info_is_extended():
    password = "password"
    client = Client(user="user", password=password, target_spn="cifs/host")
    info = av(AvId.NB_COMPUTER_NAME, utf16("SERVER")) + EOL
    _, _, amsg = run(client, make_challenge(target_info=info))
    blob = read_field(amsg, 20)[16:]
    pairs = parse_av_pairs(blob[28:-4])
    assert pairs[AvId.TARGET_NAME] == utf16("cifs/host")
    assert pairs[AvId.CHANNEL_BINDINGS] == bytes(16)
    assert struct.unpack("<I", pairs[AvId.FLAGS])[0] & 0x02
    assert pairs[AvId.NB_COMPUTER_NAME] == utf16("SERVER")
    assert client.session.info_map().nb_computer_name == "SERVER"


def test_server_timestamp_is_used():
    password = "password"
    stamp = bytes(range(1, 9))
    info = av(AvId.TIMESTAMP, stamp) + EOL
    client = Client(user="user", password=password)
    _, _, amsg = run(client, make_challenge(target_info=info))
    blob = read_field(amsg, 20)[16:]
    assert blob[8:16] == stamp
    assert blob[:2] == b"\x01\x01"


def test_challenge_without_target_info_flag_is_rejected():
    password = "password"
    flags = int(DEFAULT_FLAGS) & ~int(NegotiateFlags.NEGOTIATE_TARGET_INFO)
    client = Client(user="user", password=password)
    client.negotiate()
    with pytest.raises(ValueError, match="invalid negotiate flags"):
        client.authenticate(make_challenge(flags=flags))


def test_client_session_signs_for_peer():
    password = "password"
    client = Client(user="user", password=password)
    run(client)
    session = client.session
    peer = Session(False, "user", session.negotiate_flags, session.session_key)
    signature, seq = session.sum(b"hello", 0)
    assert peer.check_sum(signature, b"hello", 0) == (True, seq)
    sealed, _ = session.seal(b"payload", 1)
    assert peer.unseal(sealed, 1) == (b"payload", 2)