import struct

import pytest

from smbkit.ntlm.client import Client
from smbkit.ntlm.crypto import DEFAULT_FLAGS, SIGNATURE, VERSION, NegotiateFlags
from smbkit.ntlm.server import Server


def _exchange(user, secret, account_secret=None):
    password = secret
    client = Client(user=user, password=password)
    server = Server("server")
    if account_secret is not None:
        server.add_account("user", account_secret)
    nmsg = client.negotiate()
    cmsg = server.challenge(nmsg)
    amsg = client.authenticate(cmsg)
    return client, server, amsg


@pytest.mark.parametrize(
    "user, secret",
    [("user", "password"), ("", "")],
    ids=["authenticated", "anonymous"],
)
def test_client_server(user, secret):
    client, server, amsg = _exchange(user, secret, "password" if user else None)
    server.authenticate(amsg)
    assert client.session is not None
    assert server.session is not None
    assert client.session.session_key == server.session.session_key


def test_server_session_records_user():
    _, server, amsg = _exchange("user", "password", "password")
    server.authenticate(amsg)
    assert server.session.user == "user"
    assert server.session.is_client_side is False


def test_signatures_verify_across_sides():
    client, server, amsg = _exchange("user", "password", "password")
    server.authenticate(amsg)
    signature, next_seq = client.session.sum(b"hello", 0)
    assert next_seq == 1
    ok, seq = server.session.check_sum(signature, b"hello", 0)
    assert ok is True
    assert seq == 1


def test_wrong_password_fails():
    _, server, amsg = _exchange("user", "secret", "password")
    with pytest.raises(ValueError, match="login failure"):
        server.authenticate(amsg)
    assert server.session is None


def test_unknown_user_fails():
    _, server, amsg = _exchange("user", "password", None)
    with pytest.raises(ValueError, match="login failure"):
        server.authenticate(amsg)


def test_tampered_mic_fails():
    _, server, amsg = _exchange("user", "password", "password")
    tampered = bytearray(amsg)
    tampered[80] ^= 0xFF
    with pytest.raises(ValueError, match="login failure"):
        server.authenticate(bytes(tampered))


def test_challenge_layout():
    client = Client()
    nmsg = client.negotiate()
    server = Server("server")
    cmsg = server.challenge(nmsg)
    name = "server".encode("utf-16-le")
    assert cmsg[:8] == SIGNATURE
    assert struct.unpack_from("<I", cmsg, 8)[0] == 2
    flags = struct.unpack_from("<I", cmsg, 20)[0]
    assert flags == struct.unpack_from("<I", nmsg, 12)[0] & int(DEFAULT_FLAGS)
    assert struct.unpack_from("<HHI", cmsg, 12) == (len(name), len(name), 56)
    assert cmsg[56:56 + len(name)] == name
    assert struct.unpack_from("<HHI", cmsg, 40) == (4, 4, 56 + len(name))
    assert cmsg[-4:] == bytes(4)
    assert cmsg[48:56] == VERSION
    assert len(cmsg) == 56 + len(name) + 4


def test_challenge_without_version_flag():
    nmsg = bytearray(40)
    nmsg[:8] = SIGNATURE
    flags = int(
        NegotiateFlags.REQUEST_TARGET
        | NegotiateFlags.NEGOTIATE_TARGET_INFO
        | NegotiateFlags.NEGOTIATE_UNICODE
    )
    struct.pack_into("<II", nmsg, 8, 1, flags)
    cmsg = Server("srv").challenge(bytes(nmsg))
    assert struct.unpack_from("<I", cmsg, 20)[0] == flags
    assert struct.unpack_from("<HHI", cmsg, 12)[2] == 48
    assert len(cmsg) == 48 + 6 + 4


def test_challenges_are_random():
    nmsg = Client().negotiate()
    server = Server("server")
    first = server.challenge(nmsg)[24:32]
    second = server.challenge(nmsg)[24:32]
    assert first != second or first == bytes(8) and False


@pytest.mark.parametrize(
    "nmsg, message",
    [
        (b"NTLMSSP\x00" + bytes(10), "too short"),
        (b"NTLMSSX\x00" + struct.pack("<I", 1) + bytes(28), "invalid signature"),
        (SIGNATURE + struct.pack("<I", 3) + bytes(28), "invalid message type"),
    ],
)
def test_challenge_rejects_bad_negotiate(nmsg, message):
    with pytest.raises(ValueError, match=message):
        Server("server").challenge(nmsg)


def test_authenticate_requires_challenge():
    with pytest.raises(RuntimeError):
        Server("server").authenticate(SIGNATURE + struct.pack("<I", 3) + bytes(80))


@pytest.mark.parametrize(
    "amsg, message",
    [
        (SIGNATURE + bytes(20), "too short"),
        (b"XXXXXXXX" + struct.pack("<I", 3) + bytes(76), "invalid signature"),
        (SIGNATURE + struct.pack("<I", 1) + bytes(76), "invalid message type"),
    ],
)
def test_authenticate_rejects_malformed(amsg, message):
    server = Server("server")
    server.challenge(Client().negotiate())
    with pytest.raises(ValueError, match=message):
        server.authenticate(amsg)


def test_authenticate_rejects_out_of_range_field():
    server = Server("server")
    server.challenge(Client().negotiate())
    amsg = bytearray(SIGNATURE + struct.pack("<I", 3) + bytes(76))
    struct.pack_into("<HHI", amsg, 36, 8, 8, 200)
    with pytest.raises(ValueError, match="user name"):
        server.authenticate(bytes(amsg))