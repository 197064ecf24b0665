import pytest

from smbkit.smb2.dtyp import Filetime, Sid, nsec_to_filetime

EPOCH_TICKS = 116444736000000000


def test_unix_epoch_filetime():
    ft = nsec_to_filetime(0)
    assert (ft.high_date_time << 32) | ft.low_date_time == EPOCH_TICKS
    assert ft.nanoseconds() == 0


@pytest.mark.parametrize("nsec", [0, 100, 1_700_000_000_000_000_000, -1_000_000_000, 123_456_789_00])
def test_nanoseconds_round_trip(nsec):
    assert nsec_to_filetime(nsec).nanoseconds() == nsec


def test_sub_tick_precision_is_truncated():
    assert nsec_to_filetime(199).nanoseconds() == 100
    assert nsec_to_filetime(-199).nanoseconds() == -100


def test_filetime_bytes_round_trip():
    ft = nsec_to_filetime(1_600_000_000_123_456_700)
    data = ft.encode()
    assert len(data) == ft.size() == 8
    assert Filetime.from_bytes(data) == ft


def test_filetime_from_short_bytes():
    with pytest.raises(ValueError):
        Filetime.from_bytes(b"\x00" * 7)


def test_well_known_sid_string_and_size():
    sid = Sid(1, 5, [32, 544])
    assert str(sid) == "S-1-5-32-544"
    assert sid.size() == 8 + 4 * 2


def test_sid_wire_format():
    sid = Sid(1, 5, [32, 544])
    assert sid.encode() == (
        b"\x01\x02\x00\x00\x00\x00\x00\x05" b"\x20\x00\x00\x00" b"\x20\x02\x00\x00"
    )


def test_large_authority_is_hex():
    assert str(Sid(1, 1 << 40, [])) == "S-1-0x10000000000"


@pytest.mark.parametrize(
    "sid",
    [Sid(1, 5, [21, 1000, 2000, 3000, 500]), Sid(1, 0, []), Sid(1, 0xABCDEF012345, [7])],
)
def test_sid_round_trip(sid):
    data = sid.encode()
    assert len(data) == sid.size()
    decoded = Sid.from_bytes(data)
    assert decoded == sid
    assert str(decoded) == str(sid)


def test_sid_too_short():
    with pytest.raises(ValueError):
        Sid.from_bytes(b"\x01\x00\x00")


def test_sid_truncated_sub_authorities():
    data = Sid(1, 5, [32, 544]).encode()
    with pytest.raises(ValueError):
        Sid.from_bytes(data[:-1])