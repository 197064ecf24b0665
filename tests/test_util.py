import pytest

from smbkit.smb2.util import (
    Encoder,
    decode_utf16le,
    encode_utf16le,
    encoded_len,
    roundup,
    utf16_from_string,
    utf16_to_string,
)


@pytest.mark.parametrize("x", [0, 1, 7, 8, 9, 15, 16, 17, 100, 1023])
@pytest.mark.parametrize("align", [1, 2, 4, 8, 16])
def test_roundup_invariants(x, align):
    r = roundup(x, align)
    assert r % align == 0
    assert x <= r < x + align


def test_roundup_keeps_aligned_value():
    assert roundup(8, 8) == 8
    assert roundup(0, 8) == 0


def test_encode_ascii_is_little_endian():
    assert encode_utf16le("A") == b"A\x00"


@pytest.mark.parametrize("text", ["", "share", "\\\\server\\share", "héllo", "\U0001F600 x"])
def test_utf16le_round_trip(text):
    assert decode_utf16le(encode_utf16le(text)) == text


@pytest.mark.parametrize("text", ["", "abc", "日本語", "\U0001F600"])
def test_encoded_len_matches_encoding(text):
    assert encoded_len(text) == len(encode_utf16le(text))
    assert encoded_len(text) % 2 == 0


def test_decode_ignores_trailing_odd_byte():
    assert decode_utf16le(encode_utf16le("ab") + b"\x41") == "ab"


def test_code_units_round_trip():
    text = "a\U0001F600b"
    units = utf16_from_string(text)
    assert len(units) == 4
    assert 0xD800 <= units[1] < 0xDC00
    assert 0xDC00 <= units[2] < 0xE000
    assert utf16_to_string(units) == text


def test_code_units_of_ascii_match_ordinals():
    assert utf16_from_string("SMB") == [ord(c) for c in "SMB"]


def test_unpaired_surrogate_is_replaced():
    assert utf16_to_string([ord("x"), 0xD800]) == "x\ufffd"


def test_encoder_is_abstract():
    with pytest.raises(TypeError):
        Encoder()