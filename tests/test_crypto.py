"""
Hash, address and base58 helpers.
"""
import pytest

from btcpop.crypto import b58decode, h160, hkdf


@pytest.mark.parametrize("text,raw", [
    ("", b""),
    ("1", b"\x00"),
    ("111111", bytes(6)),
    ("Ldp", b"\x01\x02\x03"),
    ("11Ldp", b"\x00\x00\x01\x02\x03"),
    ("2", b"\x01"),
])
def test_b58decode(text, raw):
    assert b58decode(text) == raw


@pytest.mark.parametrize("text", ["0", "O", "I", "l", "1+"])
def test_b58decode_rejects_bad_characters(text):
    with pytest.raises(ValueError):
        b58decode(text)


def test_h160_of_empty():
    assert h160(b"").hex() == "b472a266d0bd89c13706a4132ccfb16f7c3b9fcb"


def test_hkdf_length_and_determinism():
    assert len(hkdf(b"pw", b"salt", b"info", 64)) == 64
    assert hkdf(b"pw", b"salt", b"info", 64) == hkdf(b"pw", b"salt", b"info", 64)
    assert hkdf(b"pw", b"salt", b"info", 32) != hkdf(b"pw", b"salt2", b"info", 32)
