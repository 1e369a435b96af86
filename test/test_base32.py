"""
Tests for the Base32 codec
"""

import os

import pytest

from chatter_2fa.exceptions import MalformedSecretError
from chatter_2fa.otp import base32


class TestEncode:
    """Tests for base32.encode"""

    def test_rfc4648_vectors_without_padding(self):
        assert base32.encode(b"") == ""
        assert base32.encode(b"f") == "MY"
        assert base32.encode(b"fo") == "MZXQ"
        assert base32.encode(b"foo") == "MZXW6"
        assert base32.encode(b"foob") == "MZXW6YQ"
        assert base32.encode(b"fooba") == "MZXW6YTB"
        assert base32.encode(b"foobar") == "MZXW6YTBOI"

    def test_output_uses_base32_alphabet_only(self):
        encoded = base32.encode(os.urandom(64))
        assert set(encoded) <= set(base32.BASE32_ALPHABET)
        assert "=" not in encoded


class TestDecode:
    """Tests for base32.decode"""

    def test_round_trip_random_bytes(self):
        for length in (0, 1, 5, 10, 16, 20, 33, 64):
            data = os.urandom(length)
            assert base32.decode(base32.encode(data)) == data

    def test_decode_is_case_insensitive(self):
        assert base32.decode("mzxw6ytboi") == b"foobar"
        assert base32.decode("MzXw6YtBoI") == b"foobar"

    def test_decode_accepts_trailing_padding(self):
        assert base32.decode("MZXW6YTBOI======") == b"foobar"
        assert base32.decode("MY======") == b"f"

    def test_decode_rejects_characters_outside_alphabet(self):
        # "1", "8", "0" and punctuation are not Base32
        for bad in ("MZXW6YT1", "MZXW6YT8", "MZXW 6YTB", "MZXW-6YTB", "MZXW6YTB!"):
            with pytest.raises(MalformedSecretError):
                base32.decode(bad)

    def test_decode_rejects_padding_in_the_middle(self):
        with pytest.raises(MalformedSecretError):
            base32.decode("MZ==XW6Y")

    def test_decode_rejects_impossible_lengths(self):
        for bad in ("M", "MZX", "MZXW6Y"):
            with pytest.raises(MalformedSecretError):
                base32.decode(bad)

    def test_decode_rejects_non_string(self):
        with pytest.raises(MalformedSecretError):
            base32.decode(b"MZXW6YTBOI")


class TestNormalize:
    """Tests for base32.normalize"""

    def test_normalize_uppercases_and_strips_padding(self):
        assert base32.normalize("mzxw6ytboi==") == "MZXW6YTBOI"

    def test_normalize_keeps_canonical_text(self):
        assert base32.normalize("JBSWY3DPEHPK3PXP") == "JBSWY3DPEHPK3PXP"
