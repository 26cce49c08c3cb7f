"""Unit tests for the Key Derivation Function (KDF) module."""

import hashlib
from unittest.mock import patch

import pytest
from cryptography.exceptions import UnsupportedAlgorithm

from lockbox.core.exceptions import KeyDerivationUnavailable
from lockbox.security.kdf import (
    KEY_LENGTH,
    MAX_ITERATIONS,
    PBKDF2_ITERATIONS,
    SALT_LENGTH,
    derive_key,
    generate_salt,
)


class FixedRandom:
    """RandomSource stand-in returning a repeating byte."""

    def __init__(self, byte: int = 0xAB):
        self.byte = byte

    def token_bytes(self, n):
        return bytes([self.byte]) * n

    def randbelow(self, n):
        return 0


def test_generate_salt_defaults():
    """Ensure salt generation returns 16 random bytes."""
    salt = generate_salt()
    assert isinstance(salt, bytes)
    assert len(salt) == SALT_LENGTH


def test_generate_salt_is_fresh():
    assert generate_salt() != generate_salt()


def test_generate_salt_uses_injected_source():
    assert generate_salt(FixedRandom(0x01)) == b"\x01" * 16


def test_derive_key_length_and_type():
    key = derive_key("secure_string_password", generate_salt())
    assert isinstance(key, bytes)
    assert len(key) == KEY_LENGTH


def test_derive_key_matches_pbkdf2_sha256():
    """The derived key is plain PBKDF2-HMAC-SHA256 with 100k iterations."""
    salt = b"\x00" * 16
    expected = hashlib.pbkdf2_hmac("sha256", b"correct-horse", salt, 100_000, 32)
    assert derive_key("correct-horse", salt) == expected


def test_derive_key_string_and_bytes_agree():
    salt = generate_salt()
    assert derive_key("password123", salt) == derive_key(b"password123", salt)


def test_derive_key_depends_on_salt_and_password():
    salt = generate_salt()
    key = derive_key("a", salt)
    assert derive_key("b", salt) != key
    assert derive_key("a", generate_salt()) != key


def test_derive_key_custom_iterations():
    salt = generate_salt()
    assert derive_key("pw", salt, iterations=PBKDF2_ITERATIONS + 1) != derive_key("pw", salt)


def test_derive_key_rejects_weak_iterations():
    with pytest.raises(ValueError, match="iterations"):
        derive_key("pw", generate_salt(), iterations=1000)


@pytest.mark.parametrize("length", [0, 8, 15, 17, 32])
def test_derive_key_rejects_bad_salt_length(length):
    with pytest.raises(ValueError, match="salt"):
        derive_key("pw", b"\x00" * length)


def test_derive_key_unavailable_backend():
    """A missing PBKDF2 capability surfaces as KeyDerivationUnavailable."""
    with patch("lockbox.security.kdf.PBKDF2HMAC", side_effect=UnsupportedAlgorithm("no sha256")):
        with pytest.raises(KeyDerivationUnavailable) as excinfo:
            derive_key("pw", generate_salt())
    assert isinstance(excinfo.value.__cause__, UnsupportedAlgorithm)


def test_derive_key_rejects_excessive_iterations():
    """An absurd iteration count is refused before any hashing starts."""
    with patch("lockbox.security.kdf.PBKDF2HMAC") as mock_kdf:
        with pytest.raises(ValueError, match="iterations"):
            derive_key("pw", generate_salt(), iterations=MAX_ITERATIONS + 1)
    mock_kdf.assert_not_called()


def test_derive_key_accepts_max_iterations():
    with patch("lockbox.security.kdf.PBKDF2HMAC") as mock_kdf:
        mock_kdf.return_value.derive.return_value = b"k" * KEY_LENGTH
        assert derive_key("pw", generate_salt(), iterations=MAX_ITERATIONS) == b"k" * KEY_LENGTH
    assert mock_kdf.call_args.kwargs["iterations"] == MAX_ITERATIONS
