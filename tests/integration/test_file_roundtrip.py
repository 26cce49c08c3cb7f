"""Integration tests: on-disk file encryption and wire-format compatibility."""

import hashlib
import os
import struct

import pytest
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from lockbox.core.exceptions import DecryptionFailed, TruncatedStream
from lockbox.security import decrypt_file, decrypt_file_stream, encrypt_file
from lockbox.security.crypto import DEFAULT_CHUNK_SIZE

PASSWORD = "correct horse battery staple"


def _pbkdf2(password: str, salt: bytes) -> bytes:
    return hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, 100_000, 32)


def test_encrypt_decrypt_file_roundtrip(tmp_path):
    data = os.urandom(300_000)
    in_file = tmp_path / "input.bin"
    enc_file = tmp_path / "input.bin.enc"
    dec_file = tmp_path / "out" / "input.dec"
    in_file.write_bytes(data)

    seen = []
    assert encrypt_file(in_file, enc_file, PASSWORD, chunk_size=64 * 1024, on_progress=seen.append) == len(data)
    assert seen[-1] == 100.0
    assert decrypt_file(enc_file, dec_file, PASSWORD) == len(data)
    assert dec_file.read_bytes() == data


def test_encrypted_file_size_matches_format(tmp_path):
    data = os.urandom(10_000)
    in_file = tmp_path / "plain.bin"
    enc_file = tmp_path / "plain.bin.enc"
    in_file.write_bytes(data)

    encrypt_file(in_file, enc_file, PASSWORD, chunk_size=4096)
    frames = 3  # 4096 + 4096 + 1808
    assert enc_file.stat().st_size == 24 + len(data) + frames * (12 + 4 + 16)


def test_stream_decrypts_with_plain_aesgcm(tmp_path):
    """Walk the file by hand: header, then nonce/length/ciphertext frames."""
    data = os.urandom(9000)
    in_file = tmp_path / "plain.bin"
    enc_file = tmp_path / "plain.bin.enc"
    in_file.write_bytes(data)
    encrypt_file(in_file, enc_file, PASSWORD, chunk_size=4000)

    blob = enc_file.read_bytes()
    salt = blob[:16]
    high, low = struct.unpack(">II", blob[16:24])
    assert high * 2**32 + low == len(data)

    aead = AESGCM(_pbkdf2(PASSWORD, salt))
    pos, out = 24, b""
    while pos < len(blob):
        nonce = blob[pos:pos + 12]
        (ct_len,) = struct.unpack(">I", blob[pos + 12:pos + 16])
        out += aead.decrypt(nonce, blob[pos + 16:pos + 16 + ct_len], None)
        pos += 16 + ct_len
    assert out == data


def test_hand_built_stream_is_accepted():
    """A stream assembled independently of the encoder decrypts correctly."""
    salt = bytes(range(16))
    pieces = [b"first chunk ", b"second"]
    aead = AESGCM(_pbkdf2("pw", salt))
    total = sum(len(p) for p in pieces)
    stream = salt + struct.pack(">II", total >> 32, total & 0xFFFFFFFF)
    for i, piece in enumerate(pieces):
        nonce = bytes([i]) * 12
        ct = aead.encrypt(nonce, piece, None)
        stream += nonce + struct.pack(">I", len(ct)) + ct

    assert b"".join(decrypt_file_stream([stream], "pw")) == b"".join(pieces)


def test_failed_decrypt_keeps_existing_target(tmp_path):
    in_file = tmp_path / "plain.txt"
    enc_file = tmp_path / "plain.txt.enc"
    target = tmp_path / "target.txt"
    in_file.write_bytes(b"secret" * 1000)
    target.write_bytes(b"keep me")
    encrypt_file(in_file, enc_file, PASSWORD, chunk_size=1000)

    with pytest.raises(DecryptionFailed):
        decrypt_file(enc_file, target, "wrong password")
    assert target.read_bytes() == b"keep me"
    assert sorted(p.name for p in tmp_path.iterdir()) == ["plain.txt", "plain.txt.enc", "target.txt"]


def test_truncated_file_on_disk(tmp_path):
    in_file = tmp_path / "plain.bin"
    enc_file = tmp_path / "plain.bin.enc"
    in_file.write_bytes(os.urandom(5000))
    encrypt_file(in_file, enc_file, PASSWORD, chunk_size=1000)

    with open(enc_file, "r+b") as f:
        f.seek(0, os.SEEK_END)
        f.truncate(f.tell() - 10)

    with pytest.raises(TruncatedStream):
        decrypt_file(enc_file, tmp_path / "out.bin", PASSWORD)
    assert not (tmp_path / "out.bin").exists()


def test_empty_file(tmp_path):
    in_file = tmp_path / "empty"
    enc_file = tmp_path / "empty.enc"
    in_file.write_bytes(b"")
    encrypt_file(in_file, enc_file, PASSWORD)
    assert enc_file.stat().st_size == 24
    assert decrypt_file(enc_file, tmp_path / "empty.out", PASSWORD) == 0
    assert (tmp_path / "empty.out").read_bytes() == b""


def test_chunk_size_above_default_roundtrip(tmp_path):
    """A file written with chunks larger than the default decrypts with default settings."""
    size = DEFAULT_CHUNK_SIZE + 1
    in_file = tmp_path / "big.bin"
    enc_file = tmp_path / "big.bin.enc"
    dec_file = tmp_path / "big.out"
    with open(in_file, "wb") as f:
        f.truncate(size)

    encrypt_file(in_file, enc_file, PASSWORD, chunk_size=size)
    assert enc_file.stat().st_size == 24 + 12 + 4 + size + 16
    assert decrypt_file(enc_file, dec_file, PASSWORD) == size
    assert dec_file.stat().st_size == size
    with open(dec_file, "rb") as f:
        assert f.read(4096) == b"\x00" * 4096
