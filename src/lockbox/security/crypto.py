"""Streaming AEAD file encryption with a compact binary frame format.

See :mod:`lockbox.security.framing` for the wire layout. One salt and one
derived key per stream; every plaintext chunk is sealed with AES-256-GCM under
its own random 96-bit nonce and emitted as an independently authenticated
frame.

``encrypt_file_stream`` and ``decrypt_file_stream`` are lazy: they return
generators that do no work until the first item is pulled, and the caller may
stop iterating at any point. The caller owns the byte source and is
responsible for closing it.

A byte source is either an object with ``read(size) -> bytes`` (``b""`` at
end of data) or any iterable of ``bytes`` chunks.
"""
from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import BinaryIO, Callable, Iterable, Iterator, Optional, Union

from lockbox.core.exceptions import (
    DecryptionFailed,
    LockboxError,
    SourceReadFailure,
    TruncatedStream,
)
from .framing import (
    MAX_CIPHERTEXT_LENGTH,
    MAX_TOTAL_SIZE,
    NONCE_LENGTH,
    TAG_LENGTH,
    StreamParser,
    pack_frame,
    pack_header,
)
from .kdf import PBKDF2_ITERATIONS, derive_key, generate_salt
from .providers import AEADProvider, RandomSource, default_aead, default_random

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024 * 1024
DEFAULT_READ_SIZE = 1024 * 1024
MAX_CHUNK_SIZE = MAX_CIPHERTEXT_LENGTH - TAG_LENGTH
ENCRYPTED_SUFFIX = ".enc"

ByteSource = Union[BinaryIO, Iterable[bytes]]
ProgressCallback = Callable[[float], None]


class _Progress:
    # percentages are clamped to 100 and never decrease
    def __init__(self, total: int, callback: Optional[ProgressCallback]):
        self.total = total
        self.callback = callback
        self.last = 0.0

    def update(self, processed: int) -> None:
        if self.callback is None or self.total <= 0:
            return
        percent = min(processed * 100 / self.total, 100.0)
        if percent < self.last:
            return
        self.last = percent
        self.callback(percent)

    def finish(self) -> None:
        # a zero-size stream has no frames to report on
        if self.callback is not None and self.total == 0:
            self.callback(100.0)


def _iter_source(source: ByteSource, read_size: int) -> Iterator[bytes]:
    """Yield non-empty reads from ``source``; source errors become SourceReadFailure."""
    if isinstance(source, (bytes, bytearray, memoryview)):
        # a bare buffer is one chunk, not an iterable of ints
        source = [source]
    read = getattr(source, "read", None)
    try:
        if read is not None:
            while True:
                data = read(read_size)
                if not data:
                    return
                yield bytes(data)
        else:
            for data in source:
                if data:
                    yield bytes(data)
    except LockboxError:
        raise
    except Exception as e:
        raise SourceReadFailure(f"Reading from source failed: {e}") from e


def _rechunk(reads: Iterable[bytes], size: int) -> Iterator[bytes]:
    """Regroup arbitrary reads into pieces of exactly ``size`` bytes (last may be short)."""
    buf = bytearray()
    for data in reads:
        buf += data
        while len(buf) >= size:
            yield bytes(buf[:size])
            del buf[:size]
    if buf:
        yield bytes(buf)


def encrypt_file_stream(
    source: ByteSource,
    total_size: int,
    password: str,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    on_progress: Optional[ProgressCallback] = None,
    *,
    iterations: int = PBKDF2_ITERATIONS,
    rng: Optional[RandomSource] = None,
    aead: Optional[AEADProvider] = None,
) -> Iterator[bytes]:
    """
    Encrypt a byte source lazily.

    Yields the 24-byte stream header first, then one frame per plaintext chunk
    of ``chunk_size`` bytes (the last chunk may be shorter). ``on_progress``
    receives the processed percentage after each chunk.

    Raises:
        ValueError: invalid ``chunk_size`` or ``total_size`` (raised immediately).
        SourceReadFailure: the source failed or did not yield exactly
            ``total_size`` bytes (raised during iteration).
    """
    if not isinstance(chunk_size, int) or not 0 < chunk_size <= MAX_CHUNK_SIZE:
        raise ValueError(f"chunk_size must be between 1 and {MAX_CHUNK_SIZE}")
    if not isinstance(total_size, int) or not 0 <= total_size <= MAX_TOTAL_SIZE:
        raise ValueError("total_size must be a non-negative 64-bit integer")

    return _encrypt_frames(
        source,
        total_size,
        password,
        chunk_size,
        _Progress(total_size, on_progress),
        iterations,
        rng or default_random(),
        aead or default_aead(),
    )


def _encrypt_frames(
    source: ByteSource,
    total_size: int,
    password: str,
    chunk_size: int,
    progress: _Progress,
    iterations: int,
    rng: RandomSource,
    aead: AEADProvider,
) -> Iterator[bytes]:
    salt = generate_salt(rng)
    key = derive_key(password, salt, iterations)
    yield pack_header(salt, total_size)

    previous_nonce = None
    processed = 0
    frames = 0
    for piece in _rechunk(_iter_source(source, chunk_size), chunk_size):
        if processed + len(piece) > total_size:
            raise SourceReadFailure(
                f"Source produced more than the declared {total_size} bytes"
            )
        nonce = rng.token_bytes(NONCE_LENGTH)
        # only consecutive repeats are checked; a stuck RandomSource shows up here
        if nonce == previous_nonce:
            raise LockboxError("Random source repeated a nonce within one stream")
        previous_nonce = nonce

        yield pack_frame(nonce, aead.encrypt(key, nonce, piece))
        processed += len(piece)
        frames += 1
        progress.update(processed)

    if processed != total_size:
        raise SourceReadFailure(
            f"Source ended after {processed} of the declared {total_size} bytes"
        )
    logger.debug("Encrypted %d bytes in %d frames", processed, frames)
    progress.finish()


def decrypt_file_stream(
    source: ByteSource,
    password: str,
    on_progress: Optional[ProgressCallback] = None,
    *,
    iterations: int = PBKDF2_ITERATIONS,
    read_size: int = DEFAULT_READ_SIZE,
    max_frame_size: Optional[int] = None,
    verify_size: bool = True,
    aead: Optional[AEADProvider] = None,
) -> Iterator[bytes]:
    """
    Decrypt a stream produced by :func:`encrypt_file_stream` lazily.

    Yields plaintext chunks in order. Frames are parsed incrementally from
    reads of ``read_size`` bytes. By default any frame length the format can
    encode is accepted, whatever chunk size the writer used. Passing
    ``max_frame_size`` caps how much ciphertext a single frame may buffer.

    Raises (during iteration):
        TruncatedStream: end of data inside the header or a frame, or fewer
            plaintext bytes than the header declares.
        DecryptionFailed: wrong password or tampered data. Nothing more is
            yielded after the failing frame.
        FrameTooLarge: a frame is longer than ``max_frame_size``.
        SourceReadFailure: the source itself failed.
    """
    if not isinstance(read_size, int) or read_size <= 0:
        raise ValueError("read_size must be a positive integer")

    return _decrypt_frames(
        source,
        password,
        on_progress,
        iterations,
        read_size,
        max_frame_size,
        verify_size,
        aead or default_aead(),
    )


def _decrypt_frames(
    source: ByteSource,
    password: str,
    on_progress: Optional[ProgressCallback],
    iterations: int,
    read_size: int,
    max_frame_size: Optional[int],
    verify_size: bool,
    aead: AEADProvider,
) -> Iterator[bytes]:
    parser = StreamParser(max_ciphertext_length=max_frame_size)
    key = None
    progress = None
    total_size = 0
    processed = 0
    frames = 0

    for data in _iter_source(source, read_size):
        parser.feed(data)
        if key is None:
            header = parser.header
            if header is None:
                continue
            total_size = header.total_size
            key = derive_key(password, header.salt, iterations)
            progress = _Progress(total_size, on_progress)

        for frame in parser.frames():
            plaintext = aead.decrypt(key, frame.nonce, frame.ciphertext)
            processed += len(plaintext)
            frames += 1
            if verify_size and processed > total_size:
                raise DecryptionFailed()
            yield plaintext
            progress.update(processed)

    # raises on a missing header or a partial trailing frame
    parser.finish()
    if verify_size and processed < total_size:
        raise TruncatedStream(
            f"Stream ended after {processed} of {total_size} plaintext bytes"
        )
    logger.debug("Decrypted %d bytes from %d frames", processed, frames)
    progress.finish()


def _write_atomic(out_path: Union[str, Path], chunks: Iterable[bytes]) -> int:
    """Write chunks to a temp file beside ``out_path`` and move it into place on success."""
    out = Path(out_path).expanduser()
    out.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{out.name}.", suffix=".part", dir=out.parent)
    tmp_path = Path(tmp_name)
    written = 0
    try:
        with os.fdopen(fd, "wb") as outf:
            for chunk in chunks:
                outf.write(chunk)
                written += len(chunk)
        os.replace(tmp_path, out)
    finally:
        tmp_path.unlink(missing_ok=True)
    return written


def encrypt_file(
    in_path: Union[str, Path],
    out_path: Union[str, Path],
    password: str,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    on_progress: Optional[ProgressCallback] = None,
    **kwargs,
) -> int:
    """Encrypt ``in_path`` into ``out_path``. Returns the plaintext size."""
    src = Path(in_path).expanduser()
    total_size = src.stat().st_size
    with open(src, "rb") as inf:
        _write_atomic(
            out_path,
            encrypt_file_stream(inf, total_size, password, chunk_size, on_progress, **kwargs),
        )
    logger.info("Encrypted %s (%d bytes)", src.name, total_size)
    return total_size


def decrypt_file(
    in_path: Union[str, Path],
    out_path: Union[str, Path],
    password: str,
    on_progress: Optional[ProgressCallback] = None,
    **kwargs,
) -> int:
    """
    Decrypt ``in_path`` into ``out_path``. Returns the plaintext size.

    ``out_path`` is only created once every frame has authenticated, so a
    failed decrypt never leaves partial plaintext behind.
    """
    src = Path(in_path).expanduser()
    with open(src, "rb") as inf:
        written = _write_atomic(out_path, decrypt_file_stream(inf, password, on_progress, **kwargs))
    logger.info("Decrypted %s (%d bytes)", src.name, written)
    return written
