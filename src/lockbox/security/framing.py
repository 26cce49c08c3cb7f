"""Binary framing for encrypted streams.

Layout (binary, all big-endian):

Header (once, 24 bytes):
- 16 bytes: salt
- 4 bytes: total plaintext size, high 32 bits
- 4 bytes: total plaintext size, low 32 bits

Body: sequence of frames:
- 12 bytes: nonce
- 4 bytes: ciphertext length (unsigned int)
- N bytes: ciphertext with the 16-byte GCM tag appended

``StreamParser`` reassembles header and frames from reads of any size.
"""
from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Iterator, Optional

from lockbox.core.exceptions import DecryptionFailed, FrameTooLarge, TruncatedStream
from .kdf import SALT_LENGTH

NONCE_LENGTH = 12
TAG_LENGTH = 16
HEADER_LENGTH = SALT_LENGTH + 8
FRAME_PREFIX_LENGTH = NONCE_LENGTH + 4
MAX_TOTAL_SIZE = 2**64 - 1
MAX_CIPHERTEXT_LENGTH = 2**32 - 1

_HEADER = struct.Struct(">16sII")
_FRAME_PREFIX = struct.Struct(">12sI")


@dataclass(frozen=True)
class StreamHeader:
    salt: bytes
    total_size: int


@dataclass(frozen=True)
class Frame:
    nonce: bytes
    ciphertext: bytes


def pack_header(salt: bytes, total_size: int) -> bytes:
    if len(salt) != SALT_LENGTH:
        raise ValueError(f"salt must be {SALT_LENGTH} bytes")
    if not 0 <= total_size <= MAX_TOTAL_SIZE:
        raise ValueError("total_size must fit in an unsigned 64-bit integer")
    return _HEADER.pack(salt, total_size >> 32, total_size & 0xFFFFFFFF)


def unpack_header(data: bytes) -> StreamHeader:
    if len(data) < HEADER_LENGTH:
        raise TruncatedStream("Unexpected end of data while reading stream header")
    salt, high, low = _HEADER.unpack_from(data)
    return StreamHeader(salt=salt, total_size=high * 2**32 + low)


def pack_frame(nonce: bytes, ciphertext: bytes) -> bytes:
    if len(nonce) != NONCE_LENGTH:
        raise ValueError(f"nonce must be {NONCE_LENGTH} bytes")
    if len(ciphertext) > MAX_CIPHERTEXT_LENGTH:
        raise ValueError("ciphertext too large for a single frame")
    return _FRAME_PREFIX.pack(nonce, len(ciphertext)) + ciphertext


class StreamParser:
    """
    Incremental parser over an unaligned byte stream.

    Usage::

        parser = StreamParser()
        for data in reads:
            parser.feed(data)
            if parser.header is None:
                continue
            for frame in parser.frames():
                ...
        parser.finish()

    ``feed`` only buffers; ``frames`` greedily yields every complete frame
    currently buffered and keeps any partial frame for the next feed.

    ``max_ciphertext_length`` is an optional caller limit. A frame whose
    declared length exceeds it raises :class:`FrameTooLarge` instead of being
    buffered. Without it every length the format can encode is accepted.
    """

    def __init__(self, max_ciphertext_length: Optional[int] = None):
        self._buf = bytearray()
        self._pos = 0
        self._header: Optional[StreamHeader] = None
        self.max_ciphertext_length = (
            MAX_CIPHERTEXT_LENGTH if max_ciphertext_length is None else max_ciphertext_length
        )

    @property
    def header(self) -> Optional[StreamHeader]:
        """Parsed stream header, or None until 24 bytes have been fed."""
        if self._header is None and len(self._buf) >= HEADER_LENGTH:
            self._header = unpack_header(bytes(self._buf[:HEADER_LENGTH]))
            del self._buf[:HEADER_LENGTH]
        return self._header

    @property
    def buffered(self) -> int:
        return len(self._buf) - self._pos

    def feed(self, data: bytes) -> None:
        self._buf += data

    def frames(self) -> Iterator[Frame]:
        if self.header is None:
            return
        try:
            while self.buffered >= FRAME_PREFIX_LENGTH:
                nonce, ct_len = _FRAME_PREFIX.unpack_from(self._buf, self._pos)
                if ct_len < TAG_LENGTH:
                    # too short to hold a tag, the length field itself is corrupt
                    raise DecryptionFailed()
                if ct_len > self.max_ciphertext_length:
                    raise FrameTooLarge(
                        f"Frame of {ct_len} bytes exceeds the limit of "
                        f"{self.max_ciphertext_length} bytes"
                    )
                end = self._pos + FRAME_PREFIX_LENGTH + ct_len
                if len(self._buf) < end:
                    break
                ciphertext = bytes(self._buf[self._pos + FRAME_PREFIX_LENGTH:end])
                self._pos = end
                yield Frame(nonce=nonce, ciphertext=ciphertext)
        finally:
            # drop consumed bytes from the front of the buffer
            del self._buf[:self._pos]
            self._pos = 0

    def finish(self) -> None:
        """Signal end of data; raises TruncatedStream if anything is left over."""
        if self.header is None:
            raise TruncatedStream("Unexpected end of data while reading stream header")
        if self.buffered:
            raise TruncatedStream("Unexpected end of data inside a frame")
