"""Injectable randomness and AEAD capabilities.

The cipher modules never reach for a global crypto provider directly; they take
a ``RandomSource`` and an ``AEADProvider`` (defaulting to the ones below) so
tests can swap in deterministic fakes.
"""
from __future__ import annotations

import os
import secrets
from typing import Protocol, runtime_checkable

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from lockbox.core.exceptions import DecryptionFailed


@runtime_checkable
class RandomSource(Protocol):
    def token_bytes(self, n: int) -> bytes:
        ...

    def randbelow(self, n: int) -> int:
        ...


@runtime_checkable
class AEADProvider(Protocol):
    def encrypt(self, key: bytes, nonce: bytes, data: bytes) -> bytes:
        ...

    def decrypt(self, key: bytes, nonce: bytes, data: bytes) -> bytes:
        ...


class SystemRandomSource:
    """OS CSPRNG."""

    def token_bytes(self, n: int) -> bytes:
        return os.urandom(n)

    def randbelow(self, n: int) -> int:
        return secrets.randbelow(n)


class AESGCMProvider:
    """
    AES-256-GCM via :class:`cryptography.hazmat.primitives.ciphers.aead.AESGCM`.

    The returned ciphertext carries the 16-byte tag appended. No associated
    data is used. A failed tag check surfaces as :class:`DecryptionFailed`.
    """

    def encrypt(self, key: bytes, nonce: bytes, data: bytes) -> bytes:
        return AESGCM(key).encrypt(nonce, data, None)

    def decrypt(self, key: bytes, nonce: bytes, data: bytes) -> bytes:
        try:
            return AESGCM(key).decrypt(nonce, data, None)
        except InvalidTag as e:
            raise DecryptionFailed() from e


_default_random = SystemRandomSource()
_default_aead = AESGCMProvider()


def default_random() -> RandomSource:
    return _default_random


def default_aead() -> AEADProvider:
    return _default_aead
