"""
Single-shot text encryption.

``encrypt_text`` produces a :class:`TextEnvelope` of three independently
base64-encoded values (ciphertext, salt, nonce). One salt and one nonce are
generated per call; the key is derived with PBKDF2 and the UTF-8 plaintext is
sealed with AES-256-GCM.

The envelope can be bundled as a single JSON document (``to_json``), which is
also accepted directly by :func:`decrypt_text`.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from lockbox.core.exceptions import DecryptionFailed
from .framing import NONCE_LENGTH
from .kdf import KDF_ALGO, SALT_LENGTH, PBKDF2_ITERATIONS, derive_key, generate_salt
from .providers import AEADProvider, RandomSource, default_aead, default_random

logger = logging.getLogger(__name__)

CIPHER_NAME = "AES-256-GCM"


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _unb64(value: str) -> bytes:
    return base64.b64decode(value, validate=True)


@dataclass(frozen=True)
class TextEnvelope:
    """Encrypted text: three base64 strings plus the KDF iteration count."""

    ciphertext: str
    salt: str
    nonce: str
    iterations: int = PBKDF2_ITERATIONS

    def raw(self) -> tuple[bytes, bytes, bytes]:
        """
        Return ``(ciphertext, salt, nonce)`` as bytes.

        Raises ``ValueError`` on bad base64 or wrong salt/nonce lengths.
        """
        try:
            ciphertext = _unb64(self.ciphertext)
            salt = _unb64(self.salt)
            nonce = _unb64(self.nonce)
        except (binascii.Error, TypeError) as e:
            raise ValueError(f"envelope field is not valid base64: {e}") from e
        if len(salt) != SALT_LENGTH:
            raise ValueError(f"salt must be {SALT_LENGTH} bytes, got {len(salt)}")
        if len(nonce) != NONCE_LENGTH:
            raise ValueError(f"nonce must be {NONCE_LENGTH} bytes, got {len(nonce)}")
        return ciphertext, salt, nonce

    def to_dict(self) -> Dict[str, Any]:
        # same keys as the "encrypted-text.json" export
        return {
            "encrypted": self.ciphertext,
            "salt": self.salt,
            "iv": self.nonce,
            "cipher": CIPHER_NAME,
            "kdf": {"algo": KDF_ALGO, "iterations": self.iterations},
        }

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TextEnvelope":
        try:
            iterations = int((data.get("kdf") or {}).get("iterations", PBKDF2_ITERATIONS))
            return cls(
                ciphertext=str(data["encrypted"]),
                salt=str(data["salt"]),
                nonce=str(data["iv"]),
                iterations=iterations,
            )
        except (KeyError, TypeError, AttributeError) as e:
            raise ValueError(f"malformed envelope: {e}") from e

    @classmethod
    def from_json(cls, text: str) -> "TextEnvelope":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValueError(f"envelope is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise ValueError("envelope JSON must be an object")
        return cls.from_dict(data)


def encrypt_text(
    plaintext: str,
    password: str,
    *,
    iterations: int = PBKDF2_ITERATIONS,
    rng: Optional[RandomSource] = None,
    aead: Optional[AEADProvider] = None,
) -> TextEnvelope:
    """Encrypt ``plaintext`` under ``password`` and return a fresh envelope."""
    rng = rng or default_random()
    aead = aead or default_aead()

    salt = generate_salt(rng)
    nonce = rng.token_bytes(NONCE_LENGTH)
    key = derive_key(password, salt, iterations)
    ciphertext = aead.encrypt(key, nonce, plaintext.encode("utf-8"))
    logger.debug("Encrypted %d-character text", len(plaintext))

    return TextEnvelope(
        ciphertext=_b64(ciphertext),
        salt=_b64(salt),
        nonce=_b64(nonce),
        iterations=iterations,
    )


def decrypt_text(
    envelope: Union[TextEnvelope, str],
    password: str,
    *,
    aead: Optional[AEADProvider] = None,
) -> str:
    """
    Decrypt an envelope (or its JSON form) and return the original text.

    Any failure (wrong password, tampering, malformed envelope, non-UTF-8
    payload) raises :class:`DecryptionFailed` with the same generic message.
    """
    aead = aead or default_aead()
    try:
        if isinstance(envelope, str):
            envelope = TextEnvelope.from_json(envelope)
        ciphertext, salt, nonce = envelope.raw()
        key = derive_key(password, salt, envelope.iterations)
    except ValueError as e:
        logger.debug("Rejected malformed text envelope")
        raise DecryptionFailed() from e

    plaintext = aead.decrypt(key, nonce, ciphertext)
    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecryptionFailed() from e
