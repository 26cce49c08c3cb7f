"""Security helpers: KDF, text and streaming encryption, password generation for lockbox.

This package provides:
- PBKDF2-SHA256 key derivation from a password and a per-operation salt
- single-shot AES-256-GCM text encryption with a base64 envelope
- streaming AES-256-GCM encryption/decryption with independently authenticated frames
- CSPRNG-backed password and passphrase generation
"""

from .kdf import generate_salt, derive_key
from .text import TextEnvelope, encrypt_text, decrypt_text
from .crypto import (
    encrypt_file_stream,
    decrypt_file_stream,
    encrypt_file,
    decrypt_file,
)
from .passwords import (
    generate_password,
    generate_passwords,
    generate_passphrase,
    password_strength,
    strength_label,
)
from .providers import AEADProvider, RandomSource

__all__ = [
    "generate_salt",
    "derive_key",
    "TextEnvelope",
    "encrypt_text",
    "decrypt_text",
    "encrypt_file_stream",
    "decrypt_file_stream",
    "encrypt_file",
    "decrypt_file",
    "generate_password",
    "generate_passwords",
    "generate_passphrase",
    "password_strength",
    "strength_label",
    "AEADProvider",
    "RandomSource",
]
