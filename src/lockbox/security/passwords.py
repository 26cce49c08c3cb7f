"""Random password and passphrase generation.

All randomness comes from a :class:`RandomSource` (the OS CSPRNG by default);
indices are drawn with ``randbelow`` so every pool character is equally likely.
"""
from __future__ import annotations

import string
from typing import List, Optional, Sequence

from .providers import RandomSource, default_random

UPPERCASE = string.ascii_uppercase
LOWERCASE = string.ascii_lowercase
DIGITS = string.digits
SYMBOLS = "!@#$%^&*()_+-=[]{}|;:,.<>?"
AMBIGUOUS = "0O1Il"

WORDLIST = (
    "correct", "horse", "battery", "staple", "dragon", "umbrella", "keyboard",
    "mountain", "ocean", "forest", "thunder", "crystal", "rainbow", "wizard",
    "phoenix", "galaxy", "shadow", "comet",
)

STRENGTH_LABELS = ("Very Weak", "Weak", "Fair", "Good", "Strong")


def build_pool(
    uppercase: bool = True,
    lowercase: bool = True,
    digits: bool = True,
    symbols: bool = True,
    exclude_ambiguous: bool = False,
) -> str:
    pool = ""
    if uppercase:
        pool += UPPERCASE
    if lowercase:
        pool += LOWERCASE
    if digits:
        pool += DIGITS
    if symbols:
        pool += SYMBOLS
    if not pool:
        pool = LOWERCASE
    if exclude_ambiguous:
        pool = "".join(c for c in pool if c not in AMBIGUOUS)
    return pool


def generate_password(
    length: int = 16,
    uppercase: bool = True,
    lowercase: bool = True,
    digits: bool = True,
    symbols: bool = True,
    exclude_ambiguous: bool = False,
    rng: Optional[RandomSource] = None,
) -> str:
    """
    Return a random password of exactly ``length`` characters.

    The pool is the union of the enabled character classes; with every class
    disabled it falls back to lowercase letters.
    """
    if isinstance(length, bool) or not isinstance(length, int) or length <= 0:
        raise ValueError("length must be a positive integer")
    rng = rng or default_random()
    pool = build_pool(uppercase, lowercase, digits, symbols, exclude_ambiguous)
    return "".join(pool[rng.randbelow(len(pool))] for _ in range(length))


def generate_passwords(count: int, length: int = 16, **options) -> List[str]:
    """Generate ``count`` independent passwords with the same options."""
    if count <= 0:
        raise ValueError("count must be a positive integer")
    return [generate_password(length, **options) for _ in range(count)]


def generate_passphrase(
    word_count: int = 4,
    separator: str = "-",
    wordlist: Optional[Sequence[str]] = None,
    rng: Optional[RandomSource] = None,
) -> str:
    if word_count <= 0:
        raise ValueError("word_count must be a positive integer")
    words = list(wordlist) if wordlist is not None else list(WORDLIST)
    if not words:
        raise ValueError("wordlist must not be empty")
    rng = rng or default_random()
    return separator.join(words[rng.randbelow(len(words))] for _ in range(word_count))


def password_strength(password: str) -> int:
    """Rough 0-4 score: length >= 8, length >= 12, mixed case, digit, symbol."""
    score = 0
    if len(password) >= 8:
        score += 1
    if len(password) >= 12:
        score += 1
    if any(c in LOWERCASE for c in password) and any(c in UPPERCASE for c in password):
        score += 1
    if any(c in DIGITS for c in password):
        score += 1
    if any(c not in string.ascii_letters + DIGITS for c in password):
        score += 1
    return min(score, 4)


def strength_label(score: int) -> str:
    if 0 <= score < len(STRENGTH_LABELS):
        return STRENGTH_LABELS[score]
    return "Unknown"
