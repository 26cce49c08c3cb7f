"""Runtime settings for the lockbox front end, read from ``LOCKBOX_*`` environment variables."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from lockbox.security.crypto import DEFAULT_CHUNK_SIZE, DEFAULT_READ_SIZE
from lockbox.security.kdf import MAX_ITERATIONS, MIN_ITERATIONS, PBKDF2_ITERATIONS


@dataclass
class Settings:
    """Tunables for the CLI; library callers pass these as keyword arguments instead."""

    pbkdf2_iterations: int = PBKDF2_ITERATIONS
    chunk_size: int = DEFAULT_CHUNK_SIZE
    read_size: int = DEFAULT_READ_SIZE
    log_level: int = logging.WARNING


def _int_from_env(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


def _level_from_env(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if not raw:
        return default
    level = logging.getLevelName(raw.strip().upper())
    if not isinstance(level, int):
        raise ValueError(f"{name} must be a logging level name, got {raw!r}")
    return level


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build :class:`Settings` from the environment.

    - ``LOCKBOX_PBKDF2_ITERATIONS``: PBKDF2 iteration count (100000 to 10000000)
    - ``LOCKBOX_CHUNK_SIZE``: plaintext bytes per frame when encrypting files
    - ``LOCKBOX_READ_SIZE``: bytes per read when decrypting files
    - ``LOCKBOX_LOG_LEVEL``: e.g. ``INFO`` or ``DEBUG``
    """
    env = os.environ if env is None else env
    iterations = _int_from_env(env, "LOCKBOX_PBKDF2_ITERATIONS", PBKDF2_ITERATIONS)
    if not MIN_ITERATIONS <= iterations <= MAX_ITERATIONS:
        raise ValueError(
            f"LOCKBOX_PBKDF2_ITERATIONS must be between {MIN_ITERATIONS} and {MAX_ITERATIONS}"
        )
    return Settings(
        pbkdf2_iterations=iterations,
        chunk_size=_int_from_env(env, "LOCKBOX_CHUNK_SIZE", DEFAULT_CHUNK_SIZE),
        read_size=_int_from_env(env, "LOCKBOX_READ_SIZE", DEFAULT_READ_SIZE),
        log_level=_level_from_env(env, "LOCKBOX_LOG_LEVEL", logging.WARNING),
    )
