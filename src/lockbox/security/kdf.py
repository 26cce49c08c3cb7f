"""Password-based key derivation for lockbox."""
import logging
from typing import Optional

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from lockbox.core.exceptions import KeyDerivationUnavailable
from .providers import RandomSource, default_random

logger = logging.getLogger(__name__)

KDF_ALGO = "pbkdf2-sha256"
SALT_LENGTH = 16
KEY_LENGTH = 32
PBKDF2_ITERATIONS = 100_000
MIN_ITERATIONS = 100_000
# upper bound so an untrusted iteration count cannot stall the caller
MAX_ITERATIONS = 10_000_000


def generate_salt(rng: Optional[RandomSource] = None) -> bytes:
    """Return a fresh 16-byte random salt."""
    return (rng or default_random()).token_bytes(SALT_LENGTH)


def derive_key(
    password: str | bytes,
    salt: bytes,
    iterations: int = PBKDF2_ITERATIONS,
) -> bytes:
    """
    Derive a 256-bit key from a password using PBKDF2-HMAC-SHA256.
    Deterministic for identical inputs. Returns raw key bytes.
    """
    if isinstance(password, str):
        password = password.encode("utf-8")
    if len(salt) != SALT_LENGTH:
        raise ValueError(f"salt must be {SALT_LENGTH} bytes, got {len(salt)}")
    if not MIN_ITERATIONS <= iterations <= MAX_ITERATIONS:
        raise ValueError(
            f"iterations must be between {MIN_ITERATIONS} and {MAX_ITERATIONS}"
        )

    logger.debug("Deriving key with PBKDF2-SHA256 (%d iterations)", iterations)
    try:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=KEY_LENGTH,
            salt=salt,
            iterations=iterations,
        )
        return kdf.derive(password)
    except UnsupportedAlgorithm as e:
        raise KeyDerivationUnavailable(f"PBKDF2-SHA256 is not available: {e}") from e
