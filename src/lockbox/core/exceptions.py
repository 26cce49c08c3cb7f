"""
Exceptions for the lockbox core.
Every failure an encrypt/decrypt operation can surface derives from LockboxError,
so callers have one general error catcher.
"""


class LockboxError(Exception):
    # general container for errors
    pass


class KeyDerivationUnavailable(LockboxError):
    # raised when the platform cannot provide PBKDF2 / SHA-256 (fatal, never retried)
    pass


class DecryptionFailed(LockboxError):
    """Wrong password or tampered/corrupted ciphertext.

    The two causes are cryptographically indistinguishable, so the message is
    always the same generic text.
    """

    MESSAGE = "Decryption failed. Invalid password or corrupted data."

    def __init__(self, message: str = MESSAGE):
        super().__init__(message)


class TruncatedStream(LockboxError):
    # raised when the header or a frame is cut short by end of data
    pass


class SourceReadFailure(LockboxError):
    # raised when the caller's byte source fails mid-operation
    pass


class FrameTooLarge(LockboxError):
    # raised when a frame exceeds a caller-imposed size limit on decrypt
    pass
