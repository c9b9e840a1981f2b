"""
Cryptographic Error Types
=========================

Typed failures raised by the nspcrypt crypto core.

Every error derives from NspCryptError so callers can catch the whole
family. Messages never carry key bytes, IVs, passwords or plaintext.
"""

from __future__ import annotations


class NspCryptError(Exception):
    """Base class for all nspcrypt errors."""
    pass


class ConfigurationError(NspCryptError, ValueError):
    """
    Raised when options are inconsistent or an algorithm is unsupported.

    Fatal to the operation that triggered it; the engine keeps its
    previous state.
    """
    pass


class KeyDerivationError(NspCryptError):
    """Raised when the KDF or cipher primitive rejects its parameters."""
    pass


class DecryptionError(NspCryptError):
    """
    Raised when decryption fails.

    Generic on purpose: the message does not reveal which check failed.
    """
    pass


class IntegrityError(DecryptionError):
    """
    Raised when GCM tag verification fails.

    Indicates tampering, corruption, or the wrong key/nonce.
    """
    pass


class PayloadEncodingError(DecryptionError, UnicodeError):
    """Raised when decrypted bytes are not valid UTF-8 text."""
    pass


class KeyFileError(NspCryptError):
    """Base class for key file I/O and format errors."""
    pass


class KeyFileExistsError(KeyFileError, FileExistsError):
    """Raised when writing a key file to a path that already exists."""
    pass


class KeyFileFormatError(KeyFileError, ValueError):
    """Raised when a key file is truncated or malformed."""
    pass
