"""
Key Derivation Functions
========================

PBKDF2-HMAC-SHA2 key derivation for password-based AES.

Implements:
    - Combined algorithm identifiers ("PBKDF2WithHmacSHA256", ...)
      as stored in key files
    - Password + salt to raw AES key bytes
    - IV generation from an injectable entropy source
"""

from __future__ import annotations

import logging
import re
import secrets
from typing import Callable, Final, Optional, Tuple

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from nspcrypt.core.crypto.errors import KeyDerivationError
from nspcrypt.core.crypto.options import IV_SIZE, AesOptions, HashSize, KeySize

ALGORITHM_PREFIX: Final[str] = "PBKDF2WithHmacSHA"

_ALGORITHM_PATTERN: Final[re.Pattern[str]] = re.compile(r"^PBKDF2WithHmacSHA(\d+)$")

_HASHES: Final[dict[HashSize, type[hashes.HashAlgorithm]]] = {
    HashSize.SHA256: hashes.SHA256,
    HashSize.SHA384: hashes.SHA384,
    HashSize.SHA512: hashes.SHA512,
}

EntropySource = Callable[[int], bytes]

_log = logging.getLogger("nspcrypt.kdf")


def combined_algorithm(hash_size: HashSize) -> str:
    """Return the KDF identifier, e.g. "PBKDF2WithHmacSHA256"."""
    return f"{ALGORITHM_PREFIX}{int(hash_size)}"


def parse_combined_algorithm(name: str) -> HashSize:
    """
    Map a KDF identifier back onto its hash width.

    Raises:
        ValueError: If the identifier is not a supported PBKDF2 variant
    """
    match = _ALGORITHM_PATTERN.match(name)
    if not match:
        raise ValueError(f"Unrecognised KDF algorithm: {name!r}")
    return HashSize(int(match.group(1)))


def generate_iv(entropy: EntropySource = secrets.token_bytes) -> bytes:
    """Draw a fresh 16-byte IV from the entropy source."""
    iv = entropy(IV_SIZE)
    if len(iv) != IV_SIZE:
        raise KeyDerivationError(f"Entropy source returned {len(iv)} bytes, expected {IV_SIZE}")
    return bytes(iv)


def derive_key_pbkdf2(
    password: str,
    salt: bytes,
    iterations: int,
    key_size: KeySize,
    hash_size: HashSize,
) -> bytes:
    """
    Derive a key from password using PBKDF2-HMAC-SHA2.

    Args:
        password: User password
        salt: Salt bytes
        iterations: Work factor
        key_size: Output key length in bits
        hash_size: SHA-2 width used as the PRF

    Returns:
        Derived key bytes (key_size / 8 long)

    Raises:
        KeyDerivationError: If the primitive rejects the parameters
    """
    try:
        kdf = PBKDF2HMAC(
            algorithm=_HASHES[HashSize(hash_size)](),
            length=KeySize(key_size).byte_length,
            salt=salt,
            iterations=iterations,
        )
        return kdf.derive(password.encode("utf-8"))
    except (KeyError, ValueError, TypeError) as e:
        raise KeyDerivationError(f"PBKDF2 derivation failed: {e}") from e


def derive_key(
    options: AesOptions,
    generate_iv_bytes: bool,
    entropy: EntropySource = secrets.token_bytes,
) -> Tuple[bytes, Optional[bytes]]:
    """
    Derive the AES key described by the options.

    An empty salt means the password is used as the salt.

    Args:
        options: Options on the derive path
        generate_iv_bytes: Whether to draw a fresh IV as well
        entropy: Source of random bytes for the IV

    Returns:
        Tuple of (key, iv); iv is None when generate_iv_bytes is False

    Raises:
        KeyDerivationError: If derivation fails
    """
    salt_text = options.salt if options.salt else options.password
    try:
        salt = salt_text.encode("utf-8")
    except UnicodeEncodeError as e:
        raise KeyDerivationError(f"Salt is not encodable as UTF-8: {e.reason}") from e

    key = derive_key_pbkdf2(
        password=options.password,
        salt=salt,
        iterations=options.iteration_count,
        key_size=options.key_size,
        hash_size=options.hash_size,
    )

    iv = generate_iv(entropy) if generate_iv_bytes else None

    _log.debug(
        "Derived AES-%d key with %s (%d iterations, fresh_iv=%s)",
        int(options.key_size),
        combined_algorithm(options.hash_size),
        options.iteration_count,
        generate_iv_bytes,
    )
    return key, iv
