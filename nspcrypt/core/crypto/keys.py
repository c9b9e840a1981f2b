"""
Key Material
============

Derived or supplied AES key + IV, and the resolution step that turns
AesOptions into KeyMaterial.

Resolution paths:
    1. auto_generate, IV supplied   -> derive key only, reuse IV
    2. auto_generate, no IV         -> derive key and fresh random IV
    3. supplied key                 -> copy key and IV, no KDF
"""

from __future__ import annotations

import hmac
import logging
import secrets
from typing import Optional

from nspcrypt.core.crypto.kdf import EntropySource, combined_algorithm, derive_key
from nspcrypt.core.crypto.options import IV_SIZE, AesOptions, HashSize, KeySize
from nspcrypt.core.crypto.errors import ConfigurationError
from nspcrypt.core.memory.zeroization import secure_zero

_log = logging.getLogger("nspcrypt.keys")


class KeyMaterial:
    """
    Raw AES key and IV owned by one cipher engine.

    The key is kept in a private bytearray so wipe() can zero it.

    Attributes:
        key_size: AES key length in bits
        kdf_algorithm: Combined KDF identifier recorded in key files
        iv: 16-byte IV (CBC) or nonce (GCM)
    """

    __slots__ = ("_key", "_iv", "_key_size", "_kdf_algorithm", "_wiped")

    def __init__(
        self,
        secret_key: bytes,
        iv: bytes,
        key_size: KeySize,
        kdf_algorithm: str,
    ) -> None:
        key_size = KeySize(key_size)
        if len(secret_key) != key_size.byte_length:
            raise ConfigurationError(
                f"Key must be {key_size.byte_length} bytes for AES-{key_size.value}"
            )
        if len(iv) != IV_SIZE:
            raise ConfigurationError(f"IV must be {IV_SIZE} bytes")
        self._key = bytearray(secret_key)
        self._iv = bytes(iv)
        self._key_size = key_size
        self._kdf_algorithm = kdf_algorithm
        self._wiped = False

    @property
    def secret_key(self) -> bytes:
        return bytes(self._key)

    @property
    def iv(self) -> bytes:
        return self._iv

    @property
    def key_size(self) -> KeySize:
        return self._key_size

    @property
    def kdf_algorithm(self) -> str:
        return self._kdf_algorithm

    @property
    def wiped(self) -> bool:
        return self._wiped

    def wipe(self) -> None:
        """Zero the key buffer. The material is unusable afterwards."""
        secure_zero(self._key)
        self._wiped = True

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, KeyMaterial):
            return NotImplemented
        return (
            hmac.compare_digest(self._key, other._key)
            and hmac.compare_digest(self._iv, other._iv)
            and self._key_size == other._key_size
            and self._kdf_algorithm == other._kdf_algorithm
        )

    __hash__ = None  # mutable via wipe()

    def __repr__(self) -> str:
        """Safe representation without key bytes."""
        return (
            f"KeyMaterial(key_size={self._key_size.value}, "
            f"kdf_algorithm={self._kdf_algorithm!r}, iv_len={len(self._iv)})"
        )


def resolve_key_material(
    options: AesOptions,
    entropy: EntropySource = secrets.token_bytes,
) -> KeyMaterial:
    """
    Produce key material for validated options.

    Args:
        options: Options to resolve
        entropy: Source of random bytes for fresh IVs

    Returns:
        New KeyMaterial instance

    Raises:
        ConfigurationError: If options fail validation
        KeyDerivationError: If the KDF rejects the parameters
    """
    options.validate()
    algorithm_name = combined_algorithm(options.hash_size)

    if options.auto_generate:
        if options.iv is not None:
            key, _ = derive_key(options, generate_iv_bytes=False, entropy=entropy)
            iv: Optional[bytes] = options.iv
            source = "derived, supplied IV"
        else:
            key, iv = derive_key(options, generate_iv_bytes=True, entropy=entropy)
            source = "derived, fresh IV"
    else:
        key, iv = options.key, options.iv
        source = "supplied"

    _log.debug("Resolved AES-%d key material (%s)", int(options.key_size), source)
    return KeyMaterial(key, iv, options.key_size, algorithm_name)


def key_material_for(
    secret_key: bytes,
    iv: bytes,
    hash_size: HashSize = HashSize.SHA256,
) -> KeyMaterial:
    """Wrap raw key and IV bytes; key size follows len(secret_key)."""
    try:
        key_size = KeySize(len(secret_key) * 8)
    except ValueError as e:
        raise ConfigurationError(f"Unsupported AES key length: {len(secret_key)} bytes") from e
    return KeyMaterial(secret_key, iv, key_size, combined_algorithm(hash_size))
