"""
nspcrypt Cryptographic Core
===========================

Password-based AES for Next Socket Protocol payloads.

Architecture:
    1. AesOptions: immutable configuration (derive vs. supplied key)
    2. PBKDF2-HMAC-SHA2: password + salt to AES key, random IV
    3. AesCipher: AES-CBC (PKCS#7) or AES-GCM (128-bit tag)
    4. Key files: persisted key material, reloadable without password

Security Properties:
    - Primitives come from the cryptography package only
    - GCM tag verified before plaintext is returned
    - Secrets never appear in reprs or log messages

WARNING: This module handles sensitive cryptographic material.
         Incorrect usage can compromise security.
"""

from nspcrypt.core.crypto.errors import (
    NspCryptError,
    ConfigurationError,
    KeyDerivationError,
    DecryptionError,
    IntegrityError,
    PayloadEncodingError,
    KeyFileError,
    KeyFileExistsError,
    KeyFileFormatError,
)
from nspcrypt.core.crypto.options import AesOptions, Algorithm, KeySize, HashSize
from nspcrypt.core.crypto.kdf import combined_algorithm, derive_key
from nspcrypt.core.crypto.keys import KeyMaterial, resolve_key_material
from nspcrypt.core.crypto.keyfile import KeyFileFormat, read_key_file, write_key_file
from nspcrypt.core.crypto.aes_engine import AesCipher, GcmParameters, encrypt, decrypt
from nspcrypt.core.crypto.passwords import DEFAULT_CHARSET, generate_password

__all__ = [
    "NspCryptError",
    "ConfigurationError",
    "KeyDerivationError",
    "DecryptionError",
    "IntegrityError",
    "PayloadEncodingError",
    "KeyFileError",
    "KeyFileExistsError",
    "KeyFileFormatError",
    "AesOptions",
    "Algorithm",
    "KeySize",
    "HashSize",
    "combined_algorithm",
    "derive_key",
    "KeyMaterial",
    "resolve_key_material",
    "KeyFileFormat",
    "read_key_file",
    "write_key_file",
    "AesCipher",
    "GcmParameters",
    "encrypt",
    "decrypt",
    "DEFAULT_CHARSET",
    "generate_password",
]
