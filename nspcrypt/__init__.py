"""
nspcrypt - Password-based AES for the Next Socket Protocol
==========================================================

Derives AES keys from passwords (PBKDF2-HMAC-SHA2), encrypts payloads
with AES-CBC or AES-GCM, and stores key material in reloadable key files.

Security Notice:
- No secrets are logged
- Primitives come from the cryptography package only
- Key files are never overwritten
"""

from nspcrypt.core.config import NspCryptConfig
from nspcrypt.core.logging import get_secure_logger
from nspcrypt.core.crypto import (
    AesCipher,
    AesOptions,
    Algorithm,
    KeySize,
    HashSize,
    KeyMaterial,
    KeyFileFormat,
    NspCryptError,
    generate_password,
    read_key_file,
)

__version__ = "0.1.0"

__all__ = [
    "NspCryptConfig",
    "get_secure_logger",
    "AesCipher",
    "AesOptions",
    "Algorithm",
    "KeySize",
    "HashSize",
    "KeyMaterial",
    "KeyFileFormat",
    "NspCryptError",
    "generate_password",
    "read_key_file",
    "__version__",
]
