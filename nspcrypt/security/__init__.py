"""
Security module - Startup self-tests.

Security Considerations:
- Use only approved primitives (AES-CBC/GCM, PBKDF2-HMAC-SHA2)
- No custom cryptography implementations
"""

from nspcrypt.security.hardening import (
    CheckResult,
    CryptoSelfTest,
    SecurityCheckResult,
    StartupSecurityValidator,
)

__all__ = [
    "CheckResult",
    "CryptoSelfTest",
    "SecurityCheckResult",
    "StartupSecurityValidator",
]
