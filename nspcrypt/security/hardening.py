"""
Security Hardening Module
=========================

Cryptographic self-tests and startup validation.

This module implements:
- Known-answer tests for PBKDF2-HMAC-SHA256 and AES-256-CBC
- AES-GCM round trip and tamper rejection with a 16-byte nonce
- Key file codec identity check
- CSPRNG sanity check
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from enum import Enum, auto
from typing import Final, List, Optional

from nspcrypt.core.crypto.aes_engine import decrypt, encrypt
from nspcrypt.core.crypto.errors import IntegrityError
from nspcrypt.core.crypto.kdf import combined_algorithm, derive_key_pbkdf2
from nspcrypt.core.crypto.keyfile import KeyFileFormat, decode, encode
from nspcrypt.core.crypto.keys import KeyMaterial
from nspcrypt.core.crypto.options import Algorithm, HashSize, KeySize

# PBKDF2-HMAC-SHA256("password", "salt", 1 iteration, 32 bytes)
_PBKDF2_EXPECTED: Final[bytes] = bytes.fromhex(
    "120fb6cffcf8b32c43e7225256c4f837a86548c92ccc35480805987cb70be17b"
)

# NIST SP 800-38A F.2.5 CBC-AES256, first block
_CBC_KEY: Final[bytes] = bytes.fromhex(
    "603deb1015ca71be2b73aef0857d7781"
    "1f352c073b6108d72d9810a30914dff4"
)
_CBC_IV: Final[bytes] = bytes.fromhex("000102030405060708090a0b0c0d0e0f")
_CBC_PLAINTEXT: Final[bytes] = bytes.fromhex("6bc1bee22e409f96e93d7e117393172a")
_CBC_CIPHERTEXT: Final[bytes] = bytes.fromhex("f58c4c04d6e5f1ba779eabfb5f7bfbd6")


class SecurityCheckResult(Enum):
    """Result of a security check."""
    PASS = auto()
    WARN = auto()
    FAIL = auto()


@dataclass
class CheckResult:
    """Individual security check result."""
    name: str
    result: SecurityCheckResult
    message: str
    details: Optional[str] = None

    @property
    def passed(self) -> bool:
        return self.result is SecurityCheckResult.PASS


def _random_material(hash_size: HashSize = HashSize.SHA256) -> KeyMaterial:
    return KeyMaterial(
        secrets.token_bytes(KeySize.AES_256.byte_length),
        secrets.token_bytes(16),
        KeySize.AES_256,
        combined_algorithm(hash_size),
    )


class CryptoSelfTest:
    """
    Cryptographic algorithm self-tests.

    Run on startup to verify the primitives behave as expected.
    """

    @staticmethod
    def test_pbkdf2() -> CheckResult:
        """Test PBKDF2-HMAC-SHA256 with known answer."""
        try:
            derived = derive_key_pbkdf2("password", b"salt", 1, KeySize.AES_256, HashSize.SHA256)
            if derived == _PBKDF2_EXPECTED:
                return CheckResult("PBKDF2-HMAC-SHA256", SecurityCheckResult.PASS, "Self-test passed")
            return CheckResult("PBKDF2-HMAC-SHA256", SecurityCheckResult.FAIL, "Known answer mismatch")
        except Exception as e:
            return CheckResult("PBKDF2-HMAC-SHA256", SecurityCheckResult.FAIL, f"Self-test failed: {e}")

    @staticmethod
    def test_aes_cbc() -> CheckResult:
        """Test AES-256-CBC against the NIST vector."""
        try:
            material = KeyMaterial(_CBC_KEY, _CBC_IV, KeySize.AES_256, combined_algorithm(HashSize.SHA256))
            ciphertext = encrypt(material, Algorithm.CBC, _CBC_PLAINTEXT)

            if ciphertext[:16] != _CBC_CIPHERTEXT:
                return CheckResult("AES-256-CBC", SecurityCheckResult.FAIL, "Known answer mismatch")
            if decrypt(material, Algorithm.CBC, ciphertext) != _CBC_PLAINTEXT:
                return CheckResult("AES-256-CBC", SecurityCheckResult.FAIL, "Decryption mismatch")
            return CheckResult("AES-256-CBC", SecurityCheckResult.PASS, "Self-test passed")
        except Exception as e:
            return CheckResult("AES-256-CBC", SecurityCheckResult.FAIL, f"Self-test failed: {e}")

    @staticmethod
    def test_aes_gcm() -> CheckResult:
        """Test AES-256-GCM round trip and tag rejection."""
        try:
            material = _random_material()
            plaintext = b"Test plaintext for AES-GCM self-test"

            ciphertext = encrypt(material, Algorithm.GCM, plaintext)
            if decrypt(material, Algorithm.GCM, ciphertext) != plaintext:
                return CheckResult("AES-256-GCM", SecurityCheckResult.FAIL, "Decryption mismatch")

            tampered = bytearray(ciphertext)
            tampered[0] ^= 0x01
            try:
                decrypt(material, Algorithm.GCM, bytes(tampered))
            except IntegrityError:
                return CheckResult("AES-256-GCM", SecurityCheckResult.PASS, "Self-test passed")
            return CheckResult("AES-256-GCM", SecurityCheckResult.FAIL, "Tampered ciphertext accepted")
        except Exception as e:
            return CheckResult("AES-256-GCM", SecurityCheckResult.FAIL, f"Self-test failed: {e}")

    @staticmethod
    def test_keyfile() -> CheckResult:
        """Test key file encode/decode identity for both layouts."""
        try:
            material = _random_material(HashSize.SHA512)
            for fmt in KeyFileFormat:
                if decode(encode(material, fmt)) != material:
                    return CheckResult("Key file codec", SecurityCheckResult.FAIL, f"{fmt.value} round trip mismatch")
            return CheckResult("Key file codec", SecurityCheckResult.PASS, "Self-test passed")
        except Exception as e:
            return CheckResult("Key file codec", SecurityCheckResult.FAIL, f"Self-test failed: {e}")

    @staticmethod
    def test_random_generator() -> CheckResult:
        """Test cryptographic random number generator."""
        try:
            random1 = secrets.token_bytes(32)
            random2 = secrets.token_bytes(32)

            if random1 == random2:
                return CheckResult("CSPRNG", SecurityCheckResult.FAIL, "Random bytes not unique")

            unique_bytes = len(set(random1))
            if unique_bytes < 20:
                return CheckResult("CSPRNG", SecurityCheckResult.WARN, f"Low entropy: {unique_bytes}/32 unique")

            return CheckResult("CSPRNG", SecurityCheckResult.PASS, "Self-test passed")
        except Exception as e:
            return CheckResult("CSPRNG", SecurityCheckResult.FAIL, f"Self-test failed: {e}")

    @classmethod
    def run_all_tests(cls) -> List[CheckResult]:
        """Run all cryptographic self-tests."""
        return [
            cls.test_pbkdf2(),
            cls.test_aes_cbc(),
            cls.test_aes_gcm(),
            cls.test_keyfile(),
            cls.test_random_generator(),
        ]


class StartupSecurityValidator:
    """
    Runs the self-tests and decides whether it is safe to proceed.
    """

    def __init__(self, strict_mode: bool = False):
        self._strict = strict_mode
        self._results: List[CheckResult] = []
        self._log = logging.getLogger("nspcrypt.security")

    def run_all_checks(self) -> bool:
        """
        Run all security checks.

        Returns:
            True if safe to proceed; False on any failure, or on any
            warning in strict mode
        """
        self._results = CryptoSelfTest.run_all_tests()

        failures = [r for r in self._results if r.result == SecurityCheckResult.FAIL]
        warnings = [r for r in self._results if r.result == SecurityCheckResult.WARN]

        for result in self._results:
            level = {
                SecurityCheckResult.PASS: logging.INFO,
                SecurityCheckResult.WARN: logging.WARNING,
                SecurityCheckResult.FAIL: logging.ERROR,
            }[result.result]
            self._log.log(level, "[%s] %s: %s", result.result.name, result.name, result.message)

        if failures:
            self._log.critical("Security validation failed: %d critical failures", len(failures))
            return False

        if warnings and self._strict:
            self._log.error("Security validation failed in strict mode: %d warnings", len(warnings))
            return False

        self._log.info("Security validation passed")
        return True

    def get_results(self) -> List[CheckResult]:
        """Get all check results."""
        return self._results.copy()

    def get_summary(self) -> str:
        """Get a summary of check results."""
        passed = sum(1 for r in self._results if r.result == SecurityCheckResult.PASS)
        warned = sum(1 for r in self._results if r.result == SecurityCheckResult.WARN)
        failed = sum(1 for r in self._results if r.result == SecurityCheckResult.FAIL)

        return f"Security Check Summary: {passed} passed, {warned} warnings, {failed} failures"
