"""
Tests for the startup cryptographic self-tests.
"""

import pytest

from nspcrypt.security import CheckResult, CryptoSelfTest, SecurityCheckResult, StartupSecurityValidator


@pytest.mark.parametrize(
    "check",
    [
        CryptoSelfTest.test_pbkdf2,
        CryptoSelfTest.test_aes_cbc,
        CryptoSelfTest.test_aes_gcm,
        CryptoSelfTest.test_keyfile,
    ],
)
def test_individual_self_tests_pass(check):
    result = check()

    assert result.passed, result.message


def test_run_all_tests_covers_every_check():
    names = [r.name for r in CryptoSelfTest.run_all_tests()]

    assert names == ["PBKDF2-HMAC-SHA256", "AES-256-CBC", "AES-256-GCM", "Key file codec", "CSPRNG"]


def test_validator_passes():
    validator = StartupSecurityValidator()

    assert validator.run_all_checks() is True
    assert validator.get_summary().startswith("Security Check Summary: ")
    assert "0 failures" in validator.get_summary()


def test_validator_fails_on_failure(monkeypatch):
    monkeypatch.setattr(
        CryptoSelfTest,
        "run_all_tests",
        classmethod(lambda cls: [CheckResult("AES-256-GCM", SecurityCheckResult.FAIL, "broken")]),
    )
    validator = StartupSecurityValidator()

    assert validator.run_all_checks() is False
    assert validator.get_summary() == "Security Check Summary: 0 passed, 0 warnings, 1 failures"


def test_strict_mode_fails_on_warning(monkeypatch):
    results = [
        CheckResult("PBKDF2-HMAC-SHA256", SecurityCheckResult.PASS, "ok"),
        CheckResult("CSPRNG", SecurityCheckResult.WARN, "Low entropy"),
    ]
    monkeypatch.setattr(CryptoSelfTest, "run_all_tests", classmethod(lambda cls: list(results)))

    assert StartupSecurityValidator().run_all_checks() is True
    assert StartupSecurityValidator(strict_mode=True).run_all_checks() is False


def test_results_are_copied():
    validator = StartupSecurityValidator()
    validator.run_all_checks()

    validator.get_results().clear()

    assert len(validator.get_results()) == 5
