"""
Shared fixtures for the nspcrypt test suite.
"""

import itertools
import logging

import pytest

from nspcrypt.core.config import NspCryptConfig
from nspcrypt.core.crypto.options import AesOptions

# Low work factor keeps PBKDF2 fast in tests
FAST_ITERATIONS = 1_000


@pytest.fixture(autouse=True)
def reset_config(monkeypatch):
    """Isolate every test from NSPCRYPT_* variables and the config singleton."""
    import os

    for name in list(os.environ):
        if name.startswith("NSPCRYPT_"):
            monkeypatch.delenv(name)
    NspCryptConfig.reset_instance()
    yield
    NspCryptConfig.reset_instance()


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Drop handlers the CLI attaches so each test starts from a clean logger."""
    yield
    logger = logging.getLogger("nspcrypt")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def password():
    return "MiContraseñaSegura123!"


@pytest.fixture
def gcm_options(password):
    return AesOptions.from_password(password, algorithm="GCM", iteration_count=FAST_ITERATIONS)


@pytest.fixture
def cbc_options(password):
    return AesOptions.from_password(password, algorithm="CBC", iteration_count=FAST_ITERATIONS)


@pytest.fixture
def counting_entropy():
    """Deterministic entropy source: 0x00, 0x01, ... per call."""
    counter = itertools.count()

    def entropy(n):
        value = next(counter) % 256
        return bytes([value]) * n

    return entropy


@pytest.fixture
def raw_key():
    return bytes(range(32))


@pytest.fixture
def raw_iv():
    return bytes(range(100, 116))
