"""
Tests for PBKDF2 key derivation and key material resolution.
"""

import hashlib

import pytest

from nspcrypt.core.crypto.errors import ConfigurationError, KeyDerivationError
from nspcrypt.core.crypto.kdf import (
    combined_algorithm,
    derive_key,
    derive_key_pbkdf2,
    generate_iv,
    parse_combined_algorithm,
)
from nspcrypt.core.crypto.keys import KeyMaterial, key_material_for, resolve_key_material
from nspcrypt.core.crypto.options import AesOptions, HashSize, KeySize

from conftest import FAST_ITERATIONS


# ==============================
#  TEST: ALGORITHM IDENTIFIERS
# ==============================
@pytest.mark.parametrize(
    "hash_size, name",
    [
        (HashSize.SHA256, "PBKDF2WithHmacSHA256"),
        (HashSize.SHA384, "PBKDF2WithHmacSHA384"),
        (HashSize.SHA512, "PBKDF2WithHmacSHA512"),
    ],
)
def test_combined_algorithm_names(hash_size, name):
    assert combined_algorithm(hash_size) == name
    assert parse_combined_algorithm(name) is hash_size


@pytest.mark.parametrize("name", ["PBKDF2WithHmacSHA1", "PBKDF2WithHmacMD5", "", "pbkdf2withhmacsha256"])
def test_parse_rejects_unknown_algorithms(name):
    with pytest.raises(ValueError):
        parse_combined_algorithm(name)


# ==============================
#  TEST: DERIVATION
# ==============================
def test_pbkdf2_known_answer():
    derived = derive_key_pbkdf2("password", b"salt", 1, KeySize.AES_256, HashSize.SHA256)

    assert derived.hex() == "120fb6cffcf8b32c43e7225256c4f837a86548c92ccc35480805987cb70be17b"


@pytest.mark.parametrize("hash_size, name", [(HashSize.SHA256, "sha256"), (HashSize.SHA384, "sha384"), (HashSize.SHA512, "sha512")])
@pytest.mark.parametrize("key_size", list(KeySize))
def test_pbkdf2_matches_hashlib(hash_size, name, key_size):
    expected = hashlib.pbkdf2_hmac(name, b"pass", b"salt", FAST_ITERATIONS, dklen=key_size.byte_length)

    assert derive_key_pbkdf2("pass", b"salt", FAST_ITERATIONS, key_size, hash_size) == expected


def test_derive_key_uses_utf8_salt():
    options = AesOptions(password="clé", salt="sél", iteration_count=FAST_ITERATIONS)

    key, iv = derive_key(options, generate_iv_bytes=False)

    expected = hashlib.pbkdf2_hmac("sha256", "clé".encode(), "sél".encode(), FAST_ITERATIONS, dklen=32)
    assert key == expected
    assert iv is None


def test_empty_salt_falls_back_to_password():
    with_empty = AesOptions(password="p1", salt="", iteration_count=FAST_ITERATIONS)
    with_password = AesOptions(password="p1", salt="p1", iteration_count=FAST_ITERATIONS)

    assert derive_key(with_empty, False)[0] == derive_key(with_password, False)[0]


def test_derive_key_generates_iv_from_entropy(counting_entropy):
    options = AesOptions(password="p", salt="s", iteration_count=FAST_ITERATIONS)

    _, first = derive_key(options, True, entropy=counting_entropy)
    _, second = derive_key(options, True, entropy=counting_entropy)

    assert first == b"\x00" * 16
    assert second == b"\x01" * 16


def test_generate_iv_rejects_short_entropy():
    with pytest.raises(KeyDerivationError):
        generate_iv(lambda n: b"\x00" * (n - 1))


def test_kdf_failure_is_wrapped():
    with pytest.raises(KeyDerivationError):
        derive_key_pbkdf2("p", b"s", 1, KeySize.AES_256, 160)


@pytest.mark.parametrize("password, salt", [("pw", "\udc80"), ("\udc80", "s"), ("\udc80", "")])
def test_unencodable_text_is_wrapped(password, salt):
    options = AesOptions(password=password, salt=salt, iteration_count=10)

    with pytest.raises(KeyDerivationError):
        derive_key(options, False)


# ==============================
#  TEST: RESOLUTION
# ==============================
def test_resolve_fresh_iv(counting_entropy):
    options = AesOptions(password="p", salt="s", key_size=128, iteration_count=FAST_ITERATIONS)

    material = resolve_key_material(options, entropy=counting_entropy)

    assert len(material.secret_key) == 16
    assert material.iv == b"\x00" * 16
    assert material.key_size is KeySize.AES_128
    assert material.kdf_algorithm == "PBKDF2WithHmacSHA256"


def test_resolve_reuses_supplied_iv(raw_iv):
    def no_entropy(n):
        raise AssertionError("entropy must not be used when an IV is supplied")

    options = AesOptions(password="p", salt="s", iv=raw_iv, iteration_count=FAST_ITERATIONS)

    material = resolve_key_material(options, entropy=no_entropy)

    assert material.iv == raw_iv


def test_resolve_supplied_key_skips_kdf(raw_key, raw_iv, monkeypatch):
    import nspcrypt.core.crypto.keys as keys_module

    def fail(*args, **kwargs):
        raise AssertionError("KDF must not run on the supplied-key path")

    monkeypatch.setattr(keys_module, "derive_key", fail)
    options = AesOptions.from_raw_key(raw_key, raw_iv, hash_size=512)

    material = resolve_key_material(options)

    assert material.secret_key == raw_key
    assert material.iv == raw_iv
    assert material.kdf_algorithm == "PBKDF2WithHmacSHA512"


def test_resolve_invalid_options_raises():
    with pytest.raises(ConfigurationError):
        resolve_key_material(AesOptions(password="p"))


def test_same_password_yields_same_key_different_iv():
    options = AesOptions(password="p", salt="s", iteration_count=FAST_ITERATIONS)

    first = resolve_key_material(options)
    second = resolve_key_material(options)

    assert first.secret_key == second.secret_key
    assert first.iv != second.iv


# ==============================
#  TEST: KEY MATERIAL
# ==============================
def test_key_material_rejects_wrong_lengths(raw_key, raw_iv):
    with pytest.raises(ConfigurationError):
        KeyMaterial(raw_key[:20], raw_iv, KeySize.AES_256, "PBKDF2WithHmacSHA256")
    with pytest.raises(ConfigurationError):
        KeyMaterial(raw_key, raw_iv[:12], KeySize.AES_256, "PBKDF2WithHmacSHA256")


def test_key_material_for_infers_key_size(raw_iv):
    assert key_material_for(bytes(24), raw_iv).key_size is KeySize.AES_192
    with pytest.raises(ConfigurationError):
        key_material_for(bytes(20), raw_iv)


def test_key_material_wipe(raw_key, raw_iv):
    material = key_material_for(raw_key, raw_iv)
    assert not material.wiped

    material.wipe()

    assert material.wiped
    assert material.secret_key == bytes(32)


def test_all_zero_key_is_not_wiped(raw_iv):
    material = key_material_for(bytes(32), raw_iv)

    assert not material.wiped


def test_key_material_repr_hides_key(raw_key, raw_iv):
    material = key_material_for(raw_key, raw_iv)

    assert raw_key.hex() not in repr(material)
    assert raw_iv.hex() not in repr(material)
