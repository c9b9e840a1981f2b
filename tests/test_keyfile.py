"""
Tests for the key file codec (legacy and framed layouts).
"""

import struct

import pytest

from nspcrypt.core.crypto.aes_engine import AesCipher
from nspcrypt.core.crypto.errors import KeyFileError, KeyFileExistsError, KeyFileFormatError
from nspcrypt.core.crypto.keyfile import (
    FRAMED_MAGIC,
    KeyFileFormat,
    bytes_to_int,
    decode,
    encode,
    int_to_bytes,
    read_key_file,
    write_key_file,
)
from nspcrypt.core.crypto.keys import key_material_for
from nspcrypt.core.crypto.options import Algorithm, AesOptions, HashSize, KeySize

from conftest import FAST_ITERATIONS


def legacy_bytes(key, iv, bits=256, algorithm=b"PBKDF2WithHmacSHA256"):
    return struct.pack(">i", bits) + algorithm + b"\x1e" + key + b"\x1d" + iv


# ==============================
#  TEST: INTEGER HELPERS
# ==============================
def test_int_to_bytes_is_big_endian():
    assert int_to_bytes(256) == b"\x00\x00\x01\x00"
    assert int_to_bytes(-1) == b"\xff\xff\xff\xff"
    assert bytes_to_int(b"\x00\x00\x00\x80") == 128


# ==============================
#  TEST: LEGACY LAYOUT
# ==============================
def test_legacy_exact_bytes(raw_key, raw_iv):
    material = key_material_for(raw_key, raw_iv)

    assert encode(material) == (
        b"\x00\x00\x01\x00" + b"PBKDF2WithHmacSHA256" + b"\x1e" + raw_key + b"\x1d" + raw_iv
    )


def test_legacy_records_hash_size(raw_iv):
    material = key_material_for(bytes(16), raw_iv, hash_size=HashSize.SHA384)

    assert encode(material) == legacy_bytes(bytes(16), raw_iv, bits=128, algorithm=b"PBKDF2WithHmacSHA384")


@pytest.mark.parametrize("fmt", list(KeyFileFormat))
@pytest.mark.parametrize("key_size", list(KeySize))
def test_round_trip(fmt, key_size, raw_iv):
    key = bytes(range(key_size.byte_length))
    material = key_material_for(key, raw_iv, hash_size=HashSize.SHA512)

    restored = decode(encode(material, fmt))

    assert restored == material
    assert restored.key_size is key_size
    assert restored.kdf_algorithm == "PBKDF2WithHmacSHA512"


@pytest.mark.parametrize("fmt", list(KeyFileFormat))
def test_delimiter_bytes_in_key_and_iv(fmt):
    key = b"\x1e\x1d" * 16
    iv = b"\x1d" * 8 + b"\x1e" * 8
    material = key_material_for(key, iv)

    restored = decode(encode(material, fmt))

    assert restored.secret_key == key
    assert restored.iv == iv


def test_framed_layout_header(raw_key, raw_iv):
    data = encode(key_material_for(raw_key, raw_iv), KeyFileFormat.FRAMED)

    assert data.startswith(FRAMED_MAGIC + b"\x01" + b"\x00\x00\x01\x00")
    assert data.endswith(b"\x00\x10" + raw_iv)


# ==============================
#  TEST: MALFORMED FILES
# ==============================
@pytest.mark.parametrize(
    "data",
    [
        b"",
        b"\x00\x00",
        legacy_bytes(bytes(32), bytes(16), bits=100),
        struct.pack(">i", 256) + b"PBKDF2WithHmacSHA256" + bytes(32) + b"\x1d" + bytes(16),
        legacy_bytes(bytes(32), bytes(16), algorithm=b"PBKDF2WithHmacSHA1"),
        legacy_bytes(bytes(32), bytes(16), algorithm=b"\xff\xfe"),
        legacy_bytes(bytes(10), b""),
        legacy_bytes(bytes(32), bytes(16)).replace(b"\x1d", b"\x00", 1),
        legacy_bytes(bytes(32), bytes(12)),
        legacy_bytes(bytes(32), bytes(17)),
    ],
    ids=[
        "empty",
        "short-size",
        "bad-key-size",
        "no-record-separator",
        "unknown-kdf",
        "non-utf8-kdf",
        "truncated-key",
        "no-group-separator",
        "short-iv",
        "long-iv",
    ],
)
def test_legacy_malformed(data):
    with pytest.raises(KeyFileFormatError):
        decode(data)


def _framed(version=1, bits=256, algorithm=b"PBKDF2WithHmacSHA256", key=bytes(32), iv=bytes(16), tail=b""):
    return (
        FRAMED_MAGIC
        + struct.pack(">B", version)
        + struct.pack(">I", bits)
        + struct.pack(">H", len(algorithm)) + algorithm
        + struct.pack(">H", len(key)) + key
        + struct.pack(">H", len(iv)) + iv
        + tail
    )


@pytest.mark.parametrize(
    "data",
    [
        FRAMED_MAGIC,
        _framed(version=2),
        _framed(bits=64),
        _framed(algorithm=b"SCRYPT"),
        _framed(key=bytes(16)),
        _framed(iv=bytes(12)),
        _framed(tail=b"\x00"),
        _framed()[:-4],
    ],
    ids=["magic-only", "version", "key-size", "kdf", "key-length", "iv-length", "trailing", "truncated"],
)
def test_framed_malformed(data):
    with pytest.raises(KeyFileFormatError):
        decode(data)


def test_format_error_is_value_error():
    with pytest.raises(ValueError):
        decode(b"\x00")


# ==============================
#  TEST: FILESYSTEM
# ==============================
def test_write_and_read(tmp_path, raw_key, raw_iv):
    material = key_material_for(raw_key, raw_iv)

    path = write_key_file(tmp_path / "session.key", material)

    assert path.read_bytes() == legacy_bytes(raw_key, raw_iv)
    assert read_key_file(path) == material


def test_write_refuses_existing_file(tmp_path, raw_key, raw_iv):
    target = tmp_path / "session.key"
    target.write_bytes(b"original")

    with pytest.raises(KeyFileExistsError) as excinfo:
        write_key_file(target, key_material_for(raw_key, raw_iv))

    assert isinstance(excinfo.value, FileExistsError)
    assert isinstance(excinfo.value, KeyFileError)
    assert target.read_bytes() == b"original"


def test_read_missing_file(tmp_path):
    with pytest.raises(OSError):
        read_key_file(tmp_path / "missing.key")


@pytest.mark.parametrize("fmt", list(KeyFileFormat))
@pytest.mark.parametrize("algorithm", ["CBC", "GCM"])
def test_engine_reloads_from_key_file(tmp_path, password, fmt, algorithm):
    options = AesOptions.from_password(password, algorithm=algorithm, hash_size=384, iteration_count=FAST_ITERATIONS)
    original = AesCipher(options)
    path = tmp_path / f"{algorithm}-{fmt.value}.key"
    original.write_key_file(path, fmt=fmt)

    restored = AesCipher.from_key_file(path, algorithm=algorithm)

    assert restored.private_key == original.private_key
    assert restored.iv == original.iv
    assert restored.kdf_algorithm == "PBKDF2WithHmacSHA384"
    assert restored.options.auto_generate is False
    assert restored.decrypt_bytes(original.encrypt_bytes(b"payload")) == b"payload"


def test_from_key_file_defaults_to_cbc(tmp_path, cbc_options):
    AesCipher(cbc_options).write_key_file(tmp_path / "k")

    assert AesCipher.from_key_file(tmp_path / "k").options.algorithm is Algorithm.CBC
