"""
Key File Codec
==============

Persists KeyMaterial so an engine can be rebuilt without the password.

Legacy layout (default, bit-exact with existing NSP key files):
    KEY_SIZE (4, big-endian int, bits) | KDF_ALGORITHM (UTF-8) |
    0x1E | SECRET_KEY (KEY_SIZE / 8) | 0x1D | IV (remaining bytes)

Framed layout (no reserved delimiters):
    MAGIC "NSPK" (4) | VERSION (1) | KEY_SIZE (4, big-endian) |
    ALG_LEN (2) | KDF_ALGORITHM | KEY_LEN (2) | SECRET_KEY |
    IV_LEN (2) | IV

Legacy files start with 0x00 (key size < 2^24), so they can never be
mistaken for the framed magic.

After the algorithm identifier, legacy parsing is length driven: key or
IV bytes equal to 0x1E / 0x1D do not break decoding.
"""

from __future__ import annotations

import logging
import struct
from enum import Enum
from pathlib import Path
from typing import Final, Union

from nspcrypt.core.crypto.errors import KeyFileExistsError, KeyFileFormatError
from nspcrypt.core.crypto.kdf import parse_combined_algorithm
from nspcrypt.core.crypto.keys import KeyMaterial
from nspcrypt.core.crypto.options import IV_SIZE, KeySize
from nspcrypt.core.memory.zeroization import ZeroizeContext

# Control bytes reserved by the socket protocol
RECORD_SEPARATOR: Final[bytes] = b"\x1e"
GROUP_SEPARATOR: Final[bytes] = b"\x1d"

FRAMED_MAGIC: Final[bytes] = b"NSPK"
FRAMED_VERSION: Final[int] = 1

_INT_FORMAT: Final[str] = ">i"
_INT_SIZE: Final[int] = struct.calcsize(_INT_FORMAT)

_log = logging.getLogger("nspcrypt.keyfile")


class KeyFileFormat(str, Enum):
    """On-disk key file layout."""
    LEGACY = "legacy"
    FRAMED = "framed"


def int_to_bytes(value: int) -> bytes:
    """Encode a 4-byte big-endian signed integer."""
    return struct.pack(_INT_FORMAT, value)


def bytes_to_int(data: bytes) -> int:
    """Decode a 4-byte big-endian signed integer."""
    return struct.unpack(_INT_FORMAT, data)[0]


def encode(material: KeyMaterial, fmt: KeyFileFormat = KeyFileFormat.LEGACY) -> bytes:
    """
    Serialize key material.

    Args:
        material: Key material to store
        fmt: Output layout

    Returns:
        Encoded key file bytes
    """
    algorithm = material.kdf_algorithm.encode("utf-8")
    key = material.secret_key

    if KeyFileFormat(fmt) is KeyFileFormat.FRAMED:
        parts = [
            FRAMED_MAGIC,
            struct.pack(">B", FRAMED_VERSION),
            struct.pack(">I", int(material.key_size)),
            struct.pack(">H", len(algorithm)),
            algorithm,
            struct.pack(">H", len(key)),
            key,
            struct.pack(">H", len(material.iv)),
            material.iv,
        ]
    else:
        if RECORD_SEPARATOR in algorithm:
            raise KeyFileFormatError("KDF algorithm name contains the record separator")
        parts = [
            int_to_bytes(int(material.key_size)),
            algorithm,
            RECORD_SEPARATOR,
            key,
            GROUP_SEPARATOR,
            material.iv,
        ]

    return b"".join(parts)


def decode(data: bytes) -> KeyMaterial:
    """
    Parse key file bytes in either layout.

    Raises:
        KeyFileFormatError: If the data is truncated or malformed
    """
    if data.startswith(FRAMED_MAGIC):
        return _decode_framed(data)
    return _decode_legacy(data)


def _key_size(bits: int) -> KeySize:
    try:
        return KeySize(bits)
    except ValueError as e:
        raise KeyFileFormatError(f"Unsupported key size in key file: {bits}") from e


def _algorithm(raw: bytes) -> str:
    try:
        name = raw.decode("utf-8")
        parse_combined_algorithm(name)
    except (UnicodeDecodeError, ValueError) as e:
        raise KeyFileFormatError("Unrecognised KDF algorithm in key file") from e
    return name


def _decode_legacy(data: bytes) -> KeyMaterial:
    if len(data) < _INT_SIZE:
        raise KeyFileFormatError("Key file too short: missing key size")

    key_size = _key_size(bytes_to_int(data[:_INT_SIZE]))

    separator = data.find(RECORD_SEPARATOR, _INT_SIZE)
    if separator < 0:
        raise KeyFileFormatError("Key file corrupt: record separator not found")
    algorithm = _algorithm(data[_INT_SIZE:separator])

    key_start = separator + 1
    key_end = key_start + key_size.byte_length
    if len(data) < key_end:
        raise KeyFileFormatError(
            f"Key file truncated: {len(data) - key_start} key bytes "
            f"(expected: {key_size.byte_length})"
        )
    if data[key_end:key_end + 1] != GROUP_SEPARATOR:
        raise KeyFileFormatError("Key file corrupt: group separator not found after key")

    iv = data[key_end + 1:]
    if len(iv) != IV_SIZE:
        raise KeyFileFormatError(f"Invalid IV size in key file: {len(iv)} bytes (expected: {IV_SIZE})")

    return KeyMaterial(data[key_start:key_end], iv, key_size, algorithm)


def _decode_framed(data: bytes) -> KeyMaterial:
    offset = len(FRAMED_MAGIC)

    def take(size: int, what: str) -> bytes:
        nonlocal offset
        if len(data) < offset + size:
            raise KeyFileFormatError(f"Key file truncated while reading {what}")
        chunk = data[offset:offset + size]
        offset += size
        return chunk

    (version,) = struct.unpack(">B", take(1, "version"))
    if version != FRAMED_VERSION:
        raise KeyFileFormatError(f"Unsupported key file version: {version}")

    (bits,) = struct.unpack(">I", take(4, "key size"))
    key_size = _key_size(bits)

    (alg_len,) = struct.unpack(">H", take(2, "algorithm length"))
    algorithm = _algorithm(take(alg_len, "algorithm"))

    (key_len,) = struct.unpack(">H", take(2, "key length"))
    if key_len != key_size.byte_length:
        raise KeyFileFormatError(
            f"Key length {key_len} does not match key size {key_size.value}"
        )
    key = take(key_len, "key")

    (iv_len,) = struct.unpack(">H", take(2, "IV length"))
    if iv_len != IV_SIZE:
        raise KeyFileFormatError(f"Invalid IV size in key file: {iv_len} bytes (expected: {IV_SIZE})")
    iv = take(iv_len, "IV")

    if offset != len(data):
        raise KeyFileFormatError("Key file has trailing data")

    return KeyMaterial(key, iv, key_size, algorithm)


def write_key_file(
    path: Union[str, Path],
    material: KeyMaterial,
    fmt: KeyFileFormat = KeyFileFormat.LEGACY,
) -> Path:
    """
    Write key material to a new file.

    The whole buffer is assembled in memory first and written with a
    single call. Existing files are never overwritten.

    Args:
        path: Destination (must not exist)
        material: Key material to store
        fmt: Output layout

    Returns:
        The path written

    Raises:
        KeyFileExistsError: If path already exists
    """
    target = Path(path)
    if target.exists():
        raise KeyFileExistsError(f"Key file already exists: {target}")

    buffer = bytearray(encode(material, fmt))
    with ZeroizeContext(buffer):
        try:
            with open(target, "xb") as handle:
                handle.write(buffer)
        except FileExistsError as e:
            raise KeyFileExistsError(f"Key file already exists: {target}") from e

    _log.debug("Wrote %s key file for AES-%d to %s", KeyFileFormat(fmt).value, int(material.key_size), target)
    return target


def read_key_file(path: Union[str, Path]) -> KeyMaterial:
    """
    Load key material from a file written by write_key_file().

    Raises:
        KeyFileFormatError: If the file is truncated or malformed
        OSError: If the file cannot be read
    """
    source = Path(path)
    with open(source, "rb") as handle:
        data = handle.read()

    material = decode(data)
    _log.debug("Read key file for AES-%d from %s", int(material.key_size), source)
    return material
