"""
AES Cipher Engine
=================

AES-CBC / AES-GCM encryption over byte arrays and text.

Modes:
    - CBC: "AES/CBC/PKCS5Padding", the IV is the mode parameter
    - GCM: "AES/GCM/NoPadding", 128-bit tag, the same 16-byte IV is the nonce

Security Properties:
    - Every call builds its own cipher context (no shared cipher state)
    - GCM tag is verified before any plaintext is returned
    - Key material is read-only during encrypt/decrypt

WARNING:
    - GCM reuses the IV as nonce for every message under the same key.
      Rotate the IV (update_options with a fresh derivation) per session.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from pathlib import Path
from typing import Final, NamedTuple, Optional, Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from nspcrypt.core.crypto.errors import (
    ConfigurationError,
    DecryptionError,
    IntegrityError,
    KeyDerivationError,
    PayloadEncodingError,
)
from nspcrypt.core.crypto.kdf import EntropySource, parse_combined_algorithm
from nspcrypt.core.crypto.keyfile import KeyFileFormat, read_key_file, write_key_file
from nspcrypt.core.crypto.keys import KeyMaterial, resolve_key_material
from nspcrypt.core.crypto.options import Algorithm, AesOptions, coerce_enum

AES_BLOCK_SIZE: Final[int] = 16
GCM_TAG_SIZE: Final[int] = 16  # 128 bits

TRANSFORMATIONS: Final[dict[Algorithm, str]] = {
    Algorithm.CBC: "AES/CBC/PKCS5Padding",
    Algorithm.GCM: "AES/GCM/NoPadding",
}

_log = logging.getLogger("nspcrypt.cipher")


@dataclass(frozen=True, slots=True, repr=False)
class GcmParameters:
    """GCM mode parameter: tag length in bits plus nonce."""

    tag_length: int
    nonce: bytes

    def __repr__(self) -> str:
        return f"GcmParameters(tag_length={self.tag_length}, nonce_len={len(self.nonce)})"


ModeParameter = Union[bytes, GcmParameters]


def _mode(algorithm: Algorithm) -> Algorithm:
    mode = coerce_enum(Algorithm, algorithm)
    if not isinstance(mode, Algorithm) or mode not in TRANSFORMATIONS:
        raise ConfigurationError(f"Unsupported algorithm: {algorithm!r}")
    return mode


def _live_key(material: KeyMaterial) -> bytes:
    if material.wiped:
        raise ConfigurationError("Key material has been wiped")
    return material.secret_key


def transformation_for(algorithm: Algorithm) -> str:
    """
    Return the transformation name for a mode.

    Raises:
        ConfigurationError: For anything other than CBC or GCM
    """
    return TRANSFORMATIONS[_mode(algorithm)]


def mode_parameter_for(algorithm: Algorithm, material: KeyMaterial) -> ModeParameter:
    """IV for CBC, (128-bit tag length, IV as nonce) for GCM."""
    algorithm = _mode(algorithm)
    if algorithm is Algorithm.CBC:
        return material.iv
    if algorithm is Algorithm.GCM:
        return GcmParameters(tag_length=GCM_TAG_SIZE * 8, nonce=material.iv)
    raise ConfigurationError(f"Unsupported algorithm: {algorithm!r}")


def encrypt(material: KeyMaterial, algorithm: Algorithm, plaintext: bytes) -> bytes:
    """
    Encrypt plaintext in one pass with a fresh cipher context.

    Args:
        material: Key and IV
        algorithm: CBC or GCM
        plaintext: Data to encrypt (can be empty)

    Returns:
        Ciphertext; for GCM the 16-byte tag is appended

    Raises:
        ConfigurationError: Unsupported algorithm or wiped key material
        KeyDerivationError: The primitive rejected the key or IV
    """
    algorithm = _mode(algorithm)
    key = _live_key(material)
    try:
        if algorithm is Algorithm.CBC:
            padder = padding.PKCS7(AES_BLOCK_SIZE * 8).padder()
            padded = padder.update(plaintext) + padder.finalize()
            encryptor = Cipher(algorithms.AES(key), modes.CBC(material.iv)).encryptor()
            return encryptor.update(padded) + encryptor.finalize()
        return AESGCM(key).encrypt(material.iv, plaintext, None)
    except ValueError as e:
        raise KeyDerivationError(f"Cipher rejected parameters: {e}") from e


def decrypt(material: KeyMaterial, algorithm: Algorithm, ciphertext: bytes) -> bytes:
    """
    Decrypt ciphertext in one pass with a fresh cipher context.

    Args:
        material: Key and IV used for encryption
        algorithm: CBC or GCM
        ciphertext: Data to decrypt (GCM: with appended tag)

    Returns:
        Plaintext bytes

    Raises:
        IntegrityError: GCM tag did not verify
        DecryptionError: CBC length or padding invalid
        ConfigurationError: Unsupported algorithm or wiped key material
    """
    algorithm = _mode(algorithm)
    key = _live_key(material)

    if algorithm is Algorithm.GCM:
        if len(ciphertext) < GCM_TAG_SIZE:
            raise IntegrityError("Ciphertext too short (missing authentication tag)")
        try:
            return AESGCM(key).decrypt(material.iv, ciphertext, None)
        except InvalidTag as e:
            raise IntegrityError("Authentication failed: data tampered or wrong key") from e

    if not ciphertext or len(ciphertext) % AES_BLOCK_SIZE != 0:
        raise DecryptionError(f"Ciphertext length must be a positive multiple of {AES_BLOCK_SIZE}")
    decryptor = Cipher(algorithms.AES(key), modes.CBC(material.iv)).decryptor()
    padded = decryptor.update(ciphertext) + decryptor.finalize()
    try:
        unpadder = padding.PKCS7(AES_BLOCK_SIZE * 8).unpadder()
        return unpadder.update(padded) + unpadder.finalize()
    except ValueError as e:
        raise DecryptionError("Decryption failed: invalid padding or wrong key") from e


class _EngineState(NamedTuple):
    options: AesOptions
    material: KeyMaterial
    transformation: str
    mode_parameter: ModeParameter


class AesCipher:
    """
    Password-based AES engine.

    Holds one KeyMaterial resolved from AesOptions and exposes
    encrypt/decrypt over bytes and text.

    Usage:
        options = AesOptions.from_password("hunter2", algorithm="GCM")
        cipher = AesCipher(options)

        ciphertext = cipher.encrypt_bytes("hello")
        text = cipher.decrypt_byte_string(ciphertext)

        cipher.write_key_file("session.key")
        same = AesCipher.from_key_file("session.key", algorithm="GCM")

    Thread Safety:
        encrypt/decrypt may run concurrently. update_options() and
        set_password() replace the key material and must be
        synchronized by the caller.
    """

    __slots__ = ("_state", "_entropy")

    def __init__(
        self,
        options: AesOptions,
        entropy: EntropySource = secrets.token_bytes,
    ) -> None:
        """
        Validate options and resolve key material.

        Args:
            options: Engine configuration
            entropy: Source of random bytes for generated IVs

        Raises:
            ConfigurationError: Invalid options or unsupported algorithm
            KeyDerivationError: KDF failure
        """
        self._entropy = entropy
        self._state: Optional[_EngineState] = None
        self.update_options(options)

    @classmethod
    def from_key_file(
        cls,
        path: Union[str, Path],
        algorithm: Algorithm = Algorithm.CBC,
        entropy: EntropySource = secrets.token_bytes,
    ) -> AesCipher:
        """
        Rebuild an engine from a key file without re-deriving.

        The key file does not record the cipher mode, so the caller
        supplies it.
        """
        material = read_key_file(path)
        options = AesOptions(
            algorithm=algorithm,
            key_size=material.key_size,
            hash_size=parse_combined_algorithm(material.kdf_algorithm),
            auto_generate=False,
            key=material.secret_key,
            iv=material.iv,
        )
        return cls(options, entropy=entropy)

    def update_options(self, options: AesOptions) -> AesCipher:
        """
        Replace the options and re-resolve key material.

        On failure the previous state is kept unchanged.

        Raises:
            ConfigurationError: Invalid options or unsupported algorithm
            KeyDerivationError: KDF failure
        """
        if not isinstance(options, AesOptions):
            raise ConfigurationError(f"Expected AesOptions, got {type(options).__name__}")

        options.validate()
        transformation = transformation_for(options.algorithm)
        material = resolve_key_material(options, entropy=self._entropy)
        self._state = _EngineState(
            options=options,
            material=material,
            transformation=transformation,
            mode_parameter=mode_parameter_for(options.algorithm, material),
        )
        _log.debug("Cipher ready: %s, AES-%d", transformation, int(options.key_size))
        return self

    def set_password(self, password: str, salt: Optional[str] = None) -> AesCipher:
        """
        Switch to a new password and re-derive the key.

        Salt rules follow AesOptions.with_password(): omitted means the
        password is the salt, "" defers to the password at derivation,
        anything else is used as given.
        """
        return self.update_options(self.options.with_password(password, salt))

    @property
    def options(self) -> AesOptions:
        return self._state.options

    @property
    def key_material(self) -> KeyMaterial:
        return self._state.material

    @property
    def private_key(self) -> bytes:
        """Raw AES key bytes."""
        return self._state.material.secret_key

    @property
    def iv(self) -> bytes:
        return self._state.material.iv

    @property
    def transformation(self) -> str:
        return self._state.transformation

    @property
    def mode_parameter(self) -> ModeParameter:
        return self._state.mode_parameter

    @property
    def kdf_algorithm(self) -> str:
        return self._state.material.kdf_algorithm

    def encrypt_bytes(self, data: Union[bytes, bytearray, str]) -> bytes:
        """
        Encrypt bytes, or text after UTF-8 encoding.

        Returns:
            Ciphertext (GCM: tag appended)
        """
        if isinstance(data, str):
            data = data.encode("utf-8")
        state = self._state
        return encrypt(state.material, state.options.algorithm, bytes(data))

    def decrypt_bytes(self, data: Union[bytes, bytearray]) -> bytes:
        """
        Decrypt to bytes.

        Raises:
            IntegrityError: GCM authentication failed
            DecryptionError: Malformed CBC ciphertext
        """
        state = self._state
        return decrypt(state.material, state.options.algorithm, bytes(data))

    def decrypt_byte_string(self, data: Union[bytes, bytearray]) -> str:
        """
        Decrypt and decode as UTF-8 text.

        Raises:
            PayloadEncodingError: Plaintext is not valid UTF-8
        """
        plaintext = self.decrypt_bytes(data)
        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            raise PayloadEncodingError("Decrypted payload is not valid UTF-8") from e

    def write_key_file(
        self,
        path: Union[str, Path],
        fmt: KeyFileFormat = KeyFileFormat.LEGACY,
    ) -> AesCipher:
        """
        Persist the key material so it can be reloaded with from_key_file().

        Raises:
            KeyFileExistsError: If path already exists
        """
        write_key_file(path, self._state.material, fmt=fmt)
        return self

    def wipe(self) -> None:
        """Zero the held key. Later encrypt/decrypt calls raise ConfigurationError."""
        self._state.material.wipe()

    def __repr__(self) -> str:
        state = self._state
        return f"AesCipher(transformation={state.transformation!r}, options={state.options!r})"
