"""
AES Options
===========

Immutable configuration value describing how key material is obtained.

Two mutually exclusive paths:
    - auto_generate=True: derive the key from password + salt with PBKDF2,
      reusing a supplied IV when present or drawing a fresh one otherwise
    - auto_generate=False: use the caller's raw key and IV as-is

Options never hold derived material; see keys.resolve_key_material().
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Any, Final, Optional, TYPE_CHECKING

from nspcrypt.core.crypto.errors import ConfigurationError

if TYPE_CHECKING:
    from nspcrypt.core.config import NspCryptConfig

IV_SIZE: Final[int] = 16  # AES block size, also used as the GCM nonce


class Algorithm(str, Enum):
    """AES mode of operation."""
    CBC = "CBC"
    GCM = "GCM"


class KeySize(IntEnum):
    """Supported AES key lengths in bits."""
    AES_128 = 128
    AES_192 = 192
    AES_256 = 256

    @property
    def byte_length(self) -> int:
        return self.value // 8


class HashSize(IntEnum):
    """SHA-2 width used as the PBKDF2 PRF."""
    SHA256 = 256
    SHA384 = 384
    SHA512 = 512


def coerce_enum(enum_type: type, value: Any) -> Any:
    """Map raw values ("gcm", 256) onto enum members; leave unknowns for verify()."""
    if isinstance(value, enum_type):
        return value
    if isinstance(value, str):
        value = value.strip().upper() if enum_type is Algorithm else value.strip()
        if enum_type is not Algorithm and value.isdigit():
            value = int(value)
    try:
        return enum_type(value)
    except ValueError:
        return value


def _as_bytes(value: Any) -> Any:
    if isinstance(value, (bytearray, memoryview)):
        return bytes(value)
    return value


@dataclass(frozen=True, slots=True, repr=False)
class AesOptions:
    """
    Configuration for an AesCipher.

    Attributes:
        algorithm: CBC or GCM
        key_size: AES key length in bits
        hash_size: SHA-2 width for PBKDF2-HMAC
        password: Password text (derive path)
        salt: Salt text; "" means the password doubles as the salt
        iteration_count: PBKDF2 work factor
        auto_generate: Derive from password (True) or use supplied key (False)
        iv: Supplied 16-byte IV (optional on the derive path)
        key: Supplied raw key (required when auto_generate is False)
    """

    algorithm: Algorithm = Algorithm.GCM
    key_size: KeySize = KeySize.AES_256
    hash_size: HashSize = HashSize.SHA256
    password: Optional[str] = None
    salt: Optional[str] = None
    iteration_count: int = 65_536
    auto_generate: bool = True
    iv: Optional[bytes] = None
    key: Optional[bytes] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "algorithm", coerce_enum(Algorithm, self.algorithm))
        object.__setattr__(self, "key_size", coerce_enum(KeySize, self.key_size))
        object.__setattr__(self, "hash_size", coerce_enum(HashSize, self.hash_size))
        object.__setattr__(self, "iv", _as_bytes(self.iv))
        object.__setattr__(self, "key", _as_bytes(self.key))

    @classmethod
    def from_config(
        cls,
        config: Optional["NspCryptConfig"] = None,
        **overrides: Any,
    ) -> AesOptions:
        """
        Build options using the configured defaults.

        Args:
            config: Configuration to read defaults from (global instance if None)
            **overrides: Field values that take precedence over the defaults

        Returns:
            New AesOptions instance
        """
        if config is None:
            from nspcrypt.core.config import NspCryptConfig
            config = NspCryptConfig.get_instance()

        crypto = config.crypto
        values: dict[str, Any] = {
            "algorithm": crypto.algorithm,
            "key_size": crypto.key_size,
            "hash_size": crypto.hash_size,
            "iteration_count": crypto.iteration_count,
        }
        values.update(overrides)
        return cls(**values)

    @classmethod
    def from_password(cls, password: str, salt: Optional[str] = None, **kwargs: Any) -> AesOptions:
        """Shorthand for the derive path; salt follows with_password() rules."""
        return cls(**kwargs).with_password(password, salt)

    @classmethod
    def from_raw_key(cls, key: bytes, iv: bytes, **kwargs: Any) -> AesOptions:
        """Shorthand for the supplied-key path. key_size follows len(key)."""
        kwargs.setdefault("key_size", len(key) * 8)
        return cls(auto_generate=False, key=key, iv=iv, **kwargs)

    def with_password(self, password: str, salt: Optional[str] = None) -> AesOptions:
        """
        Return a copy using a new password.

        Salt rules:
            - salt omitted (None): salt becomes the password
            - salt == "": kept empty, password is used as salt when deriving
            - otherwise: the supplied salt is used
        """
        if salt is None:
            salt = password
        return dataclasses.replace(self, password=password, salt=salt)

    def with_iv(self, iv: Optional[bytes]) -> AesOptions:
        return dataclasses.replace(self, iv=iv)

    def problems(self) -> list[str]:
        """Return every rule this configuration breaks (empty when valid)."""
        errors: list[str] = []

        if not isinstance(self.algorithm, Algorithm):
            errors.append(f"unsupported algorithm: {self.algorithm!r}")
        if not isinstance(self.key_size, KeySize):
            errors.append(f"unsupported key size: {self.key_size!r}")
        if not isinstance(self.hash_size, HashSize):
            errors.append(f"unsupported hash size: {self.hash_size!r}")

        if self.auto_generate:
            if not isinstance(self.password, str) or not self.password:
                errors.append("password is required when auto_generate is set")
            if not isinstance(self.salt, str):
                errors.append("salt is required when auto_generate is set")
            if (
                isinstance(self.iteration_count, bool)
                or not isinstance(self.iteration_count, int)
                or self.iteration_count < 1
            ):
                errors.append("iteration_count must be a positive integer")
            if self.iv is not None and (not isinstance(self.iv, bytes) or len(self.iv) != IV_SIZE):
                errors.append(f"iv must be {IV_SIZE} bytes")
        else:
            if not isinstance(self.key, bytes):
                errors.append("key is required when auto_generate is not set")
            elif isinstance(self.key_size, KeySize) and len(self.key) != self.key_size.byte_length:
                errors.append(f"key must be {self.key_size.byte_length} bytes for AES-{self.key_size.value}")
            if not isinstance(self.iv, bytes) or len(self.iv) != IV_SIZE:
                errors.append(f"iv must be {IV_SIZE} bytes when auto_generate is not set")

        return errors

    def verify(self) -> bool:
        """True when the active path has everything it needs."""
        return not self.problems()

    def validate(self) -> None:
        """
        Raise if the options are inconsistent.

        Raises:
            ConfigurationError: Listing the broken rules
        """
        errors = self.problems()
        if errors:
            raise ConfigurationError("Invalid AES options: " + "; ".join(errors))

    def __repr__(self) -> str:
        """Safe representation without password, salt, key or IV."""
        return (
            f"AesOptions(algorithm={_label(self.algorithm)}, key_size={_label(self.key_size)}, "
            f"hash_size={_label(self.hash_size)}, iteration_count={self.iteration_count}, "
            f"auto_generate={self.auto_generate}, iv_set={self.iv is not None}, "
            f"key_set={self.key is not None})"
        )


def _label(value: Any) -> str:
    return str(value.value) if isinstance(value, Enum) else repr(value)
