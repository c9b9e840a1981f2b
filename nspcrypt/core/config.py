"""
Configuration Module
====================

Immutable, environment-aware configuration for nspcrypt.

Features:
- Immutable configuration after initialization
- Environment variable override support (NSPCRYPT_SECTION__FIELD)
- No secrets in default values; secret-looking overrides are ignored
- OS-aware path handling
"""

from __future__ import annotations

import dataclasses
import hashlib
import os
import platform
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Final, Optional


# Field names that must never be read from the environment
_SENSITIVE_FIELDS: Final[frozenset[str]] = frozenset({
    "password", "salt", "secret", "token", "key", "iv",
    "private_key", "api_key", "credential",
})

_VALID_ALGORITHMS: Final[frozenset[str]] = frozenset({"CBC", "GCM"})
_VALID_KEY_SIZES: Final[frozenset[int]] = frozenset({128, 192, 256})
_VALID_HASH_SIZES: Final[frozenset[int]] = frozenset({256, 384, 512})


def _is_sensitive_key(key: str) -> bool:
    """Check if a configuration key names secret material."""
    return key.lower().rsplit(".", 1)[-1] in _SENSITIVE_FIELDS


def _get_default_data_dir() -> Path:
    """Get OS-appropriate default data directory."""
    system = platform.system().lower()

    if system == "windows":
        base = Path(os.environ.get("LOCALAPPDATA", Path.home() / "AppData" / "Local"))
    elif system == "darwin":
        base = Path.home() / "Library" / "Application Support"
    else:  # Linux and others
        base = Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local" / "share"))

    return base / "nspcrypt"


def _get_default_key_dir() -> Path:
    return _get_default_data_dir() / "keys"


def _get_default_log_dir() -> Path:
    """Get OS-appropriate default log directory."""
    system = platform.system().lower()

    if system == "windows":
        base = Path(os.environ.get("LOCALAPPDATA", Path.home() / "AppData" / "Local"))
        return base / "nspcrypt" / "Logs"
    elif system == "darwin":
        return Path.home() / "Library" / "Logs" / "nspcrypt"
    else:  # Linux and others
        return Path(os.environ.get("XDG_STATE_HOME", Path.home() / ".local" / "state")) / "nspcrypt" / "logs"


@dataclass(frozen=True, slots=True)
class PathConfig:
    """Immutable path configuration with OS-aware defaults."""

    key_dir: Path = field(default_factory=_get_default_key_dir)
    log_dir: Path = field(default_factory=_get_default_log_dir)

    def __post_init__(self) -> None:
        """Validate paths after initialization."""
        for field_name in ["key_dir", "log_dir"]:
            path = getattr(self, field_name)
            if not path.is_absolute():
                raise ValueError(f"{field_name} must be an absolute path: {path}")


@dataclass(frozen=True, slots=True)
class CryptoConfig:
    """Defaults used when building AesOptions."""

    algorithm: str = "GCM"
    key_size: int = 256
    hash_size: int = 256
    iteration_count: int = 65_536

    def __post_init__(self) -> None:
        """Validate crypto defaults."""
        object.__setattr__(self, "algorithm", self.algorithm.upper())
        if self.algorithm not in _VALID_ALGORITHMS:
            raise ValueError(f"Invalid algorithm: {self.algorithm}")
        if self.key_size not in _VALID_KEY_SIZES:
            raise ValueError(f"Invalid key size: {self.key_size}")
        if self.hash_size not in _VALID_HASH_SIZES:
            raise ValueError(f"Invalid hash size: {self.hash_size}")
        if self.iteration_count < 1:
            raise ValueError("Iteration count must be positive")


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    """Immutable logging configuration."""

    level: str = "WARNING"
    max_file_size_bytes: int = 10 * 1024 * 1024  # 10 MB
    backup_count: int = 5
    enable_console: bool = True
    enable_file: bool = False
    enable_json: bool = False

    def __post_init__(self) -> None:
        """Validate logging settings."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if self.level.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {self.level}")


def _convert(raw: str, default: Any) -> Any:
    """Convert an environment string to the type of the field default."""
    if isinstance(default, bool):
        return raw.strip().lower() in {"1", "true", "yes", "on"}
    if isinstance(default, int):
        return int(raw)
    if isinstance(default, Path):
        return Path(raw)
    return raw


class NspCryptConfig:
    """
    Centralized, immutable configuration loader with environment override support.

    Usage:
        config = NspCryptConfig.load()
        iterations = config.crypto.iteration_count
        log_dir = config.paths.log_dir

    Environment overrides use the NSPCRYPT_ prefix and a double
    underscore between section and field:
        NSPCRYPT_CRYPTO__ITERATION_COUNT=200000
        NSPCRYPT_LOGGING__LEVEL=DEBUG
        NSPCRYPT_PATHS__KEY_DIR=/srv/nsp/keys
    """

    __slots__ = ("_paths", "_crypto", "_logging", "_frozen", "_config_hash")

    _instance: Optional[NspCryptConfig] = None

    def __init__(
        self,
        paths: Optional[PathConfig] = None,
        crypto: Optional[CryptoConfig] = None,
        logging: Optional[LoggingConfig] = None,
    ) -> None:
        """Initialize configuration. Use NspCryptConfig.load() for standard initialization."""
        object.__setattr__(self, "_frozen", False)
        object.__setattr__(self, "_paths", paths or PathConfig())
        object.__setattr__(self, "_crypto", crypto or CryptoConfig())
        object.__setattr__(self, "_logging", logging or LoggingConfig())
        object.__setattr__(self, "_config_hash", self._compute_hash())
        object.__setattr__(self, "_frozen", True)

    def _compute_hash(self) -> str:
        """Compute a hash of the configuration for integrity checking."""
        config_str = f"{self._paths}|{self._crypto}|{self._logging}"
        return hashlib.sha256(config_str.encode()).hexdigest()[:16]

    @property
    def paths(self) -> PathConfig:
        return self._paths

    @property
    def crypto(self) -> CryptoConfig:
        return self._crypto

    @property
    def logging(self) -> LoggingConfig:
        return self._logging

    @property
    def config_hash(self) -> str:
        return self._config_hash

    @classmethod
    def load(cls, env_prefix: str = "NSPCRYPT") -> NspCryptConfig:
        """
        Load configuration with environment variable overrides.

        Args:
            env_prefix: Prefix for environment variables (default: NSPCRYPT)

        Returns:
            Configured NspCryptConfig instance

        Raises:
            ValueError: If an override has the wrong type or an invalid value
        """
        env_overrides = cls._parse_env_overrides(env_prefix)

        sections: dict[str, Any] = {}
        for section, section_cls in (
            ("paths", PathConfig),
            ("crypto", CryptoConfig),
            ("logging", LoggingConfig),
        ):
            defaults = section_cls()
            kwargs: dict[str, Any] = {}
            for f in dataclasses.fields(section_cls):
                key = f"{section}.{f.name}"
                if key in env_overrides:
                    kwargs[f.name] = _convert(env_overrides[key], getattr(defaults, f.name))
            sections[section] = section_cls(**kwargs) if kwargs else None

        return cls(**sections)

    @staticmethod
    def _parse_env_overrides(prefix: str) -> dict[str, str]:
        """Parse environment variables with the given prefix."""
        overrides: dict[str, str] = {}
        prefix_upper = f"{prefix.upper()}_"

        for key, value in os.environ.items():
            if key.startswith(prefix_upper):
                # NSPCRYPT_SECTION__KEY -> section.key
                config_key = key[len(prefix_upper):].lower().replace("__", ".")

                if _is_sensitive_key(config_key):
                    continue

                overrides[config_key] = value

        return overrides

    @classmethod
    def get_instance(cls) -> NspCryptConfig:
        """Get or create the singleton configuration instance."""
        if cls._instance is None:
            cls._instance = cls.load()
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Reset the singleton instance. Use only for testing."""
        cls._instance = None

    def ensure_directories(self) -> None:
        """Create key and log directories with owner-only permissions."""
        import stat

        for directory in (self._paths.key_dir, self._paths.log_dir):
            directory.mkdir(parents=True, exist_ok=True)

            if platform.system().lower() != "windows":
                directory.chmod(stat.S_IRWXU)  # 700 - owner only

    def __repr__(self) -> str:
        """Safe string representation without sensitive data."""
        return f"NspCryptConfig(hash={self._config_hash})"

    def __setattr__(self, name: str, value: Any) -> None:
        """Prevent modification after initialization."""
        if hasattr(self, "_frozen") and self._frozen:
            raise AttributeError("NspCryptConfig is immutable after initialization")
        super().__setattr__(name, value)
