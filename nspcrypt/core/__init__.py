"""
Core module - Contains configuration, logging, and the crypto engine.
"""

from nspcrypt.core.config import NspCryptConfig
from nspcrypt.core.logging import get_secure_logger, configure_logging, SecureLogFilter

__all__ = ["NspCryptConfig", "get_secure_logger", "configure_logging", "SecureLogFilter"]
