"""
nspcrypt Memory Security Module
===============================

Best-effort zeroization of key material.
"""

from nspcrypt.core.memory.zeroization import secure_zero, ZeroizeContext

__all__ = [
    "secure_zero",
    "ZeroizeContext",
]
