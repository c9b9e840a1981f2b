"""
Memory Zeroization Utilities
============================

Best-effort wiping of key buffers.

Security Properties:
- Explicit zeroization (no GC reliance)
- Exception-safe cleanup via ZeroizeContext

WARNING:
- Python's memory model doesn't guarantee secure erasure
- Immutable bytes objects cannot be wiped; keep secrets in bytearray
"""

from __future__ import annotations

import ctypes
from contextlib import contextmanager
from typing import Iterator


def secure_zero(data: bytearray | memoryview) -> None:
    """
    Securely zero a byte buffer.

    Uses ctypes for direct memory access where possible,
    with fallback to Python-level zeroing.

    Args:
        data: Mutable byte buffer to zero

    Security Notes:
        - This is best-effort; Python may have copies
        - Buffer must be mutable (bytearray, not bytes)
    """
    if len(data) == 0:
        return

    if isinstance(data, memoryview):
        if data.readonly:
            raise TypeError("Cannot zero a read-only buffer")
        data[:] = bytes(len(data))
        return

    try:
        addr = ctypes.addressof(
            (ctypes.c_char * len(data)).from_buffer(data)
        )
        ctypes.memset(addr, 0, len(data))
    except (TypeError, ValueError, BufferError):
        for i in range(len(data)):
            data[i] = 0


@contextmanager
def ZeroizeContext(*buffers: bytearray) -> Iterator[None]:
    """
    Context manager that zeroes the given buffers on exit.

    Usage:
        buf = bytearray(key)
        with ZeroizeContext(buf):
            use(buf)
        # buf is now all zeros
    """
    try:
        yield
    finally:
        for buf in buffers:
            secure_zero(buf)
