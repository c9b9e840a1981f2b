"""
Password Generation
===================

Random passwords over a caller-chosen alphabet.

Independent of any cipher state. Uses the OS CSPRNG by default; tests
may inject a seeded random.Random.
"""

from __future__ import annotations

import random
import secrets
from typing import Final, Optional

DEFAULT_CHARSET: Final[str] = (
    "1234567890-=qwertyuiop[]asdfghjkl;'zxcvbnm,./"
    "~!@#$%^&*()_+QWERTYUIOP{}|ASDFGHJKL:ZXCVBNM<>?"
)


def generate_password(
    length: int,
    charset: str = DEFAULT_CHARSET,
    rng: Optional[random.Random] = None,
) -> str:
    """
    Generate a password of the given length.

    Args:
        length: Number of characters
        charset: Characters to draw from
        rng: Random source (secrets.SystemRandom() if None)

    Returns:
        Generated password

    Raises:
        ValueError: If length is negative or charset is empty
    """
    if length < 0:
        raise ValueError("Password length cannot be negative")
    if not charset:
        raise ValueError("Charset cannot be empty")

    rng = rng or secrets.SystemRandom()
    return "".join(rng.choice(charset) for _ in range(length))
