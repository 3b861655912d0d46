from __future__ import annotations

import os
import random


def session_id() -> int:
    """Uniformly random unsigned 32-bit connection id (not a security token)."""
    return random.getrandbits(32)


def random_token(length: int = 16) -> str:
    """Generate hex token."""
    return os.urandom(length // 2).hex()


__all__ = ["session_id", "random_token"]
