"""
Random code generators: pure, side-effect-free functions.

Short codes use the URL-safe alphabet (letters, digits, ``_`` and ``-``)
drawn from the ``secrets`` module.
"""

from __future__ import annotations

import secrets
import string

URL_SAFE_ALPHABET = string.ascii_letters + string.digits + "_-"


def generate_short_code(length: int = 7) -> str:
    """Generate a random URL-safe short code.

    Args:
        length: Number of characters (default 7).

    Returns:
        Random string over ``URL_SAFE_ALPHABET`` of the requested length.
    """
    return "".join(secrets.choice(URL_SAFE_ALPHABET) for _ in range(length))
