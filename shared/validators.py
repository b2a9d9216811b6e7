"""
URL and input validators: framework-agnostic, pure functions.

All validators are stateless; configuration (blocked domains, length
bounds) is passed in as arguments so the service layer stays in control.
"""

from __future__ import annotations

import re
from typing import Iterable, Sequence

import validators as _validators

CUSTOM_CODE_MIN_LENGTH = 3
CUSTOM_CODE_MAX_LENGTH = 50

_CUSTOM_CODE_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")


def validate_url(url: str, blocked_domains: Sequence[str] = ()) -> bool:
    """Return True if *url* is a valid absolute URL not pointing at a blocked domain.

    Args:
        url: The URL string to validate.
        blocked_domains: Domain strings that must not appear in the URL,
            typically the service's own host to prevent redirect loops.
    """
    if not url or not _validators.url(url):
        return False
    url_lower = url.lower()
    return not any(domain.lower() in url_lower for domain in blocked_domains)


def validate_alias(alias: str) -> bool:
    """Return True if *alias* contains only alphanumeric characters, ``-``, or ``_``."""
    return bool(_CUSTOM_CODE_PATTERN.search(alias))


def custom_code_error(code: str, reserved: Iterable[str] = ()) -> str | None:
    """Return the validation message for a custom short code, or None if valid.

    Rules:
    - At least 3 characters
    - At most 50 characters
    - Letters, digits, ``-`` and ``_`` only
    - Not one of *reserved* (compared case-insensitively), the top-level
      paths the app serves itself
    """
    if len(code) < CUSTOM_CODE_MIN_LENGTH:
        return "Custom short code must be at least 3 characters"
    if len(code) > CUSTOM_CODE_MAX_LENGTH:
        return "Custom short code must be less than 50 characters"
    if not validate_alias(code):
        return (
            "Custom short code can only contain letters, numbers, "
            "hyphens, and underscores"
        )
    if code.lower() in {name.lower() for name in reserved}:
        return "This custom short code is reserved"
    return None


def reserved_path_segments(paths: Iterable[str]) -> set[str]:
    """First path segments of fixed routes, e.g. ``/api/shorten`` -> ``api``.

    Parameterised segments (``/{short_code}``) are skipped.
    """
    segments = set()
    for path in paths:
        first = (path or "").strip("/").split("/", 1)[0]
        if first and not first.startswith("{"):
            segments.add(first)
    return segments
