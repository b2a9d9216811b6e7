"""
UTM campaign parameter helpers.

``apply_utm_params`` sets parameters by name on a URL's query string,
overwriting an existing value instead of appending a duplicate.
``parse_utm_params`` reads them back into the stored ``UtmParams`` shape.
"""

from __future__ import annotations

from typing import Mapping, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

UTM_FIELDS = ("source", "medium", "campaign", "term", "content")


def apply_utm_params(url: str, params: Mapping[str, Optional[str]]) -> str:
    """Return *url* with ``utm_<field>`` query parameters set from *params*.

    Keys of *params* are the bare field names (``source``, ``medium``, ...).
    Empty values are skipped. An existing parameter keeps its position and
    any later duplicates of it are removed; new parameters are appended.
    """
    if not any(params.get(field) for field in UTM_FIELDS):
        return url

    parts = urlsplit(url)
    query = parse_qsl(parts.query, keep_blank_values=True)

    for field in UTM_FIELDS:
        value = params.get(field)
        if not value:
            continue
        name = f"utm_{field}"
        updated: list[tuple[str, str]] = []
        replaced = False
        for key, existing in query:
            if key != name:
                updated.append((key, existing))
            elif not replaced:
                updated.append((key, value))
                replaced = True
        if not replaced:
            updated.append((name, value))
        query = updated

    return urlunsplit(parts._replace(query=urlencode(query)))


def parse_utm_params(url: str) -> dict[str, str]:
    """Return the UTM fields present on *url* (missing fields are ``""``)."""
    query = dict(parse_qsl(urlsplit(url).query, keep_blank_values=True))
    return {field: query.get(f"utm_{field}", "") for field in UTM_FIELDS}
