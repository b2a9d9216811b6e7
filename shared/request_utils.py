"""
Request metadata helpers for FastAPI requests.

Client IP, upstream-proxy geo headers and the public base URL are all read
from an explicit ``Request`` (or its headers) so the functions stay testable
without a running server. Geo headers are trusted verbatim and never
re-resolved.
"""

from __future__ import annotations

import math
from typing import Mapping, Optional
from urllib.parse import unquote

from fastapi import Request

from schemas.models.analytics import ClickLocation

# Header priority for each location field: Cloudflare first, then Vercel.
_COUNTRY_HEADERS = ("CF-IPCountry", "X-Vercel-IP-Country")
_CITY_HEADERS = ("CF-IPCity", "X-Vercel-IP-City")
_REGION_HEADERS = ("CF-IPRegion", "X-Vercel-IP-Country-Region")
_LATITUDE_HEADERS = ("CF-IPLatitude", "X-Vercel-IP-Latitude")
_LONGITUDE_HEADERS = ("CF-IPLongitude", "X-Vercel-IP-Longitude")


def get_client_ip(request: Request) -> str:
    """Extract the real client IP from a FastAPI ``Request``.

    Checks proxy headers in priority order before falling back to the
    direct connection address:

    1. ``CF-Connecting-IP``: Cloudflare
    2. ``True-Client-IP``: Akamai and others
    3. ``X-Forwarded-For``: standard proxy header (first IP in list)
    4. ``X-Real-IP``: nginx / other reverse proxies
    5. ``X-Client-IP``: less common
    """
    headers_to_check: list[str] = [
        "CF-Connecting-IP",
        "True-Client-IP",
        "X-Forwarded-For",
        "X-Real-IP",
        "X-Client-IP",
    ]

    for header in headers_to_check:
        ip_value: str | None = request.headers.get(header)
        if ip_value:
            client_ip: str = ip_value.split(",")[0].strip()
            if client_ip:
                return client_ip

    return request.client.host if request.client else ""


def _first_header(headers: Mapping[str, str], names: tuple[str, ...]) -> Optional[str]:
    for name in names:
        value = headers.get(name)
        if value:
            value = unquote(value).strip()
            if value:
                return value
    return None


def _coordinate(headers: Mapping[str, str], names: tuple[str, ...]) -> float:
    raw = _first_header(headers, names)
    if raw is None:
        return 0.0
    try:
        value = float(raw)
    except ValueError:
        return 0.0
    return value if math.isfinite(value) else 0.0


def get_visitor_location(headers: Mapping[str, str]) -> ClickLocation:
    """Build a ``ClickLocation`` from upstream proxy geo headers.

    Missing values become ``"Unknown"`` (names), ``"XX"`` (country code) and
    ``0.0`` (coordinates). The country header carries the two-letter code,
    which is used for both ``country`` and ``country_code``.
    """
    country = _first_header(headers, _COUNTRY_HEADERS)
    return ClickLocation(
        country=country or "Unknown",
        city=_first_header(headers, _CITY_HEADERS) or "Unknown",
        region=_first_header(headers, _REGION_HEADERS) or "Unknown",
        country_code=country or "XX",
        latitude=_coordinate(headers, _LATITUDE_HEADERS),
        longitude=_coordinate(headers, _LONGITUDE_HEADERS),
    )


def get_base_url(request: Request, app_url: Optional[str] = None) -> str:
    """Return the public base URL used to build short links.

    A configured *app_url* wins; otherwise the forwarded host/proto headers
    set by a reverse proxy are used, then the request's own base URL.
    """
    if app_url:
        return app_url.rstrip("/")

    host = request.headers.get("X-Forwarded-Host") or request.headers.get("Host")
    if host:
        proto = request.headers.get("X-Forwarded-Proto") or request.url.scheme
        return f"{proto}://{host.split(',')[0].strip()}"

    return str(request.base_url).rstrip("/")
