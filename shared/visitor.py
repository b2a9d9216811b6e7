"""
Visitor classification: pure, side-effect-free heuristics.

Maps request metadata (user agent, HTTP referrer, ``utm_source``) to the
labels recorded for a click. Every table below is ordered and the first
match wins:

- referrer: ``utm_source`` beats the HTTP referrer, which beats sniffing
  the user agent for an in-app browser.
- browser: in-app browsers beat generic engines; Edge is checked before
  Chrome (Edge UAs contain "chrome") and Chrome before Safari (Chrome UAs
  contain "safari").
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlsplit

UNKNOWN = "Unknown"

_MOBILE_RE = re.compile(r"mobile|android|iphone|ipad|ipod", re.IGNORECASE)

# (hostname substrings, friendly name)
REFERRER_HOSTS: tuple[tuple[tuple[str, ...], str], ...] = (
    (("google",), "Google"),
    (("facebook", "fb.com"), "Facebook"),
    (("instagram",), "Instagram"),
    (("twitter", "t.co"), "X (formerly Twitter)"),
    (("linkedin",), "LinkedIn"),
    (("reddit",), "Reddit"),
    (("tiktok",), "TikTok"),
    (("youtube",), "YouTube"),
    (("pinterest",), "Pinterest"),
    (("whatsapp",), "WhatsApp"),
    (("telegram",), "Telegram"),
    (("discord",), "Discord"),
    (("slack",), "Slack"),
)

# (user-agent substrings, platform) for clicks with no referrer and no UTM tag
IN_APP_REFERRERS: tuple[tuple[tuple[str, ...], str], ...] = (
    (("whatsapp",), "WhatsApp"),
    (("instagram",), "Instagram"),
    (("fbav", "fban", "fb_iab"), "Facebook"),
    (("twitter",), "X (formerly Twitter)"),
    (("linkedin",), "LinkedIn"),
    (("snapchat",), "Snapchat"),
    (("tiktok",), "TikTok"),
    (("telegram",), "Telegram"),
    (("line/",), "LINE"),
    (("kakaotalk",), "KakaoTalk"),
    (("wechat",), "WeChat"),
)

IN_APP_BROWSERS: tuple[tuple[tuple[str, ...], str], ...] = (
    (("instagram",), "Instagram App"),
    (("whatsapp",), "WhatsApp"),
    (("fb_iab", "fbav"), "Facebook App"),
    (("twitter",), "Twitter App"),
    (("linkedin",), "LinkedIn App"),
)


@dataclass(frozen=True)
class VisitorClassification:
    device: str
    browser: str
    referrer: str
    is_shared: bool


def _first_match(
    haystack: str, table: tuple[tuple[tuple[str, ...], str], ...]
) -> Optional[str]:
    for needles, label in table:
        if any(needle in haystack for needle in needles):
            return label
    return None


def _host_matches(hostname: str, needle: str) -> bool:
    # Domain needles ("t.co", "fb.com") match the host or its subdomains only;
    # as plain substrings "t.co" would also match "reddit.com".
    if "." in needle:
        return hostname == needle or hostname.endswith("." + needle)
    return needle in hostname


def _referrer_host_label(hostname: str) -> Optional[str]:
    for needles, label in REFERRER_HOSTS:
        if any(_host_matches(hostname, needle) for needle in needles):
            return label
    return None


def _capitalize_first(value: str) -> str:
    return value[:1].upper() + value[1:]


def classify_referrer(
    user_agent: str, http_referrer: Optional[str], utm_source: Optional[str]
) -> str:
    """Return the referrer source label for a click."""
    if utm_source:
        return _capitalize_first(utm_source)

    if http_referrer:
        try:
            hostname = (urlsplit(http_referrer).hostname or "").lower()
        except ValueError:
            hostname = ""
        if not hostname:
            return http_referrer
        if hostname.startswith("www."):
            hostname = hostname[4:]
        return _referrer_host_label(hostname) or hostname

    return _first_match(user_agent.lower(), IN_APP_REFERRERS) or UNKNOWN


def classify_device(user_agent: str) -> str:
    """Return ``"Mobile"`` or ``"Desktop"``."""
    return "Mobile" if _MOBILE_RE.search(user_agent) else "Desktop"


def classify_browser(user_agent: str) -> str:
    """Return the browser label; ``"Other"`` when nothing matches."""
    ua = user_agent.lower()

    in_app = _first_match(ua, IN_APP_BROWSERS)
    if in_app:
        return in_app

    if "edg" in ua:
        return "Edge"
    if "chrome" in ua:
        return "Chrome"
    if "safari" in ua:
        return "Safari"
    if "firefox" in ua:
        return "Firefox"
    if "opera" in ua or "opr" in ua:
        return "Opera"
    return "Other"


def classify_visitor(
    user_agent: Optional[str],
    http_referrer: Optional[str] = None,
    utm_source: Optional[str] = None,
) -> VisitorClassification:
    """Classify a visitor from request metadata.

    Args:
        user_agent: The ``User-Agent`` header (``None`` treated as ``"Unknown"``).
        http_referrer: The ``Referer`` header, if any.
        utm_source: The ``utm_source`` query parameter of the short-link request.

    Returns:
        The device, browser and referrer labels plus the is-shared flag
        (true iff ``utm_source`` was present).
    """
    ua = user_agent or UNKNOWN
    return VisitorClassification(
        device=classify_device(ua),
        browser=classify_browser(ua),
        referrer=classify_referrer(ua, http_referrer, utm_source),
        is_shared=bool(utm_source),
    )
