"""Unit tests for shared.visitor (visitor classification heuristics)."""

from __future__ import annotations

import pytest

from shared.visitor import (
    VisitorClassification,
    classify_browser,
    classify_device,
    classify_referrer,
    classify_visitor,
)

CHROME_DESKTOP = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
EDGE_DESKTOP = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36 Edg/91.0.864.59"
)
SAFARI_IPHONE = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
)
FIREFOX_DESKTOP = "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:109.0) Gecko/20100101 Firefox/115.0"
OPERA_PRESTO = "Opera/9.80 (Windows NT 6.1; WOW64) Presto/2.12.388 Version/12.18"
WHATSAPP_ANDROID = (
    "Mozilla/5.0 (Linux; Android 13; Pixel 7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0 Mobile Safari/537.36 WhatsApp/2.23.20"
)
INSTAGRAM_IPHONE = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 16_5 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Mobile/15E148 Instagram 300.0.0.0"
)
FACEBOOK_IPHONE = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 16_5 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Mobile/15E148 [FBAN/FBIOS;FBAV/420.0.0]"
)


# ── Browser ───────────────────────────────────────────────────────────────────


@pytest.mark.parametrize(
    "user_agent, expected",
    [
        (CHROME_DESKTOP, "Chrome"),
        (EDGE_DESKTOP, "Edge"),
        (SAFARI_IPHONE, "Safari"),
        (FIREFOX_DESKTOP, "Firefox"),
        (OPERA_PRESTO, "Opera"),
        (WHATSAPP_ANDROID, "WhatsApp"),
        (INSTAGRAM_IPHONE, "Instagram App"),
        (FACEBOOK_IPHONE, "Facebook App"),
        ("curl/8.4.0", "Other"),
    ],
    ids=[
        "chrome",
        "edge_not_chrome",
        "safari",
        "firefox",
        "opera",
        "whatsapp_in_app_beats_chrome",
        "instagram_in_app",
        "facebook_in_app",
        "unknown",
    ],
)
def test_classify_browser(user_agent, expected):
    assert classify_browser(user_agent) == expected


# ── Device ────────────────────────────────────────────────────────────────────


@pytest.mark.parametrize(
    "user_agent, expected",
    [
        (SAFARI_IPHONE, "Mobile"),
        (WHATSAPP_ANDROID, "Mobile"),
        ("Mozilla/5.0 (iPad; CPU OS 16_0 like Mac OS X)", "Mobile"),
        (CHROME_DESKTOP, "Desktop"),
        ("Unknown", "Desktop"),
    ],
)
def test_classify_device(user_agent, expected):
    assert classify_device(user_agent) == expected


# ── Referrer ──────────────────────────────────────────────────────────────────


class TestClassifyReferrer:
    def test_utm_source_capitalized(self):
        assert classify_referrer(CHROME_DESKTOP, None, "newsletter") == "Newsletter"

    def test_utm_source_beats_http_referrer(self):
        assert (
            classify_referrer(CHROME_DESKTOP, "https://www.google.com/", "twitter")
            == "Twitter"
        )

    def test_utm_source_keeps_rest_of_value(self):
        assert classify_referrer(CHROME_DESKTOP, None, "eMail_blast") == "EMail_blast"

    @pytest.mark.parametrize(
        "referrer, expected",
        [
            ("https://www.google.com/search?q=links", "Google"),
            ("https://l.facebook.com/l.php?u=x", "Facebook"),
            ("https://fb.com/page", "Facebook"),
            ("https://t.co/abc123", "X (formerly Twitter)"),
            ("https://www.reddit.com/r/python", "Reddit"),
            ("https://www.linkedin.com/feed", "LinkedIn"),
            ("https://m.youtube.com/watch?v=1", "YouTube"),
            ("https://app.slack.com/client", "Slack"),
        ],
    )
    def test_known_platforms(self, referrer, expected):
        assert classify_referrer(CHROME_DESKTOP, referrer, None) == expected

    def test_domain_needle_does_not_match_inside_other_hosts(self):
        # "t.co" must not claim microsoft.com
        assert (
            classify_referrer(CHROME_DESKTOP, "https://www.microsoft.com/", None)
            == "microsoft.com"
        )

    def test_unknown_host_falls_back_to_hostname(self):
        assert (
            classify_referrer(CHROME_DESKTOP, "https://news.ycombinator.com/item?id=1", None)
            == "news.ycombinator.com"
        )

    def test_www_prefix_stripped(self):
        assert classify_referrer(CHROME_DESKTOP, "https://www.example.org/", None) == "example.org"

    def test_unparseable_referrer_returned_verbatim(self):
        assert classify_referrer(CHROME_DESKTOP, "not a url", None) == "not a url"

    @pytest.mark.parametrize(
        "user_agent, expected",
        [
            (WHATSAPP_ANDROID, "WhatsApp"),
            (INSTAGRAM_IPHONE, "Instagram"),
            (FACEBOOK_IPHONE, "Facebook"),
            ("Mozilla/5.0 Snapchat/12.0", "Snapchat"),
            ("Mozilla/5.0 Line/13.1.0", "LINE"),
            (CHROME_DESKTOP, "Unknown"),
        ],
    )
    def test_in_app_sniffing_without_referrer(self, user_agent, expected):
        assert classify_referrer(user_agent, None, None) == expected

    def test_http_referrer_beats_in_app_sniffing(self):
        assert (
            classify_referrer(WHATSAPP_ANDROID, "https://www.google.com/", None)
            == "Google"
        )


# ── classify_visitor ──────────────────────────────────────────────────────────


class TestClassifyVisitor:
    def test_shared_click(self):
        result = classify_visitor(CHROME_DESKTOP, None, "newsletter")
        assert result == VisitorClassification(
            device="Desktop", browser="Chrome", referrer="Newsletter", is_shared=True
        )

    def test_whatsapp_in_app_click(self):
        result = classify_visitor(WHATSAPP_ANDROID)
        assert result.referrer == "WhatsApp"
        assert result.browser == "WhatsApp"
        assert result.device == "Mobile"
        assert result.is_shared is False

    def test_edge_is_not_chrome(self):
        assert classify_visitor("Mozilla/5.0 ... Edg/91.0").browser == "Edge"

    def test_missing_user_agent(self):
        result = classify_visitor(None)
        assert result.device == "Desktop"
        assert result.browser == "Other"
        assert result.referrer == "Unknown"

    def test_empty_utm_source_is_not_a_share(self):
        assert classify_visitor(CHROME_DESKTOP, None, "").is_shared is False

    def test_result_is_immutable(self):
        result = classify_visitor(CHROME_DESKTOP)
        with pytest.raises(AttributeError):
            result.browser = "Other"  # type: ignore[misc]
