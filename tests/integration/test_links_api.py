"""Integration tests for link management (POST/GET/DELETE /api/...) and redirects."""

from urllib.parse import parse_qsl, urlsplit

import pytest

APP_URL = "https://l.test"


# ── POST /api/shorten ─────────────────────────────────────────────────────────


class TestShorten:
    def test_creates_link(self, shorten):
        body = shorten("https://example.com/page")
        assert body["success"] is True
        assert body["isCustom"] is False
        assert body["originalUrl"] == "https://example.com/page"
        assert body["shortUrl"] == f"{APP_URL}/{body['shortCode']}"
        assert len(body["shortCode"]) == 7

    def test_custom_code(self, shorten):
        body = shorten(customShortCode="abc")
        assert body["shortCode"] == "abc"
        assert body["isCustom"] is True

    def test_utm_params_merged_into_target(self, shorten):
        body = shorten(
            "https://example.com/?utm_source=old",
            utmParams={"source": "newsletter", "medium": "email"},
        )
        query = parse_qsl(urlsplit(body["originalUrl"]).query)
        assert query == [("utm_source", "newsletter"), ("utm_medium", "email")]

    def test_requires_token(self, client):
        resp = client.post("/api/shorten", json={"url": "https://example.com"})
        assert resp.status_code == 401
        assert resp.json()["code"] == "authentication_error"

    def test_rejects_invalid_token(self, client, auth_headers):
        resp = client.post(
            "/api/shorten",
            json={"url": "https://example.com"},
            headers=auth_headers("forged"),
        )
        assert resp.status_code == 401

    @pytest.mark.parametrize(
        "payload, message",
        [
            ({}, "URL is required"),
            ({"url": "not a url"}, "Invalid URL"),
            ({"url": "https://l.test/loop"}, "Invalid URL"),
            (
                {"url": "https://example.com", "customShortCode": "ab"},
                "Custom short code must be at least 3 characters",
            ),
            (
                {"url": "https://example.com", "customShortCode": "ab$"},
                "Custom short code can only contain letters, numbers, hyphens, and underscores",
            ),
        ],
        ids=["missing_url", "malformed_url", "own_domain", "short_code", "bad_charset"],
    )
    def test_validation_errors(self, client, auth_headers, payload, message):
        resp = client.post("/api/shorten", json=payload, headers=auth_headers())
        assert resp.status_code == 400
        assert resp.json()["error"] == message

    @pytest.mark.parametrize("code", ["health", "docs", "api"])
    def test_reserved_custom_code(self, client, auth_headers, code):
        resp = client.post(
            "/api/shorten",
            json={"url": "https://example.com", "customShortCode": code},
            headers=auth_headers(),
        )
        assert resp.status_code == 400
        assert resp.json()["code"] == "validation_error"
        assert resp.json()["error"] == "This custom short code is reserved"

    def test_custom_code_conflict(self, client, shorten, auth_headers):
        shorten(customShortCode="taken")
        resp = client.post(
            "/api/shorten",
            json={"url": "https://other.example", "customShortCode": "taken"},
            headers=auth_headers("bob-token"),
        )
        assert resp.status_code == 409
        assert resp.json()["error"] == "This custom short code is already taken"


# ── GET /api/user/links ───────────────────────────────────────────────────────


class TestUserLinks:
    def test_lists_only_own_links(self, client, shorten, auth_headers):
        first = shorten("https://example.com/1")
        shorten("https://example.com/bob", token="bob-token")
        second = shorten("https://example.com/2")

        resp = client.get("/api/user/links", headers=auth_headers())

        assert resp.status_code == 200
        links = resp.json()["links"]
        codes = [link["shortCode"] for link in links]
        assert set(codes) == {first["shortCode"], second["shortCode"]}
        assert all(link["analytics"]["clicks"] == 0 for link in links)

    def test_includes_click_counts(self, client, shorten, auth_headers):
        code = shorten()["shortCode"]
        client.get(f"/{code}", follow_redirects=False)
        links = client.get("/api/user/links", headers=auth_headers()).json()["links"]
        assert links[0]["analytics"]["clicks"] == 1

    def test_requires_token(self, client):
        assert client.get("/api/user/links").status_code == 401


# ── DELETE /api/links/{code} ──────────────────────────────────────────────────


class TestDeleteLink:
    def test_owner_deletes(self, client, shorten, auth_headers):
        code = shorten()["shortCode"]
        resp = client.delete(f"/api/links/{code}", headers=auth_headers())
        assert resp.status_code == 200
        assert resp.json() == {"success": True, "message": "Link deleted successfully"}
        assert client.get(f"/{code}", follow_redirects=False).status_code == 404
        assert client.get(f"/api/analytics/{code}").status_code == 404

    def test_other_user_forbidden(self, client, shorten, auth_headers):
        code = shorten()["shortCode"]
        resp = client.delete(f"/api/links/{code}", headers=auth_headers("bob-token"))
        assert resp.status_code == 403
        assert resp.json()["error"] == "You do not have permission to delete this link"
        assert client.get(f"/{code}", follow_redirects=False).status_code == 302

    def test_unknown_code(self, client, auth_headers):
        resp = client.delete("/api/links/missing", headers=auth_headers())
        assert resp.status_code == 404
        assert resp.json()["error"] == "Link not found"

    def test_link_created_during_outage_deletes(
        self, client, shorten, auth_headers, primary_store
    ):
        primary_store.down = True
        code = shorten()["shortCode"]
        resp = client.delete(f"/api/links/{code}", headers=auth_headers())
        assert resp.status_code == 200
        assert resp.json()["success"] is True
        assert client.get(f"/{code}", follow_redirects=False).status_code == 404


# ── Redirects ─────────────────────────────────────────────────────────────────


class TestRedirect:
    def test_redirects_and_counts_click(self, client, shorten):
        body = shorten("https://example.com/landing")
        code = body["shortCode"]

        resp = client.get(
            f"/{code}",
            headers={
                "User-Agent": "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) "
                "Version/17.0 Mobile/15E148 Safari/604.1",
                "Referer": "https://www.google.com/",
                "CF-IPCountry": "IN",
                "CF-IPCity": "Mumbai",
            },
            follow_redirects=False,
        )

        assert resp.status_code == 302
        assert resp.headers["location"] == "https://example.com/landing"
        analytics = client.get(f"/api/analytics/{code}").json()["analytics"]
        assert analytics["clicks"] == 1
        assert analytics["impressions"] == 1
        assert analytics["devices"] == {"Mobile": 1}
        assert analytics["referrers"] == {"Google": 1}
        assert analytics["geographicalData"]["IN"]["cities"] == {"Mumbai": 1}

    def test_utm_source_click_counts_share(self, client, shorten):
        code = shorten()["shortCode"]
        client.get(f"/{code}?utm_source=twitter", follow_redirects=False)
        analytics = client.get(f"/api/analytics/{code}").json()["analytics"]
        assert analytics["shares"] == 1
        assert analytics["referrers"] == {"Twitter": 1}

    def test_unknown_code_is_404(self, client):
        resp = client.get("/nope123", follow_redirects=False)
        assert resp.status_code == 404
        assert resp.json()["error"] == "Link not found"

    def test_head_counts_impression_only(self, client, shorten):
        code = shorten()["shortCode"]
        resp = client.head(f"/{code}")
        assert resp.status_code == 200
        analytics = client.get(f"/api/analytics/{code}").json()["analytics"]
        assert analytics["impressions"] == 1
        assert analytics["clicks"] == 0

    def test_head_unknown_code_still_200(self, client):
        assert client.head("/nope123").status_code == 200

    def test_link_created_during_outage_still_redirects(self, client, shorten, primary_store):
        primary_store.down = True
        code = shorten("https://example.com/outage")["shortCode"]
        resp = client.get(f"/{code}", follow_redirects=False)
        assert resp.status_code == 302
        assert client.get(f"/api/analytics/{code}").json()["analytics"]["clicks"] == 1
