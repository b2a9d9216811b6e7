"""Integration tests for the live dashboard WebSocket channel (WS /ws)."""

from routes.realtime_routes import SUBSCRIBE_ERROR


class TestRealtimeChannel:
    def test_subscribe_ack(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.send_json({"event": "subscribe", "data": "abc1234"})
            assert ws.receive_json() == {
                "event": "subscribed",
                "data": {"topic": "analytics:abc1234"},
            }

    def test_click_pushed_to_link_subscribers(self, client, shorten):
        code = shorten()["shortCode"]
        with client.websocket_connect("/ws") as ws:
            ws.send_json({"event": "subscribe", "data": code})
            ws.receive_json()

            client.get(f"/{code}", follow_redirects=False)

            message = ws.receive_json()
            assert message["event"] == f"analytics:{code}"
            assert message["data"]["type"] == "click"
            assert message["data"]["data"]["clicks"] == 1

    def test_impression_pushed(self, client, shorten):
        code = shorten()["shortCode"]
        with client.websocket_connect("/ws") as ws:
            ws.send_json({"event": "subscribe", "data": code})
            ws.receive_json()

            client.post(f"/api/track/impression/{code}")

            message = ws.receive_json()
            assert message["data"]["type"] == "impression"
            assert message["data"]["data"]["impressions"] == 1

    def test_global_rollup_pushed_after_click(self, client, shorten):
        code = shorten()["shortCode"]
        with client.websocket_connect("/ws") as ws:
            ws.send_json({"event": "subscribe-global-analytics"})
            assert ws.receive_json()["data"] == {"topic": "global-analytics"}

            client.get(f"/{code}", follow_redirects=False)

            message = ws.receive_json()
            assert message["event"] == "analytics-update"
            assert message["data"]["stats"]["totalClicks"] == 1

    def test_empty_code_rejected(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.send_json({"event": "subscribe", "data": "  "})
            assert ws.receive_json() == {"event": "error", "data": {"message": SUBSCRIBE_ERROR}}

    def test_malformed_frame(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.send_text("not json")
            assert ws.receive_json()["event"] == "error"

    def test_unknown_event(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.send_json({"event": "dance"})
            assert ws.receive_json()["data"]["message"] == "Unknown event: dance"

    def test_unsubscribe_stops_updates(self, client, shorten):
        code = shorten()["shortCode"]
        with client.websocket_connect("/ws") as ws:
            ws.send_json({"event": "subscribe", "data": code})
            ws.receive_json()
            ws.send_json({"event": "unsubscribe", "data": code})
            assert ws.receive_json()["event"] == "unsubscribed"

            client.get(f"/{code}", follow_redirects=False)
            ws.send_json({"event": "subscribe", "data": "other"})

            # The next frame is the ack, not a click update
            assert ws.receive_json()["event"] == "subscribed"
