"""Tests for the /api/v1/chat endpoints and /health."""

from __future__ import annotations

from unittest.mock import patch

from fastapi.testclient import TestClient

MESSAGES = "/api/v1/chat/messages"


class TestInit:
    def test_init_ack(self, client):
        resp = client.post("/api/v1/chat/init", json={"userId": "u-1", "username": "alice"})
        assert resp.status_code == 200
        assert resp.json() == {"success": True, "message": "Session initialized", "userId": "u-1"}

    def test_init_accepts_optional_fields(self, client):
        resp = client.post(
            "/api/v1/chat/init",
            json={"userId": 77, "username": "alice", "displayName": "Al", "channelId": 5},
        )
        assert resp.status_code == 200
        assert resp.json()["userId"] == "77"

    def test_init_missing_fields(self, client):
        resp = client.post("/api/v1/chat/init", json={"username": "alice"})
        assert resp.status_code == 400
        assert resp.json()["success"] is False


class TestSend:
    def test_send_returns_message_data(self, client, send):
        resp = send(client, userId="u1", displayName="Alice", message="hello")
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["message"] == "Message sent"
        data = body["messageData"]
        assert data["userId"] == "u1"
        assert data["username"] == "alice"
        assert data["displayName"] == "Alice"
        assert data["message"] == "hello"
        assert data["channelClass"] == "global"
        assert data["channelId"] is None
        assert isinstance(data["timestamp"], int)
        assert data["id"].startswith(f"{data['timestamp']}-")

    def test_send_missing_message(self, client):
        resp = client.post("/api/v1/chat/send", json={"username": "alice"})
        assert resp.status_code == 400
        assert resp.json()["error"] == "bad_request"

    def test_send_missing_username(self, client):
        resp = client.post("/api/v1/chat/send", json={"message": "hi"})
        assert resp.status_code == 400

    def test_send_too_long(self, client, send):
        resp = send(client, message="x" * 501)
        assert resp.status_code == 400
        assert "too long" in resp.json()["detail"]

    def test_local_without_channel_id_stores_nothing(self, client, send):
        resp = send(client, channelClass="local")
        assert resp.status_code == 400
        assert client.app.state.channel_store.local_channel_count == 0
        assert client.get(MESSAGES).json()["messages"] == []

    def test_malformed_body_is_400(self, client):
        resp = client.post(
            "/api/v1/chat/send",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )
        assert resp.status_code == 400
        assert resp.json()["error"] == "validation_error"

    def test_wrong_type_is_400(self, client):
        resp = client.post("/api/v1/chat/send", json={"username": "a", "message": {"x": 1}})
        assert resp.status_code == 400

    def test_html_escaped(self, client, send):
        data = send(client, message="<b>hi</b>").json()["messageData"]
        assert data["message"] == "&lt;b&gt;hi&lt;/b&gt;"


class TestFetch:
    def test_scenario_local_and_global_isolation(self, client, send):
        send(client, username="A", message="hi", channelClass="local", channelId="42")
        send(client, username="B", message="yo", channelClass="global")

        local = client.get(MESSAGES, params={"channelClass": "local", "channelId": "42", "after": 0})
        glob = client.get(MESSAGES, params={"channelClass": "global", "after": 0})

        assert [m["username"] for m in local.json()["messages"]] == ["A"]
        assert [m["username"] for m in glob.json()["messages"]] == ["B"]
        assert local.json()["count"] == 1

    def test_other_local_channel_sees_nothing(self, client, send):
        send(client, channelClass="local", channelId="42")
        resp = client.get(MESSAGES, params={"channelClass": "local", "channelId": "43"})
        assert resp.status_code == 200
        assert resp.json() == {"success": True, "messages": [], "count": 0}

    def test_numeric_channel_id_matches_query_string(self, client, send):
        send(client, channelClass="local", channelId=42)
        resp = client.get(MESSAGES, params={"channelClass": "local", "channelId": "42"})
        assert resp.json()["count"] == 1
        assert resp.json()["messages"][0]["channelId"] == "42"

    def test_unicode_digit_channel_id_is_opaque(self, client, send):
        resp = send(client, channelClass="local", channelId="²")
        assert resp.status_code == 200
        assert resp.json()["messageData"]["channelId"] == "²"

        fetched = client.get(MESSAGES, params={"channelClass": "local", "channelId": "²"})
        assert fetched.status_code == 200
        assert fetched.json()["count"] == 1

    def test_overlong_channel_id_is_400(self, client, send):
        resp = send(client, channelClass="local", channelId="9" * 5000)
        assert resp.status_code == 400
        assert resp.json()["detail"] == "channelId is too long"
        assert client.app.state.channel_store.local_channel_count == 0

        fetched = client.get(MESSAGES, params={"channelClass": "local", "channelId": "x" * 200})
        assert fetched.status_code == 400

    def test_legacy_field_names(self, client, send):
        send(client, chatType="local", serverId="job-abc")
        resp = client.get(MESSAGES, params={"chatType": "local", "serverId": "job-abc"})
        assert resp.json()["count"] == 1

    def test_local_fetch_without_channel_id_is_400(self, client):
        resp = client.get(MESSAGES, params={"channelClass": "local"})
        assert resp.status_code == 400

    def test_unknown_channel_class_is_400(self, client):
        resp = client.get(MESSAGES, params={"channelClass": "team"})
        assert resp.status_code == 400

    def test_after_filters_and_orders(self, client, send):
        stamps = [send(client, userId=f"u{i}", message=f"m{i}").json()["messageData"]["timestamp"] for i in range(4)]
        resp = client.get(MESSAGES, params={"after": stamps[1]})
        got = [m["timestamp"] for m in resp.json()["messages"]]
        assert got == stamps[2:]
        assert got == sorted(got)

    def test_limit_keeps_newest(self, client, send):
        for i in range(5):
            send(client, userId=f"u{i}", message=f"m{i}")
        resp = client.get(MESSAGES, params={"limit": 2})
        assert [m["message"] for m in resp.json()["messages"]] == ["m3", "m4"]

    def test_bad_limit_is_400(self, client):
        assert client.get(MESSAGES, params={"limit": "lots"}).status_code == 400

    def test_repeat_fetch_identical(self, client, send):
        send(client, message="a")
        send(client, message="b")
        first = client.get(MESSAGES, params={"after": 0, "limit": 10}).json()
        second = client.get(MESSAGES, params={"after": 0, "limit": 10}).json()
        assert first == second

    def test_capacity_scenario_151_over_http(self, make_client, send):
        with make_client(MAX_FETCH_LIMIT="200", SEND_RATE_LIMIT="1000", GENERAL_RATE_LIMIT="1000") as c:
            first = None
            for i in range(151):
                resp = send(c, message=f"m{i}", channelClass="local", channelId="srv")
                assert resp.status_code == 200
                first = first or resp.json()["messageData"]["id"]
            resp = c.get(MESSAGES, params={"channelClass": "local", "channelId": "srv", "after": 0, "limit": 200})
        messages = resp.json()["messages"]
        assert len(messages) == 150
        assert first not in [m["id"] for m in messages]


class TestDeploymentDefault:
    def test_local_default_profile(self, make_client, send):
        with make_client(DEFAULT_CHANNEL_CLASS="local") as c:
            assert send(c, channelId="9").json()["messageData"]["channelClass"] == "local"
            assert send(c).status_code == 400
            assert c.get(MESSAGES, params={"channelId": "9"}).json()["count"] == 1
            assert c.get(MESSAGES).status_code == 400


class TestErrors:
    def test_internal_error_is_generic(self, app):
        with TestClient(app, raise_server_exceptions=False) as c:
            with patch.object(
                app.state.relay_service, "fetch", side_effect=RuntimeError("10.9.8.7 exploded")
            ):
                resp = c.get(MESSAGES)
        assert resp.status_code == 500
        assert resp.json() == {"success": False, "error": "internal_error", "detail": "Internal server error"}
        assert "10.9.8.7" not in resp.text

    def test_store_fault_on_send_is_500(self, client, send):
        store = client.app.state.channel_store
        with patch.object(store, "append", side_effect=RuntimeError("boom")):
            resp = send(client)
        assert resp.status_code == 500
        assert resp.json()["detail"] == "Internal server error"


class TestHealth:
    def test_health(self, client, send):
        send(client, channelClass="local", channelId="1")
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok", "version": "0.1.0", "localChannels": 1}

    def test_cors_headers(self, client):
        resp = client.get("/health", headers={"Origin": "https://game.example"})
        assert resp.headers["access-control-allow-origin"] == "*"
