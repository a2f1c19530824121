"""
Tests for the HTTP and websocket surface, using FastAPI's TestClient.
"""

import asyncio

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from briefing.application.api.api_server import create_app
from briefing.infrastructure.config import BriefingSettings
from tests.factories import topic_payload

SESSIONS = "/api/v1/briefing/sessions"


def create_session(client, session_id="s1", topics=None):
    topics = topics or [topic_payload("Work", ["w1", "w2"]), topic_payload("Newsletters", ["n1"])]
    return client.post(SESSIONS, json={"user_id": "user-1", "session_id": session_id, "topics": topics})


class TestSessionRoutes:

    def test_create_session(self, client):
        response = create_session(client)

        assert response.status_code == 201
        body = response.json()
        assert body["session_id"] == "s1"
        assert body["websocket_url"] == "/ws/briefing/s1"
        assert body["progress"]["remaining"] == 3
        assert "(item_id: w1)" in body["cursor_context"]

    def test_generated_session_id(self, client):
        response = client.post(SESSIONS, json={"user_id": "user-1", "topics": []})
        assert response.status_code == 201
        assert response.json()["session_id"]

    def test_flagged_alias_is_accepted(self, client):
        create_session(client, topics=[topic_payload("Work", ["w1"], isFlagged=True)])
        context = client.get(f"{SESSIONS}/s1/progress").json()["cursor_context"]
        assert "[FLAGGED]" in context

    def test_duplicate_session(self, client):
        create_session(client)
        assert create_session(client).status_code == 409

    def test_unknown_session(self, client):
        assert client.get(f"{SESSIONS}/missing/progress").status_code == 404
        assert client.post(f"{SESSIONS}/missing/tools", json={"tool": "next_item"}).status_code == 404
        assert client.delete(f"{SESSIONS}/missing").status_code == 404

    def test_tool_call(self, client):
        create_session(client)
        response = client.post(f"{SESSIONS}/s1/tools", json={"tool": "next_item"})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["tool"] == "next_item"
        assert "(item_id: w2)" in body["cursor_context"]

    def test_invalid_tool_call_is_a_failed_result(self, client):
        create_session(client)
        body = client.post(f"{SESSIONS}/s1/tools", json={"tool": "go_back", "arguments": {"steps": -2}}).json()
        assert body["success"] is False
        assert body["message"].startswith("Invalid arguments for go_back")

    def test_action_uses_provider(self, client, provider):
        create_session(client)
        body = client.post(f"{SESSIONS}/s1/tools", json={"tool": "archive_email"}).json()
        assert body["success"] is True
        provider.archive.assert_awaited_once_with("w1")

    def test_merge_topics(self, client):
        create_session(client)
        response = client.post(
            f"{SESSIONS}/s1/topics",
            json={"topics": [topic_payload("Work", ["w3", "w1"]), topic_payload("Finance", ["f1"])]},
        )

        body = response.json()
        assert body["merge"]["new_items"] == 2
        assert body["merge"]["duplicate_items"] == 1
        assert body["merge"]["merged_topics"] == ["Work"]
        assert body["merge"]["new_topics"] == ["Finance"]
        assert body["progress"]["remaining"] == 5

    def test_progress(self, client):
        create_session(client)
        client.post(f"{SESSIONS}/s1/tools", json={"tool": "skip_topic"})

        body = client.get(f"{SESSIONS}/s1/progress").json()
        assert body["progress"]["skipped"] == 2
        assert body["progress"]["topic"] == "Newsletters"
        assert body["compact_reference"].startswith("REMAINING ITEMS")

    def test_end_session_flushes(self, client, memory_store):
        create_session(client)
        client.post(f"{SESSIONS}/s1/tools", json={"tool": "next_item"})

        response = client.delete(f"{SESSIONS}/s1")
        assert response.json() == {"session_id": "s1", "flushed": 1}
        assert client.get(f"{SESSIONS}/s1/progress").status_code == 404
        assert set(asyncio.run(memory_store.get_all("user-1"))) == {"w1"}

    def test_stop_tool_ends_session(self, client):
        create_session(client)
        body = client.post(f"{SESSIONS}/s1/tools", json={"tool": "stop_briefing"}).json()

        assert body["success"] is True
        assert body["data"]["flushed"] == 0
        assert client.get(f"{SESSIONS}/s1/progress").status_code == 404


class TestServiceRoutes:

    def test_health(self, client):
        create_session(client)
        body = client.get("/health").json()
        assert body["status"] == "healthy"
        assert body["active_sessions"] == 1

    def test_tool_schemas(self, client):
        tools = client.get("/api/v1/briefing/tools", params={"category": "navigation"}).json()["tools"]
        names = {tool["function"]["name"] for tool in tools}
        assert "go_back" in names
        assert "archive_email" not in names


class TestWebsocket:

    def test_unknown_session_is_rejected(self, client):
        with pytest.raises(WebSocketDisconnect):
            with client.websocket_connect("/ws/briefing/missing") as websocket:
                websocket.receive_json()

    def test_tool_call_round_trip(self, client):
        create_session(client)

        with client.websocket_connect("/ws/briefing/s1") as websocket:
            assert websocket.receive_json()["type"] == "connection"
            progress = websocket.receive_json()
            assert progress["type"] == "progress"
            assert progress["payload"]["remaining"] == 3

            websocket.send_json({"type": "tool_call", "tool": "next_item", "call_id": "c1"})
            result = websocket.receive_json()

        assert result["type"] == "tool_result"
        assert result["call_id"] == "c1"
        assert result["payload"]["success"] is True
        assert "(item_id: w2)" in result["payload"]["cursor_context"]

    def test_spoken_text_feeds_repeat(self, client):
        create_session(client)

        with client.websocket_connect("/ws/briefing/s1") as websocket:
            websocket.receive_json()
            websocket.receive_json()
            websocket.send_json({"type": "spoken", "text": "First up, a note from Alice."})
            websocket.send_json({"type": "tool_call", "tool": "repeat_that"})
            result = websocket.receive_json()

        assert result["payload"]["message"] == "First up, a note from Alice."

    def test_unsupported_event(self, client):
        create_session(client)

        with client.websocket_connect("/ws/briefing/s1") as websocket:
            websocket.receive_json()
            websocket.receive_json()
            websocket.send_json({"type": "telemetry"})
            error = websocket.receive_json()

        assert error["type"] == "error"
        assert error["error_code"] == "unsupported_event"

    def test_malformed_tool_call(self, client):
        create_session(client)

        with client.websocket_connect("/ws/briefing/s1") as websocket:
            websocket.receive_json()
            websocket.receive_json()
            websocket.send_json({"type": "tool_call"})
            error = websocket.receive_json()

        assert error["error_code"] == "invalid_event"

    def test_non_json_frame_keeps_session_open(self, client):
        create_session(client)

        with client.websocket_connect("/ws/briefing/s1") as websocket:
            websocket.receive_json()
            websocket.receive_json()
            websocket.send_text("not json {")
            error = websocket.receive_json()
            websocket.send_json({"type": "tool_call", "tool": "next_item", "call_id": "c2"})
            result = websocket.receive_json()

        assert error["type"] == "error"
        assert error["error_code"] == "invalid_event"
        assert result["call_id"] == "c2"
        assert result["payload"]["success"] is True

    def test_stop_closes_session(self, client):
        create_session(client)

        with client.websocket_connect("/ws/briefing/s1") as websocket:
            websocket.receive_json()
            websocket.receive_json()
            websocket.send_json({"type": "tool_call", "tool": "stop_briefing"})
            result = websocket.receive_json()
            closing = websocket.receive_json()

        assert result["payload"]["data"]["end_session"] is True
        assert closing["type"] == "connection"
        assert closing["status"] == "disconnected"
        assert client.get(f"{SESSIONS}/s1/progress").status_code == 404


class TestLifespan:

    def test_shutdown_collects_health_check(self, state_manager, provider):
        app = create_app(
            settings=BriefingSettings(log_format="console"),
            state_manager=state_manager,
            email_provider=provider,
        )
        with TestClient(app) as test_client:
            assert test_client.get("/health").status_code == 200
            task = app.state.health_task
            assert task.done() is False

        assert task.cancelled() is True
