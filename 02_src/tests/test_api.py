"""Tests for the HTTP API."""

import asyncio
import base64
import json
from unittest.mock import AsyncMock

import httpx
import pytest
import pytest_asyncio

from borai.api.app import create_fastapi_app
from borai.app import Application
from borai.conversation import TurnInProgressError
from borai.llm import ContentBlockedError, FailureCategory

from conftest import ScriptedProvider


@pytest_asyncio.fixture
async def application():
    app = Application(
        db_path=":memory:",
        llm_provider=ScriptedProvider(
            ["Hi", " there"],
            ["Partial", ContentBlockedError("refused")],
            *[["ok"] for _ in range(5)],
        ),
    )
    # ASGITransport does not run the lifespan
    await app.start()
    yield app
    await app.stop()


@pytest_asyncio.fixture
async def client(application):
    transport = httpx.ASGITransport(app=create_fastapi_app(application))
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest_asyncio.fixture
async def signed_in(client):
    response = await client.post("/api/users/alice/sign-in", json={"display_name": "Alice"})
    assert response.status_code == 200
    return response.json()


def ndjson(response):
    return [json.loads(line) for line in response.text.splitlines() if line]


class TestSessionsAPI:
    @pytest.mark.asyncio
    async def test_sign_in_lists_one_current_session(self, signed_in):
        assert len(signed_in) == 1
        assert signed_in[0]["current"] is True
        assert signed_in[0]["title"] == "New Conversation"
        assert signed_in[0]["message_count"] == 1

    @pytest.mark.asyncio
    async def test_sign_in_rejects_unknown_language(self, client):
        response = await client.post("/api/users/alice/sign-in", json={"language": "xx"})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_not_signed_in(self, client):
        response = await client.get("/api/users/nobody/sessions")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_create_and_list(self, client, signed_in):
        response = await client.post(
            "/api/users/alice/sessions", json={"mode": "tutor"}
        )
        assert response.status_code == 201
        created = response.json()
        assert created["mode"] == "tutor"
        assert created["messages"][0]["id"] == "init-1"

        sessions = (await client.get("/api/users/alice/sessions")).json()
        assert len(sessions) == 2
        assert [s["id"] for s in sessions if s["current"]] == [created["id"]]

    @pytest.mark.asyncio
    async def test_get_unknown_session(self, client, signed_in):
        response = await client.get("/api/users/alice/sessions/missing")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_select_session(self, client, signed_in):
        first_id = signed_in[0]["id"]
        await client.post("/api/users/alice/sessions", json={})

        response = await client.post(f"/api/users/alice/sessions/{first_id}/select")

        assert response.status_code == 200
        assert response.json()["current"] is True

    @pytest.mark.asyncio
    async def test_delete_last_session(self, client, signed_in):
        only_id = signed_in[0]["id"]

        response = await client.delete(f"/api/users/alice/sessions/{only_id}")

        assert response.status_code == 200
        replacement = response.json()
        assert replacement["id"] != only_id
        assert len(replacement["messages"]) == 1

    @pytest.mark.asyncio
    async def test_clear_and_set_mode(self, client, signed_in):
        session_id = signed_in[0]["id"]
        await client.post("/api/users/alice/messages", json={"text": "Hello"})

        cleared = (await client.post(f"/api/users/alice/sessions/{session_id}/clear")).json()
        assert cleared["id"] == session_id
        assert len(cleared["messages"]) == 1

        response = await client.put(
            f"/api/users/alice/sessions/{session_id}/mode", json={"mode": "research"}
        )
        assert response.json()["mode"] == "research"

        response = await client.put(
            f"/api/users/alice/sessions/{session_id}/mode", json={"mode": "poetry"}
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_sign_out(self, client, signed_in):
        response = await client.post("/api/users/alice/sign-out")
        assert response.status_code == 204

        response = await client.get("/api/users/alice/sessions")
        assert response.status_code == 404


class TestMessagingAPI:
    @pytest.mark.asyncio
    async def test_send_message(self, client, signed_in):
        response = await client.post("/api/users/alice/messages", json={"text": "Hello"})

        assert response.status_code == 200
        message = response.json()
        assert message["role"] == "model"
        assert message["text"] == "Hi there"
        assert message["failed"] is False

        session = (
            await client.get(f"/api/users/alice/sessions/{signed_in[0]['id']}")
        ).json()
        assert session["title"] == "Hello"
        assert len(session["messages"]) == 3

    @pytest.mark.asyncio
    async def test_send_image(self, client, signed_in):
        image = base64.b64encode(b"\x89PNG").decode("ascii")
        response = await client.post(
            "/api/users/alice/messages",
            json={"attachments": [{"mime_type": "image/png", "data": image}]},
        )
        assert response.status_code == 200

        session = (
            await client.get(f"/api/users/alice/sessions/{signed_in[0]['id']}")
        ).json()
        assert session["title"] == "Image Query"
        assert session["messages"][1]["attachments"][0]["data"] == image

    @pytest.mark.asyncio
    async def test_empty_message_rejected(self, client, signed_in):
        response = await client.post("/api/users/alice/messages", json={"text": "  "})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_invalid_attachment_rejected(self, client, signed_in):
        response = await client.post(
            "/api/users/alice/messages",
            json={"attachments": [{"mime_type": "image/png", "data": "not base64!"}]},
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_stream_message(self, client, signed_in):
        response = await client.post(
            "/api/users/alice/messages/stream", json={"text": "Hello"}
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/x-ndjson")
        events = ndjson(response)
        assert events[0]["event"] == "turn_started"
        assert events[-1]["event"] == "turn_completed"
        deltas = [e["delta"] for e in events if e["event"] == "message_updated"]
        assert "".join(deltas) == "Hi there"
        assert events[-1]["message"]["text"] == "Hi there"
        assert all(e["session_id"] == signed_in[0]["id"] for e in events)

    @pytest.mark.asyncio
    async def test_stream_failed_turn(self, client, signed_in):
        await client.post("/api/users/alice/messages", json={"text": "Hello"})

        response = await client.post(
            "/api/users/alice/messages/stream", json={"text": "Something"}
        )

        events = ndjson(response)
        assert events[-1]["event"] == "turn_failed"
        assert events[-1]["category"] == "safety"
        text = events[-1]["message"]["text"]
        assert text.startswith("Partial")
        assert text.endswith(f"**{FailureCategory.SAFETY.explanation}**")

    @pytest.mark.asyncio
    async def test_stream_reports_turn_error_in_band(
        self, application, client, signed_in, monkeypatch, caplog
    ):
        workspace = application.workspace("alice")
        monkeypatch.setattr(
            workspace, "submit", AsyncMock(side_effect=TurnInProgressError("busy"))
        )

        response = await client.post(
            "/api/users/alice/messages/stream", json={"text": "Hello"}
        )
        await asyncio.sleep(0)

        assert response.status_code == 200
        assert ndjson(response) == [
            {
                "event": "error",
                "session_id": signed_in[0]["id"],
                "status_code": 409,
                "detail": "busy",
            }
        ]
        assert "Streamed turn" in caplog.text

    @pytest.mark.asyncio
    async def test_stream_unknown_session(self, client, signed_in):
        response = await client.post(
            "/api/users/alice/messages/stream",
            json={"text": "Hello", "session_id": "missing"},
        )
        assert response.status_code == 404


class TestObservabilityAPI:
    @pytest.mark.asyncio
    async def test_trace_events_after_turn(self, client, signed_in):
        await client.post("/api/users/alice/messages", json={"text": "Hello"})

        response = await client.get(
            "/api/trace-events", params={"event_type": "turn_completed"}
        )

        assert response.status_code == 200
        events = response.json()
        assert len(events) == 1
        assert events[0]["actor"] == "conversation_controller"
        assert events[0]["session_id"] == signed_in[0]["id"]
        assert "message" not in events[0]["data"]

    @pytest.mark.asyncio
    async def test_trace_events_for_one_session(self, client, signed_in):
        first_id = signed_in[0]["id"]
        await client.post("/api/users/alice/messages", json={"text": "Hello"})
        await client.post("/api/users/alice/sessions", json={})

        response = await client.get(
            "/api/trace-events",
            params=[
                ("session_id", first_id),
                ("event_type", "turn_started"),
                ("event_type", "turn_completed"),
            ],
        )

        events = response.json()
        assert sorted(e["event_type"] for e in events) == ["turn_completed", "turn_started"]
        assert all(e["session_id"] == first_id for e in events)

    @pytest.mark.asyncio
    async def test_untracked_event_type_rejected(self, client):
        response = await client.get(
            "/api/trace-events", params={"event_type": "message_updated"}
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_invalid_after(self, client):
        response = await client.get("/api/trace-events", params={"after": "yesterday"})
        assert response.status_code == 400
