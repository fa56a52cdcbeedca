"""Unit tests for the realtime and presence WebSocket routers."""

import asyncio
import uuid

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from notecollab.api.realtime import invitations_for, notes_for, pump_changes
from notecollab.core.realtime import DELETE, INSERT, UPDATE, ChangeEvent, RealtimeHub, get_realtime_hub
from notecollab.core.redis_client import RedisClient
from notecollab.database import get_db_session
from notecollab.main import app
from notecollab.security.jwt import create_identity_token


@pytest.fixture
def ws_hub():
    return RealtimeHub(redis_client=RedisClient())


@pytest.fixture
def ws_client(ws_hub):
    app.dependency_overrides[get_realtime_hub] = lambda: ws_hub
    # rejected connections never reach the store
    app.dependency_overrides[get_db_session] = lambda: None
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestPredicates:
    def test_invitations_match_email_case_insensitively(self):
        predicate = invitations_for("Bob@Example.com")
        assert predicate(ChangeEvent("invitations", INSERT, {"email": "bob@example.com"}))
        assert not predicate(ChangeEvent("invitations", INSERT, {"email": "carol@example.com"}))
        assert predicate(ChangeEvent("invitations", DELETE, {"id": "i"}, {"email": "bob@example.com"}))

    def test_notes_match_owner_and_collaborators(self):
        owner, member, stranger = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
        record = {"user_id": str(owner), "collaborators": [{"user_id": str(member)}]}
        change = ChangeEvent("notes", UPDATE, record)

        assert notes_for(owner)(change)
        assert notes_for(member)(change)
        assert not notes_for(stranger)(change)

    def test_removed_member_still_sees_the_removal(self):
        owner, removed = uuid.uuid4(), uuid.uuid4()
        change = ChangeEvent(
            "notes",
            UPDATE,
            {"user_id": str(owner), "collaborators": []},
            old_record={"user_id": str(owner), "collaborators": [{"user_id": str(removed)}]},
        )
        assert notes_for(removed)(change)


def test_change_feed_requires_token(ws_client):
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with ws_client.websocket_connect("/api/realtime/ws"):
            pass
    assert exc_info.value.code == 1008


def test_change_feed_releases_subscriptions(ws_client, ws_hub):
    token = create_identity_token(uuid.uuid4(), "bob@example.com")

    with ws_client.websocket_connect(f"/api/realtime/ws?token={token}") as ws:
        ws.send_text("ping")

    assert ws_hub._change_subs.get("notes", []) == []
    assert ws_hub._change_subs.get("invitations", []) == []


def test_presence_feed_requires_token(ws_client):
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with ws_client.websocket_connect(f"/api/notes/{uuid.uuid4()}/presence/ws"):
            pass
    assert exc_info.value.code == 1008


class KeepaliveSocket:
    """Client that keeps sending keepalives until it has seen ``expected`` messages."""

    def __init__(self, expected):
        self.expected = expected
        self.sent = []
        self.keepalives = 0

    async def receive_text(self):
        await asyncio.sleep(0)
        if len(self.sent) >= self.expected:
            raise WebSocketDisconnect(code=1000)
        self.keepalives += 1
        return "ping"

    async def send_json(self, data):
        self.sent.append(data)


async def test_changes_survive_interleaved_keepalives():
    queue = asyncio.Queue()
    socket = KeepaliveSocket(expected=30)

    async def produce():
        for index in range(30):
            queue.put_nowait({"index": index})
            await asyncio.sleep(0)

    producer = asyncio.create_task(produce())
    with pytest.raises(WebSocketDisconnect):
        await asyncio.wait_for(pump_changes(socket, queue), timeout=5)
    await producer

    assert [message["index"] for message in socket.sent] == list(range(30))
    assert socket.keepalives > 0
    assert queue.empty()
