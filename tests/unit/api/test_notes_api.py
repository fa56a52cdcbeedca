"""Unit tests for notes API router (notecollab/api/notes.py)."""

import uuid
from typing import Any


def _json_ok(resp) -> dict[str, Any]:
    assert resp.status_code in (200, 201), resp.text
    return resp.json()


async def test_create_and_get_note(async_client, alice):
    payload = {"title": "Standup", "entries": [{"content": "ship it"}]}
    created = _json_ok(await async_client.post("/api/notes/", json=payload, headers=alice.headers))

    assert created["is_owner"] is True
    assert created["permission"] == "edit"
    assert created["entries"][0]["entry_order"] == 0

    fetched = _json_ok(await async_client.get(f"/api/notes/{created['id']}", headers=alice.headers))
    assert fetched["title"] == "Standup"


async def test_create_requires_auth(async_client):
    resp = await async_client.post("/api/notes/", json={"title": "x"})
    assert resp.status_code in (401, 403)


async def test_create_validates_title(async_client, alice):
    resp = await async_client.post("/api/notes/", json={"title": ""}, headers=alice.headers)
    assert resp.status_code == 422


async def test_stranger_gets_not_found(async_client, note, bob):
    resp = await async_client.get(f"/api/notes/{note.id}", headers=bob.headers)
    assert resp.status_code == 404
    assert resp.json()["kind"] == "not_found"


async def test_anonymous_with_share_token(async_client, note, alice):
    link = _json_ok(await async_client.post(f"/api/notes/{note.id}/share-link", headers=alice.headers))
    token = link["url"].split("token=")[1]

    data = _json_ok(await async_client.get(f"/api/notes/{note.id}", params={"token": token}))
    assert data["permission"] == "view"
    assert data["is_owner"] is False


async def test_update_and_delete(async_client, note, alice):
    updated = _json_ok(
        await async_client.put(
            f"/api/notes/{note.id}",
            json={"title": "Weekend", "entries": [{"content": "bread"}]},
            headers=alice.headers,
        )
    )
    assert updated["title"] == "Weekend"
    assert [e["content"] for e in updated["entries"]] == ["bread"]

    resp = await async_client.delete(f"/api/notes/{note.id}", headers=alice.headers)
    assert resp.status_code == 204
    resp = await async_client.get(f"/api/notes/{note.id}", headers=alice.headers)
    assert resp.status_code == 404


async def test_list_notes(async_client, note, alice, bob):
    data = _json_ok(await async_client.get("/api/notes/", headers=alice.headers))
    assert data["total"] == 1
    assert data["notes"][0]["id"] == str(note.id)

    data = _json_ok(await async_client.get("/api/notes/", headers=bob.headers))
    assert data == {"notes": [], "total": 0}


async def test_unknown_note_id(async_client, alice):
    resp = await async_client.get(f"/api/notes/{uuid.uuid4()}", headers=alice.headers)
    assert resp.status_code == 404


async def test_store_failure_is_reported_as_unavailable(async_client, alice, monkeypatch):
    from sqlalchemy.exc import OperationalError

    from notecollab.core.services.note_service import NoteService

    async def broken(self, user_id):
        raise OperationalError("SELECT", {}, Exception("connection refused"))

    monkeypatch.setattr(NoteService, "list_notes", broken, raising=True)

    resp = await async_client.get("/api/notes/", headers=alice.headers)
    assert resp.status_code == 503
    assert resp.json()["kind"] == "store_unavailable"


async def test_error_bodies_are_documented(async_client):
    schema = (await async_client.get("/openapi.json")).json()
    assert "ErrorResponse" in schema["components"]["schemas"]
    responses = schema["paths"]["/api/invitations/{invitation_id}/accept"]["post"]["responses"]
    assert "410" in responses
