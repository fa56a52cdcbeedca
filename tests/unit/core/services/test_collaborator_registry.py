"""Unit tests for CollaboratorRegistry"""

import uuid

import pytest
from sqlalchemy.exc import OperationalError

from notecollab.core.errors import NotFound, Unauthorized
from notecollab.core.models.base import utcnow
from notecollab.core.models.note import Permission
from notecollab.core.realtime import UPDATE
from notecollab.core.repositories import InvitationRepository
from notecollab.core.services import CollaboratorRegistry, InvitationService
from notecollab.core.services.collaborator_registry import (
    upsert_collaborator_record,
    without_collaborator,
)


@pytest.fixture
def registry(test_session, hub, test_settings):
    return CollaboratorRegistry(test_session, hub=hub, settings=test_settings)


@pytest.fixture
def invitations(test_session, hub, test_settings):
    return InvitationService(test_session, hub=hub, settings=test_settings)


class TestRecordHelpers:
    def test_upsert_appends_then_updates(self):
        user_id = uuid.uuid4()
        first = upsert_collaborator_record([], user_id, Permission.VIEW, utcnow(), email="b@example.com")
        assert first[0]["user_id"] == str(user_id)
        assert first[0]["permission"] == "view"

        second = upsert_collaborator_record(first, user_id, Permission.EDIT, utcnow())
        assert len(second) == 1
        assert second[0]["permission"] == "edit"
        assert second[0]["email"] == "b@example.com"
        assert second[0]["joined_at"] == first[0]["joined_at"]
        assert first[0]["permission"] == "view"

    def test_without_collaborator(self):
        keep, drop = uuid.uuid4(), uuid.uuid4()
        records = [{"user_id": str(keep)}, {"user_id": str(drop)}]
        assert without_collaborator(records, drop) == [{"user_id": str(keep)}]
        assert without_collaborator(records, uuid.uuid4()) is None


class TestAddOrUpdate:
    async def test_owner_adds_collaborator(self, registry, note, alice, bob, hub):
        events = []
        hub.subscribe_changes("notes", events.append)

        collaborator = await registry.add_or_update(
            note.id, bob.id, Permission.EDIT, caller_id=alice.id, email="Bob@Example.com"
        )

        assert collaborator.user_id == bob.id
        assert collaborator.permission is Permission.EDIT
        assert collaborator.email == "bob@example.com"
        assert events[-1].event == UPDATE
        assert events[-1].old_record["collaborators"] == []

    async def test_non_owner_cannot_add(self, registry, note, bob, carol):
        with pytest.raises(Unauthorized):
            await registry.add_or_update(note.id, carol.id, Permission.VIEW, caller_id=bob.id)

    async def test_owner_cannot_be_collaborator(self, registry, note, alice):
        with pytest.raises(Unauthorized):
            await registry.add_or_update(note.id, alice.id, Permission.VIEW, caller_id=alice.id)

    async def test_missing_note(self, registry, alice, bob):
        with pytest.raises(NotFound):
            await registry.add_or_update(uuid.uuid4(), bob.id, Permission.VIEW, caller_id=alice.id)


class TestRemove:
    async def test_owner_removes_and_invitations_are_cleared(
        self, registry, invitations, test_session, note, alice, bob
    ):
        invitation = await invitations.create_invitation(note.id, bob.email, Permission.VIEW, alice.id)
        await invitations.accept_invitation(invitation.id, bob.id, bob.email)

        assert await registry.remove(note.id, bob.id, alice.id) is True
        assert (await registry.list(note.id, alice.id)) == []
        assert await InvitationRepository(test_session).get_by_id(invitation.id) is None

    async def test_collaborator_removes_self(self, registry, note, alice, bob):
        await registry.add_or_update(note.id, bob.id, Permission.VIEW, caller_id=alice.id)
        assert await registry.remove(note.id, bob.id, bob.id) is True

    async def test_collaborator_cannot_remove_others(self, registry, note, alice, bob, carol):
        await registry.add_or_update(note.id, bob.id, Permission.EDIT, caller_id=alice.id)
        await registry.add_or_update(note.id, carol.id, Permission.VIEW, caller_id=alice.id)
        with pytest.raises(Unauthorized):
            await registry.remove(note.id, carol.id, bob.id)

    async def test_removing_non_collaborator_is_a_no_op(self, registry, note, alice, bob):
        version = note.version
        assert await registry.remove(note.id, bob.id, alice.id) is False
        assert note.version == version

    async def test_invitation_cleanup_failure_does_not_undo_removal(
        self, registry, note, alice, bob, monkeypatch
    ):
        await registry.add_or_update(
            note.id, bob.id, Permission.VIEW, caller_id=alice.id, email=bob.email
        )
        note_id = note.id

        async def broken(*args, **kwargs):
            raise OperationalError("DELETE", {}, Exception("store down"))

        monkeypatch.setattr(registry.invitation_repo, "delete_for_note_email", broken)

        assert await registry.remove(note_id, bob.id, alice.id) is True
        assert await registry.list(note_id, alice.id) == []


class TestUpdatePermission:
    async def test_owner_changes_permission_and_pending_invitation(
        self, registry, invitations, test_session, note, alice, bob
    ):
        await registry.add_or_update(
            note.id, bob.id, Permission.VIEW, caller_id=alice.id, email=bob.email
        )
        # a leftover pending invitation for the same person follows the change
        pending = await InvitationRepository(test_session).create_invitation(
            {
                "note_id": note.id,
                "email": bob.email,
                "token": uuid.uuid4().hex,
                "permission": "view",
                "invited_by": alice.id,
            }
        )

        collaborator = await registry.update_permission(note.id, bob.id, Permission.EDIT, alice.id)

        assert collaborator.permission is Permission.EDIT
        refreshed = await InvitationRepository(test_session).get_by_id(pending.id)
        assert refreshed.permission == "edit"

    async def test_only_owner(self, registry, note, alice, bob):
        await registry.add_or_update(note.id, bob.id, Permission.EDIT, caller_id=alice.id)
        with pytest.raises(Unauthorized):
            await registry.update_permission(note.id, bob.id, Permission.VIEW, bob.id)

    async def test_unknown_collaborator(self, registry, note, alice, bob):
        with pytest.raises(NotFound):
            await registry.update_permission(note.id, bob.id, Permission.EDIT, alice.id)


async def test_list_fills_email_from_profile(registry, note, alice, bob, profiles):
    await registry.add_or_update(note.id, bob.id, Permission.VIEW, caller_id=alice.id)

    collaborators = await registry.list(note.id, bob.id)
    assert [c.email for c in collaborators] == [bob.email]
