"""Unit tests for InvitationRepository"""

import asyncio
import uuid
from datetime import timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from notecollab.core.errors import AlreadyAccepted, Expired, NotFound
from notecollab.core.models.base import utcnow
from notecollab.core.models.note import Permission
from notecollab.core.repositories import InvitationRepository, NoteRepository
from notecollab.core.schemas.collaborators import Collaborator


@pytest.fixture
def repo(test_session):
    return InvitationRepository(test_session)


@pytest.fixture
def make_invitation(repo, note, alice):
    async def _make(email, expires_in=timedelta(days=7), permission="view", note_id=None):
        return await repo.create_invitation(
            {
                "note_id": note_id or note.id,
                "email": email,
                "token": uuid.uuid4().hex,
                "permission": permission,
                "invited_by": alice.id,
                "expires_at": utcnow() + expires_in,
            }
        )

    return _make


def add(user_id):
    def mutate(note):
        return note.collaborators + [
            Collaborator(user_id=user_id, permission=Permission.VIEW, joined_at=utcnow()).to_record()
        ]

    return mutate


async def test_pending_lists_only_active_newest_first(repo, make_invitation, bob):
    older = await make_invitation(bob.email)
    await make_invitation(bob.email, expires_in=timedelta(seconds=-1))
    newer = await make_invitation(bob.email)

    pending = await repo.list_pending_for_email(bob.email.upper())
    assert [i.id for i in pending] == [newer.id, older.id]


async def test_get_active_for(repo, make_invitation, note, bob):
    assert await repo.get_active_for(note.id, bob.email) is None
    invitation = await make_invitation(bob.email)
    found = await repo.get_active_for(note.id, bob.email)
    assert found.id == invitation.id


async def test_accept_claims_and_adds_collaborator(repo, make_invitation, test_session, bob):
    invitation = await make_invitation(bob.email)

    accepted, note = await repo.accept_invitation(invitation.id, add(bob.id))

    assert accepted.is_accepted
    assert note.find_collaborator(bob.id) is not None
    assert (await repo.get_by_id(invitation.id)).accepted_at is not None
    assert await repo.list_pending_for_email(bob.email) == []


async def test_second_accept_is_rejected(repo, make_invitation, bob):
    invitation = await make_invitation(bob.email)
    await repo.accept_invitation(invitation.id, add(bob.id))

    with pytest.raises(AlreadyAccepted):
        await repo.accept_invitation(invitation.id, add(bob.id))


async def test_concurrent_accepts_add_one_collaborator(make_file_engine, alice, bob):
    engine = await make_file_engine()
    sessions = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with sessions() as session:
        note = await NoteRepository(session).create_note(
            {"title": "Trip", "owner_id": alice.id, "collaborators": []}
        )
        invitation = await InvitationRepository(session).create_invitation(
            {
                "note_id": note.id,
                "email": bob.email,
                "token": uuid.uuid4().hex,
                "permission": "view",
                "invited_by": alice.id,
                "expires_at": utcnow() + timedelta(days=7),
            }
        )
        note_id, invitation_id = note.id, invitation.id

    async def accept():
        # each caller gets its own session and connection
        async with sessions() as session:
            try:
                await InvitationRepository(session).accept_invitation(invitation_id, add(bob.id))
            except AlreadyAccepted:
                return "already"
            return "ok"

    results = await asyncio.gather(*(accept() for _ in range(3)))

    assert sorted(results) == ["already", "already", "ok"]
    async with sessions() as session:
        stored = await NoteRepository(session).get_by_id(note_id)
        claimed = await InvitationRepository(session).get_by_id(invitation_id)
    assert len(stored.collaborators) == 1
    assert stored.find_collaborator(bob.id) is not None
    assert claimed.accepted_at is not None


async def test_expired_invitation_cannot_be_accepted(repo, make_invitation, test_session, note, bob):
    invitation = await make_invitation(bob.email, expires_in=timedelta(seconds=-1))
    invitation_id, note_id = invitation.id, note.id

    with pytest.raises(Expired):
        await repo.accept_invitation(invitation_id, add(bob.id))
    # the failed accept rolled back, so only use plain ids from here
    stored = await NoteRepository(test_session).get_by_id(note_id)
    assert stored.collaborators == []


async def test_accept_missing_invitation(repo):
    with pytest.raises(NotFound):
        await repo.accept_invitation(uuid.uuid4(), add(uuid.uuid4()))


async def test_failed_collaborator_write_leaves_invitation_unclaimed(repo, make_invitation, bob):
    invitation = await make_invitation(bob.email)
    invitation_id = invitation.id

    def broken(note):
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        await repo.accept_invitation(invitation_id, broken)
    assert (await repo.get_by_id(invitation_id)).accepted_at is None


async def test_update_pending_permission_skips_accepted(repo, make_invitation, note, bob):
    invitation = await make_invitation(bob.email)
    assert await repo.update_pending_permission(note.id, bob.email, "edit") == 1
    assert (await repo.get_by_id(invitation.id)).permission == "edit"

    await repo.accept_invitation(invitation.id, add(bob.id))
    assert await repo.update_pending_permission(note.id, bob.email, "view") == 0


async def test_deletes(repo, make_invitation, note, bob, carol):
    first = await make_invitation(bob.email)
    await make_invitation(bob.email, expires_in=timedelta(seconds=-1))
    kept = await make_invitation(carol.email)

    assert await repo.delete_invitation(first.id) is True
    assert await repo.delete_invitation(first.id) is False
    assert await repo.delete_for_note_email(note.id, bob.email) == 1
    assert [i.id for i in await repo.list_active_for_note(note.id)] == [kept.id]
