"""
Collaborator registry.

The collaborator set lives embedded in the note row. Every write is a
whole-list rewrite guarded by the note version, retried a bounded number of
times when another writer got there first.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ...config import Settings, get_settings
from ..errors import NotFound, Unauthorized
from ..logging import get_logger
from ..models.base import utcnow
from ..models.note import Note, Permission
from ..realtime import UPDATE, RealtimeHub, get_realtime_hub
from ..repositories.invitation_repository import InvitationRepository
from ..repositories.note_repository import NoteRepository
from ..repositories.profile_repository import ProfileRepository
from ..schemas.collaborators import Collaborator
from .access_resolver import AccessResolver
from .interfaces import ICollaboratorRegistry
from .note_service import note_change_record

logger = get_logger("services.collaborators")


def upsert_collaborator_record(
    records: Optional[List[Dict[str, Any]]],
    user_id: UUID,
    permission: Permission,
    now: datetime,
    email: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """Copy of ``records`` with ``user_id`` added, or its permission updated."""
    result: List[Dict[str, Any]] = []
    found = False
    for record in records or []:
        if str(record.get("user_id")) == str(user_id):
            found = True
            changes: Dict[str, Any] = {"permission": permission, "updated_at": now}
            if email:
                changes["email"] = email
            record = Collaborator.from_record(record).model_copy(update=changes).to_record()
        result.append(record)

    if not found:
        result.append(
            Collaborator(
                user_id=user_id, permission=permission, joined_at=now, email=email
            ).to_record()
        )
    return result


def without_collaborator(
    records: Optional[List[Dict[str, Any]]], user_id: UUID
) -> Optional[List[Dict[str, Any]]]:
    """Copy of ``records`` minus ``user_id``; None if it was not there."""
    remaining = [r for r in records or [] if str(r.get("user_id")) != str(user_id)]
    if len(remaining) == len(records or []):
        return None
    return remaining


class CollaboratorRegistry(ICollaboratorRegistry):
    """Adds, removes and re-permissions collaborators on a note."""

    def __init__(
        self,
        session: AsyncSession,
        hub: Optional[RealtimeHub] = None,
        settings: Optional[Settings] = None,
    ):
        self.session = session
        self.settings = settings or get_settings()
        self.note_repo = NoteRepository(session)
        self.invitation_repo = InvitationRepository(session)
        self.profile_repo = ProfileRepository(session)
        self.access = AccessResolver(self.settings)
        self.hub = hub or get_realtime_hub()

    async def add_or_update(
        self,
        note_id: UUID,
        user_id: UUID,
        permission: Permission,
        caller_id: Optional[UUID] = None,
        email: Optional[str] = None,
    ) -> Collaborator:
        """Grant ``permission`` to ``user_id``. Only the owner may call this."""
        note = await self._get_note(note_id)
        if caller_id is not None and not self.access.is_owner(note, caller_id):
            raise Unauthorized("Only the owner can manage collaborators")
        if note.is_owned_by(user_id):
            raise Unauthorized("The owner cannot be added as a collaborator")

        before = note_change_record(note)
        now = utcnow()
        email = email.strip().lower() if email else None

        note = await self._rewrite(
            note_id,
            lambda current: upsert_collaborator_record(
                current.collaborators, user_id, permission, now, email
            ),
        )
        logger.info(
            "Collaborator saved",
            extra={"note_id": str(note_id), "user_id": str(user_id), "permission": permission.value},
        )
        await self.hub.publish_change("notes", UPDATE, note_change_record(note), old_record=before)
        return Collaborator.from_record(note.find_collaborator(user_id))

    async def remove(self, note_id: UUID, user_id: UUID, caller_id: UUID) -> bool:
        """Remove a collaborator; the owner can remove anyone, others only themselves.

        Returns False when ``user_id`` was not a collaborator (nothing to do).
        """
        note = await self._get_note(note_id)
        if not (self.access.is_owner(note, caller_id) or caller_id == user_id):
            raise Unauthorized("Only the owner can remove other collaborators")

        entry = note.find_collaborator(user_id)
        if entry is None:
            return False

        email = await self.resolve_email(entry)
        before = note_change_record(note)
        note = await self._rewrite(
            note_id, lambda current: without_collaborator(current.collaborators, user_id)
        )
        logger.info(
            "Collaborator removed",
            extra={"note_id": str(note_id), "user_id": str(user_id), "caller_id": str(caller_id)},
        )
        await self.hub.publish_change("notes", UPDATE, note_change_record(note), old_record=before)

        if email:
            await self._delete_invitations(note_id, email)
        return True

    async def update_permission(
        self, note_id: UUID, user_id: UUID, permission: Permission, caller_id: UUID
    ) -> Collaborator:
        """Change a collaborator's permission. Owner only."""
        note = await self._get_note(note_id)
        if not self.access.is_owner(note, caller_id):
            raise Unauthorized("Only the owner can change permissions")

        entry = note.find_collaborator(user_id)
        if entry is None:
            raise NotFound("User is not a collaborator on this note")

        email = await self.resolve_email(entry)
        before = note_change_record(note)
        now = utcnow()

        def change(current: Note) -> Optional[List[Dict[str, Any]]]:
            if current.find_collaborator(user_id) is None:
                raise NotFound("User is not a collaborator on this note")
            return upsert_collaborator_record(current.collaborators, user_id, permission, now)

        note = await self._rewrite(note_id, change)
        logger.info(
            "Collaborator permission changed",
            extra={"note_id": str(note_id), "user_id": str(user_id), "permission": permission.value},
        )
        await self.hub.publish_change("notes", UPDATE, note_change_record(note), old_record=before)

        if email:
            await self._update_pending_invitations(note_id, email, permission)
        return Collaborator.from_record(note.find_collaborator(user_id))

    async def list(self, note_id: UUID, caller_id: UUID) -> List[Collaborator]:
        """Collaborators of a note, for anyone who can see it."""
        note = await self.note_repo.get_by_id(note_id)
        self.access.require(note, caller_id)
        collaborators = []
        for entry in note.collaborators or []:
            collaborator = Collaborator.from_record(entry)
            if collaborator.email is None:
                collaborator.email = await self.profile_repo.get_email(collaborator.user_id)
            collaborators.append(collaborator)
        return collaborators

    async def resolve_email(self, entry: Dict[str, Any]) -> Optional[str]:
        """Email recorded at acceptance time, else the identity provider's answer."""
        if entry.get("email"):
            return entry["email"]
        return await self.profile_repo.get_email(UUID(str(entry["user_id"])))

    async def _get_note(self, note_id: UUID) -> Note:
        note = await self.note_repo.get_by_id(note_id)
        if note is None:
            raise NotFound("Note not found")
        return note

    async def _rewrite(self, note_id: UUID, mutate) -> Note:
        note = await self.note_repo.rewrite_collaborators(
            note_id, mutate, retries=self.settings.collaborator_write_retries
        )
        if note is None:
            raise NotFound("Note not found")
        return note

    async def _delete_invitations(self, note_id: UUID, email: str) -> None:
        try:
            await self.invitation_repo.delete_for_note_email(note_id, email)
        except SQLAlchemyError:
            await self.session.rollback()
            logger.warning(
                "Could not delete invitations for removed collaborator",
                extra={"note_id": str(note_id), "email": email},
                exc_info=True,
            )

    async def _update_pending_invitations(
        self, note_id: UUID, email: str, permission: Permission
    ) -> None:
        try:
            await self.invitation_repo.update_pending_permission(note_id, email, permission.value)
        except SQLAlchemyError:
            await self.session.rollback()
            logger.warning(
                "Could not update pending invitation permission",
                extra={"note_id": str(note_id), "email": email},
                exc_info=True,
            )
