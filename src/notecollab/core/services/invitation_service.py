"""
Invitation lifecycle.

An invitation is active until it is accepted, declined (row deleted) or its
``expires_at`` passes. Expired invitations are never acted on and never
listed.
"""

from datetime import timedelta
from typing import List, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ...config import Settings, get_settings
from ...security import generate_token
from ..errors import (
    AlreadyAccepted,
    AlreadyCollaborator,
    DuplicateActiveInvitation,
    NotFound,
    Unauthorized,
)
from ..logging import get_logger
from ..models.base import utcnow
from ..models.invitation import Invitation
from ..models.note import Note, Permission
from ..realtime import DELETE, INSERT, UPDATE, RealtimeHub, get_realtime_hub
from ..repositories.invitation_repository import InvitationRepository
from ..repositories.note_repository import NoteRepository
from ..repositories.profile_repository import ProfileRepository
from .access_resolver import AccessResolver
from .collaborator_registry import upsert_collaborator_record
from .interfaces import IInvitationService
from .note_service import note_change_record

logger = get_logger("services.invitations")


def _normalize(email: str) -> str:
    return email.strip().lower()


def invitation_change_record(invitation: Invitation) -> dict:
    """Row image for the ``invitations`` change feed, without the secret token."""
    record = invitation.to_dict()
    record.pop("token", None)
    return record


class InvitationService(IInvitationService):
    """Creates, accepts, declines and lists invitations."""

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

    async def create_invitation(
        self, note_id: UUID, email: str, permission: Permission, invited_by: UUID
    ) -> Invitation:
        """Invite ``email`` to ``note_id`` with ``permission``."""
        email = _normalize(email)
        note = await self.note_repo.get_by_id(note_id)
        if note is None:
            raise NotFound("Note not found")
        if not self.access.can_manage_invitations(note, invited_by):
            raise Unauthorized("You cannot invite collaborators to this note")

        if await self.invitation_repo.get_active_for(note_id, email):
            raise DuplicateActiveInvitation()
        if await self._email_has_access(note, email):
            raise AlreadyCollaborator()

        now = utcnow()
        invitation = await self.invitation_repo.create_invitation(
            {
                "note_id": note_id,
                "email": email,
                "permission": Permission(permission).value,
                "invited_by": invited_by,
                "token": generate_token(32),
                "created_at": now,
                "expires_at": now + timedelta(days=self.settings.invitation_ttl_days),
            }
        )
        logger.info(
            "Invitation created",
            extra={
                "invitation_id": str(invitation.id),
                "note_id": str(note_id),
                "invited_by": str(invited_by),
            },
        )
        await self.hub.publish_change("invitations", INSERT, invitation_change_record(invitation))
        return invitation

    async def accept_invitation(
        self, invitation_id: UUID, user_id: UUID, email: Optional[str] = None
    ) -> Invitation:
        """Turn an active invitation into a collaborator entry for ``user_id``.

        Of two concurrent accepts exactly one succeeds; the other gets
        ``AlreadyAccepted``.
        """
        invitation = await self.invitation_repo.get_by_id(invitation_id)
        if invitation is None:
            raise NotFound("Invitation not found")
        if email is not None and invitation.email != _normalize(email):
            raise Unauthorized("This invitation was sent to a different email")

        addressed_to = invitation.email
        permission = Permission(invitation.permission)
        now = utcnow()

        def add_collaborator(note: Note):
            # the owner already has full access
            if note.is_owned_by(user_id):
                return None
            return upsert_collaborator_record(
                note.collaborators, user_id, permission, now, email=addressed_to
            )

        invitation, note = await self.invitation_repo.accept_invitation(
            invitation_id,
            add_collaborator,
            retries=self.settings.collaborator_write_retries,
        )
        logger.info(
            "Invitation accepted",
            extra={
                "invitation_id": str(invitation_id),
                "note_id": str(note.id),
                "user_id": str(user_id),
            },
        )

        invitation_record = invitation_change_record(invitation)
        note_record = note_change_record(note)
        if not await self._upsert_profile(user_id, addressed_to):
            # the rollback expired everything loaded in this session
            invitation = await self.invitation_repo.get_by_id(invitation_id)

        await self.hub.publish_change("invitations", UPDATE, invitation_record)
        await self.hub.publish_change("notes", UPDATE, note_record)
        return invitation

    async def decline_invitation(self, invitation_id: UUID, email: Optional[str] = None) -> bool:
        """Delete the invitation. Declining twice is not an error: returns False."""
        invitation = await self.invitation_repo.get_by_id(invitation_id)
        if invitation is None:
            logger.info(
                "Invitation already gone, nothing to decline",
                extra={"invitation_id": str(invitation_id)},
            )
            return False
        if email is not None and invitation.email != _normalize(email):
            raise Unauthorized("This invitation was sent to a different email")

        record = invitation_change_record(invitation)
        deleted = await self.invitation_repo.delete_invitation(invitation_id)
        if deleted:
            logger.info(
                "Invitation declined",
                extra={"invitation_id": str(invitation_id), "note_id": record["note_id"]},
            )
            await self.hub.publish_change(
                "invitations", DELETE, {"id": record["id"]}, old_record=record
            )
        return deleted

    async def list_pending_invitations(self, email: str) -> List[Invitation]:
        """Active invitations addressed to ``email``, newest first."""
        return await self.invitation_repo.list_pending_for_email(_normalize(email))

    async def list_note_invitations(self, note_id: UUID, caller_id: UUID) -> List[Invitation]:
        """Active invitations on one note, for those allowed to invite."""
        note = await self.note_repo.get_by_id(note_id)
        self.access.require(note, caller_id)
        if not self.access.can_manage_invitations(note, caller_id):
            raise Unauthorized("You cannot manage invitations for this note")
        return await self.invitation_repo.list_active_for_note(note_id)

    async def revoke_invitation(self, invitation_id: UUID, caller_id: UUID) -> bool:
        """Withdraw an invitation; allowed for the note owner and the inviter."""
        invitation = await self.invitation_repo.get_by_id(invitation_id)
        if invitation is None:
            return False
        if invitation.is_accepted:
            raise AlreadyAccepted()

        note = await self.note_repo.get_by_id(invitation.note_id)
        is_owner = note is not None and self.access.is_owner(note, caller_id)
        if not (is_owner or invitation.invited_by == caller_id):
            raise Unauthorized("Only the owner or the inviter can revoke an invitation")

        record = invitation_change_record(invitation)
        deleted = await self.invitation_repo.delete_invitation(invitation_id)
        if deleted:
            logger.info(
                "Invitation revoked",
                extra={"invitation_id": str(invitation_id), "caller_id": str(caller_id)},
            )
            await self.hub.publish_change(
                "invitations", DELETE, {"id": record["id"]}, old_record=record
            )
        return deleted

    async def _email_has_access(self, note: Note, email: str) -> bool:
        """Owner or existing collaborator, matched by recorded email or profile."""
        owner_email = await self.profile_repo.get_email(note.owner_id)
        if owner_email and owner_email == email:
            return True

        for entry in note.collaborators or []:
            if (entry.get("email") or "").lower() == email:
                return True

        profile = await self.profile_repo.get_by_email(email)
        if profile is None:
            return False
        return note.is_owned_by(profile.id) or note.find_collaborator(profile.id) is not None

    async def _upsert_profile(self, user_id: UUID, email: str) -> bool:
        try:
            await self.profile_repo.upsert(user_id, email)
            return True
        except SQLAlchemyError:
            await self.session.rollback()
            logger.warning(
                "Could not record profile for accepting user",
                extra={"user_id": str(user_id)},
                exc_info=True,
            )
            return False
