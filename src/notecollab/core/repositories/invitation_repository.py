"""Invitation repository for database operations."""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import and_, delete, desc, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..errors import AlreadyAccepted, Expired, NotFound
from ..logging import get_logger
from ..models.base import utcnow
from ..models.invitation import Invitation
from ..models.note import Note
from .note_repository import CollaboratorMutation, NoteRepository

logger = get_logger("repositories.invitations")


def _active(now: datetime):
    return and_(Invitation.accepted_at.is_(None), Invitation.expires_at > now)


class InvitationRepository:
    """Repository for invitation database operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_invitation(self, invitation_data: dict) -> Invitation:
        """Create new invitation."""
        invitation = Invitation(**invitation_data)
        self.session.add(invitation)
        await self.session.commit()
        await self.session.refresh(invitation)
        return invitation

    async def get_by_id(self, invitation_id: UUID) -> Optional[Invitation]:
        stmt = (
            select(Invitation)
            .where(Invitation.id == invitation_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_active_for(
        self, note_id: UUID, email: str, now: Optional[datetime] = None
    ) -> Optional[Invitation]:
        """The active invitation for a (note, email) pair, if one exists."""
        stmt = select(Invitation).where(
            Invitation.note_id == note_id,
            Invitation.email == email.lower(),
            _active(now or utcnow()),
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def list_pending_for_email(
        self, email: str, now: Optional[datetime] = None
    ) -> List[Invitation]:
        """Unaccepted, unexpired invitations addressed to ``email``, newest first."""
        stmt = (
            select(Invitation)
            .where(Invitation.email == email.lower(), _active(now or utcnow()))
            .order_by(desc(Invitation.created_at))
        )
        result = await self.session.execute(stmt)
        return list(result.scalars())

    async def list_active_for_note(
        self, note_id: UUID, now: Optional[datetime] = None
    ) -> List[Invitation]:
        stmt = (
            select(Invitation)
            .where(Invitation.note_id == note_id, _active(now or utcnow()))
            .order_by(desc(Invitation.created_at))
        )
        result = await self.session.execute(stmt)
        return list(result.scalars())

    async def delete_invitation(self, invitation_id: UUID) -> bool:
        """Delete invitation; False when it did not exist."""
        stmt = (
            delete(Invitation)
            .where(Invitation.id == invitation_id)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        await self.session.commit()
        return result.rowcount > 0

    async def delete_for_note_email(self, note_id: UUID, email: str) -> int:
        """Delete every invitation for ``email`` on ``note_id``, whatever its state."""
        stmt = (
            delete(Invitation)
            .where(Invitation.note_id == note_id, Invitation.email == email.lower())
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        await self.session.commit()
        return result.rowcount

    async def update_pending_permission(
        self, note_id: UUID, email: str, permission: str, now: Optional[datetime] = None
    ) -> int:
        stmt = (
            update(Invitation)
            .where(
                Invitation.note_id == note_id,
                Invitation.email == email.lower(),
                _active(now or utcnow()),
            )
            .values(permission=permission, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        await self.session.commit()
        return result.rowcount

    async def claim(self, invitation_id: UUID, now: datetime) -> bool:
        """Mark the invitation accepted iff it is still active; no commit."""
        stmt = (
            update(Invitation)
            .where(Invitation.id == invitation_id, _active(now))
            .values(accepted_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def accept_invitation(
        self,
        invitation_id: UUID,
        add_collaborator: CollaboratorMutation,
        retries: int = 3,
    ) -> tuple[Invitation, Note]:
        """Claim the invitation and write the collaborator in one transaction.

        Of two concurrent calls only one claims the row; the other sees it
        already accepted. Nothing is written unless both steps succeed.
        """
        now = utcnow()
        try:
            if not await self.claim(invitation_id, now):
                invitation = await self.get_by_id(invitation_id)
                if invitation is None:
                    raise NotFound("Invitation not found")
                if invitation.is_accepted:
                    raise AlreadyAccepted()
                raise Expired()

            invitation = await self.get_by_id(invitation_id)
            note = await NoteRepository(self.session).rewrite_collaborators(
                invitation.note_id, add_collaborator, retries=retries, commit=False
            )
            if note is None:
                raise NotFound("Note not found")

            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.debug(
            "Invitation claimed",
            extra={"invitation_id": str(invitation_id), "note_id": str(note.id)},
        )
        return invitation, note
