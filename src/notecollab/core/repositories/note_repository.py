"""Note repository for database operations."""

from typing import Any, Callable, Dict, Iterable, List, Optional
from uuid import UUID

from sqlalchemy import Text, cast, delete, desc, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..errors import ConcurrentModification
from ..logging import get_logger
from ..models.base import utcnow
from ..models.invitation import Invitation
from ..models.note import Note
from ..models.note_entry import NoteEntry

logger = get_logger("repositories.notes")

# Returns the new collaborator list, or None when nothing needs to change
CollaboratorMutation = Callable[[Note], Optional[List[Dict[str, Any]]]]


class NoteRepository:
    """Repository for note database operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_note(self, note_data: dict, entries: Iterable[dict] = ()) -> Note:
        """Create a note together with its ordered entries."""
        note = Note(**note_data)
        note.entries = [
            NoteEntry(entry_order=index, **entry) for index, entry in enumerate(entries)
        ]
        self.session.add(note)
        await self.session.commit()
        return await self.get_by_id(note.id)

    async def get_by_id(self, note_id: UUID) -> Optional[Note]:
        """Get note by ID, always re-reading the row (collaborators change under us)."""
        stmt = (
            select(Note)
            .options(selectinload(Note.entries))
            .where(Note.id == note_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_for_user(self, user_id: UUID) -> List[Note]:
        """Notes the user owns or collaborates on, most recently updated first."""
        # jsonb::text and json.dumps both render keys as `"key": value`
        member_pattern = f'%"user_id": "{user_id}"%'
        stmt = (
            select(Note)
            .where(
                or_(
                    Note.owner_id == user_id,
                    cast(Note.collaborators, Text).like(member_pattern),
                )
            )
            .order_by(desc(Note.updated_at))
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        notes = list(result.scalars())
        # guard against substring false positives
        return [n for n in notes if n.is_owned_by(user_id) or n.find_collaborator(user_id)]

    async def compare_and_swap_collaborators(
        self,
        note_id: UUID,
        expected_version: int,
        collaborators: List[Dict[str, Any]],
        commit: bool = True,
    ) -> bool:
        """Rewrite the collaborator list only if nobody else did since ``expected_version``."""
        stmt = (
            update(Note)
            .where(Note.id == note_id, Note.version == expected_version)
            .values(
                collaborators=collaborators,
                version=expected_version + 1,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        if commit:
            await self.session.commit()
        return result.rowcount == 1

    async def rewrite_collaborators(
        self,
        note_id: UUID,
        mutate: CollaboratorMutation,
        retries: int = 3,
        commit: bool = True,
    ) -> Optional[Note]:
        """Read-modify-write of the collaborator list guarded by the note version.

        ``mutate`` sees a freshly loaded note on every attempt. Returns the
        note as stored afterwards, or None when the note does not exist.
        """
        for attempt in range(1, retries + 1):
            note = await self.get_by_id(note_id)
            if note is None:
                return None

            collaborators = mutate(note)
            if collaborators is None:
                return note

            if await self.compare_and_swap_collaborators(
                note_id, note.version, collaborators, commit=commit
            ):
                return await self.get_by_id(note_id)

            logger.info(
                "Collaborator list changed concurrently, retrying",
                extra={"note_id": str(note_id), "attempt": attempt},
            )

        logger.warning(
            "Giving up on collaborator list write",
            extra={"note_id": str(note_id), "attempts": retries},
        )
        raise ConcurrentModification()

    async def set_sharing_token(self, note_id: UUID, token: Optional[str]) -> bool:
        """Overwrite the share token (last writer wins)."""
        stmt = (
            update(Note)
            .where(Note.id == note_id)
            .values(sharing_token=token, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        await self.session.commit()
        return result.rowcount == 1

    async def get_sharing_token(self, note_id: UUID) -> Optional[str]:
        stmt = select(Note.sharing_token).where(Note.id == note_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def update_note(
        self,
        note: Note,
        title: Optional[str] = None,
        entries: Optional[Iterable[dict]] = None,
    ) -> Note:
        """Save title and, when given, replace all entries."""
        if title is not None:
            note.title = title
        if entries is not None:
            # orphaned entries are deleted by the cascade
            note.entries = [
                NoteEntry(entry_order=index, **entry) for index, entry in enumerate(entries)
            ]
        note.updated_at = utcnow()

        await self.session.commit()
        return await self.get_by_id(note.id)

    async def delete_note(self, note: Note) -> None:
        """Delete the note with its entries and invitations."""
        await self.session.execute(
            delete(Invitation)
            .where(Invitation.note_id == note.id)
            .execution_options(synchronize_session=False)
        )
        await self.session.delete(note)
        await self.session.commit()
