"""Note service implementation."""

from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from ..errors import Unauthorized
from ..logging import get_logger
from ..models.base import ensure_utc
from ..models.note import Note, Permission
from ..realtime import DELETE, INSERT, UPDATE, RealtimeHub, get_realtime_hub
from ..repositories.note_repository import NoteRepository
from ..schemas.collaborators import Collaborator
from ..schemas.notes import (
    EntryOut,
    NoteCreate,
    NoteListItem,
    NoteListResponse,
    NoteResponse,
    NoteUpdate,
)
from .access_resolver import AccessResolver
from .interfaces import INoteService

logger = get_logger("services.notes")


def note_change_record(note: Note) -> Dict[str, Any]:
    """Row image published on the ``notes`` change feed; the share token never leaves the store."""
    record = note.to_dict()
    record.pop("sharing_token", None)
    return record


def build_note_response(note: Note, permission: Permission, is_owner: bool) -> NoteResponse:
    return NoteResponse(
        id=note.id,
        title=note.title,
        owner_id=note.owner_id,
        permission=permission,
        is_owner=is_owner,
        entries=[EntryOut.model_validate(entry) for entry in note.entries],
        collaborators=[Collaborator.from_record(entry) for entry in note.collaborators or []],
        has_share_link=note.sharing_token is not None,
        created_at=ensure_utc(note.created_at),
        updated_at=ensure_utc(note.updated_at),
    )


class NoteService(INoteService):
    """Note service implementation."""

    def __init__(self, session: AsyncSession, hub: Optional[RealtimeHub] = None):
        self.session = session
        self.note_repo = NoteRepository(session)
        self.access = AccessResolver()
        self.hub = hub or get_realtime_hub()

    async def create_note(self, user_id: UUID, request: NoteCreate) -> NoteResponse:
        """Create new note."""
        note = await self.note_repo.create_note(
            {"title": request.title, "owner_id": user_id, "collaborators": []},
            [entry.model_dump() for entry in request.entries],
        )
        logger.info("Note created", extra={"note_id": str(note.id), "user_id": str(user_id)})
        await self.hub.publish_change("notes", INSERT, note_change_record(note))
        return build_note_response(note, Permission.EDIT, is_owner=True)

    async def get_note(
        self, note_id: UUID, user_id: Optional[UUID] = None, share_token: Optional[str] = None
    ) -> NoteResponse:
        """Get note by ID."""
        note = await self.note_repo.get_by_id(note_id)
        permission = self.access.require(note, user_id, share_token)
        return build_note_response(note, permission, self.access.is_owner(note, user_id))

    async def update_note(self, note_id: UUID, user_id: UUID, request: NoteUpdate) -> NoteResponse:
        """Save title and entries; concurrent saves are last writer wins."""
        note = await self.note_repo.get_by_id(note_id)
        permission = self.access.require(note, user_id, minimum=Permission.EDIT)

        entries = None
        if request.entries is not None:
            entries = [entry.model_dump() for entry in request.entries]
        note = await self.note_repo.update_note(note, title=request.title, entries=entries)

        await self.hub.publish_change("notes", UPDATE, note_change_record(note))
        return build_note_response(note, permission, self.access.is_owner(note, user_id))

    async def delete_note(self, note_id: UUID, user_id: UUID) -> bool:
        """Delete note. Only the owner can."""
        note = await self.note_repo.get_by_id(note_id)
        self.access.require(note, user_id)
        if not self.access.is_owner(note, user_id):
            raise Unauthorized("Only the owner can delete a note")

        record = note_change_record(note)
        await self.note_repo.delete_note(note)
        logger.info("Note deleted", extra={"note_id": str(note_id), "user_id": str(user_id)})
        await self.hub.publish_change("notes", DELETE, {"id": record["id"]}, old_record=record)
        return True

    async def list_notes(self, user_id: UUID) -> NoteListResponse:
        """Owned notes and notes shared with the user, most recently updated first."""
        notes = await self.note_repo.list_for_user(user_id)
        items: List[NoteListItem] = []
        for note in notes:
            permission = self.access.resolve(note, user_id)
            if permission is None:
                continue
            items.append(
                NoteListItem(
                    id=note.id,
                    title=note.title,
                    owner_id=note.owner_id,
                    permission=permission,
                    is_owner=note.is_owned_by(user_id),
                    collaborator_count=len(note.collaborators or []),
                    last_active=self._last_active(note, user_id),
                    updated_at=ensure_utc(note.updated_at),
                )
            )
        return NoteListResponse(notes=items, total=len(items))

    @staticmethod
    def _last_active(note: Note, user_id: UUID):
        entry = note.find_collaborator(user_id)
        if entry and entry.get("last_active"):
            return Collaborator.from_record(entry).last_active
        return ensure_utc(note.updated_at)
