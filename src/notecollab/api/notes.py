"""Notes API endpoints."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.realtime import RealtimeHub, get_realtime_hub
from ..core.schemas.auth import Identity
from ..core.schemas.notes import NoteCreate, NoteListResponse, NoteResponse, NoteUpdate
from ..core.services import NoteService
from ..database import get_db_session
from ..middleware.auth import get_current_identity, get_optional_identity

router = APIRouter(prefix="/notes", tags=["notes"])


@router.post("/", response_model=NoteResponse, status_code=201)
async def create_note(
    request: NoteCreate,
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_db_session),
    hub: RealtimeHub = Depends(get_realtime_hub),
):
    """Create a new note."""
    note_service = NoteService(session, hub)
    return await note_service.create_note(identity.id, request)


@router.get("/", response_model=NoteListResponse)
async def list_notes(
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_db_session),
    hub: RealtimeHub = Depends(get_realtime_hub),
):
    """List notes the caller owns or collaborates on."""
    note_service = NoteService(session, hub)
    return await note_service.list_notes(identity.id)


@router.get("/{note_id}", response_model=NoteResponse)
async def get_note(
    note_id: UUID,
    token: Optional[str] = Query(None, description="Share-link token"),
    identity: Optional[Identity] = Depends(get_optional_identity),
    session: AsyncSession = Depends(get_db_session),
    hub: RealtimeHub = Depends(get_realtime_hub),
):
    """Get a note as owner, collaborator or share-link holder."""
    note_service = NoteService(session, hub)
    return await note_service.get_note(note_id, identity.id if identity else None, token)


@router.put("/{note_id}", response_model=NoteResponse)
async def update_note(
    note_id: UUID,
    request: NoteUpdate,
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_db_session),
    hub: RealtimeHub = Depends(get_realtime_hub),
):
    """Save a note. Requires edit permission."""
    note_service = NoteService(session, hub)
    return await note_service.update_note(note_id, identity.id, request)


@router.delete("/{note_id}", status_code=204)
async def delete_note(
    note_id: UUID,
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_db_session),
    hub: RealtimeHub = Depends(get_realtime_hub),
):
    """Delete a note. Owner only."""
    note_service = NoteService(session, hub)
    await note_service.delete_note(note_id, identity.id)
