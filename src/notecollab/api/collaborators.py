"""Collaborator API endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.realtime import RealtimeHub, get_realtime_hub
from ..core.repositories import ProfileRepository
from ..core.schemas.auth import Identity
from ..core.schemas.collaborators import (
    Collaborator,
    CollaboratorAdd,
    CollaboratorListResponse,
    CollaboratorPermissionUpdate,
)
from ..core.services import CollaboratorRegistry
from ..database import get_db_session
from ..middleware.auth import get_current_identity

router = APIRouter(prefix="/notes/{note_id}/collaborators", tags=["collaborators"])


@router.get("/", response_model=CollaboratorListResponse)
async def list_collaborators(
    note_id: UUID,
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_db_session),
    hub: RealtimeHub = Depends(get_realtime_hub),
):
    """Collaborators of a note."""
    registry = CollaboratorRegistry(session, hub)
    collaborators = await registry.list(note_id, identity.id)
    return CollaboratorListResponse(note_id=note_id, collaborators=collaborators)


@router.post("/", response_model=Collaborator, status_code=201)
async def add_collaborator(
    note_id: UUID,
    request: CollaboratorAdd,
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_db_session),
    hub: RealtimeHub = Depends(get_realtime_hub),
):
    """Grant access directly to a known user. Owner only."""
    registry = CollaboratorRegistry(session, hub)
    email = await ProfileRepository(session).get_email(request.user_id)
    return await registry.add_or_update(
        note_id, request.user_id, request.permission, caller_id=identity.id, email=email
    )


@router.put("/{user_id}", response_model=Collaborator)
async def update_collaborator_permission(
    note_id: UUID,
    user_id: UUID,
    request: CollaboratorPermissionUpdate,
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_db_session),
    hub: RealtimeHub = Depends(get_realtime_hub),
):
    """Change a collaborator's permission. Owner only."""
    registry = CollaboratorRegistry(session, hub)
    return await registry.update_permission(note_id, user_id, request.permission, identity.id)


@router.delete("/{user_id}", status_code=204)
async def remove_collaborator(
    note_id: UUID,
    user_id: UUID,
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_db_session),
    hub: RealtimeHub = Depends(get_realtime_hub),
):
    """Remove a collaborator; collaborators may remove themselves."""
    registry = CollaboratorRegistry(session, hub)
    await registry.remove(note_id, user_id, identity.id)
