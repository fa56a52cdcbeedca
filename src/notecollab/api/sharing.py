"""Share-link API endpoints."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.schemas.auth import Identity
from ..core.schemas.notes import NoteResponse
from ..core.schemas.sharing import ShareLinkResponse, ShareValidationResponse
from ..core.services import ShareLinkService
from ..database import get_db_session
from ..middleware.auth import get_current_identity

router = APIRouter(tags=["sharing"])


@router.post("/notes/{note_id}/share-link", response_model=ShareLinkResponse, status_code=201)
async def generate_share_link(
    note_id: UUID,
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_db_session),
):
    """Create a new share link; the previous one stops working."""
    share_service = ShareLinkService(session)
    url = await share_service.generate(note_id, identity.id)
    return ShareLinkResponse(note_id=note_id, url=url)


@router.get("/share/{note_id}", response_model=NoteResponse)
async def open_shared_note(
    note_id: UUID,
    token: Optional[str] = Query(None),
    session: AsyncSession = Depends(get_db_session),
):
    """Read-only view for anyone holding the link. No authentication."""
    share_service = ShareLinkService(session)
    return await share_service.open_shared_note(note_id, token)


@router.get("/share/{note_id}/validate", response_model=ShareValidationResponse)
async def validate_share_link(
    note_id: UUID,
    token: Optional[str] = Query(None),
    session: AsyncSession = Depends(get_db_session),
):
    """Whether ``token`` is the note's current share token."""
    share_service = ShareLinkService(session)
    return ShareValidationResponse(
        note_id=note_id, valid=await share_service.validate(note_id, token)
    )
