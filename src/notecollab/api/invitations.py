"""Invitation API endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.realtime import RealtimeHub, get_realtime_hub
from ..core.schemas.auth import Identity
from ..core.schemas.invitations import (
    InvitationAcceptResponse,
    InvitationCreate,
    InvitationListResponse,
    InvitationResponse,
)
from ..core.services import InvitationService
from ..database import get_db_session
from ..middleware.auth import get_current_identity

router = APIRouter(tags=["invitations"])


@router.post(
    "/notes/{note_id}/invitations", response_model=InvitationResponse, status_code=201
)
async def create_invitation(
    note_id: UUID,
    request: InvitationCreate,
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_db_session),
    hub: RealtimeHub = Depends(get_realtime_hub),
):
    """Invite someone by email to collaborate on a note."""
    invitation_service = InvitationService(session, hub)
    return await invitation_service.create_invitation(
        note_id, request.email, request.permission, identity.id
    )


@router.get("/notes/{note_id}/invitations", response_model=InvitationListResponse)
async def list_note_invitations(
    note_id: UUID,
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_db_session),
    hub: RealtimeHub = Depends(get_realtime_hub),
):
    """Active invitations on a note."""
    invitation_service = InvitationService(session, hub)
    invitations = await invitation_service.list_note_invitations(note_id, identity.id)
    return InvitationListResponse(
        invitations=[InvitationResponse.model_validate(i) for i in invitations],
        total=len(invitations),
    )


@router.get("/invitations", response_model=InvitationListResponse)
async def list_my_invitations(
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_db_session),
    hub: RealtimeHub = Depends(get_realtime_hub),
):
    """Pending invitations addressed to the caller's email."""
    invitation_service = InvitationService(session, hub)
    invitations = await invitation_service.list_pending_invitations(identity.email)
    return InvitationListResponse(
        invitations=[InvitationResponse.model_validate(i) for i in invitations],
        total=len(invitations),
    )


@router.post("/invitations/{invitation_id}/accept", response_model=InvitationAcceptResponse)
async def accept_invitation(
    invitation_id: UUID,
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_db_session),
    hub: RealtimeHub = Depends(get_realtime_hub),
):
    """Accept an invitation addressed to the caller."""
    invitation_service = InvitationService(session, hub)
    invitation = await invitation_service.accept_invitation(
        invitation_id, identity.id, email=identity.email
    )
    return InvitationAcceptResponse(
        invitation_id=invitation.id,
        note_id=invitation.note_id,
        permission=invitation.permission,
        accepted_at=invitation.accepted_at,
    )


@router.post("/invitations/{invitation_id}/decline", status_code=204)
async def decline_invitation(
    invitation_id: UUID,
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_db_session),
    hub: RealtimeHub = Depends(get_realtime_hub),
):
    """Decline an invitation. Declining twice is fine."""
    invitation_service = InvitationService(session, hub)
    await invitation_service.decline_invitation(invitation_id, email=identity.email)


@router.delete("/invitations/{invitation_id}", status_code=204)
async def revoke_invitation(
    invitation_id: UUID,
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_db_session),
    hub: RealtimeHub = Depends(get_realtime_hub),
):
    """Withdraw an invitation (note owner or inviter)."""
    invitation_service = InvitationService(session, hub)
    await invitation_service.revoke_invitation(invitation_id, identity.id)
