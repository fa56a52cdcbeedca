"""User profile API endpoints."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.schemas.auth import Identity
from ..core.schemas.users import ProfileResponse, ProfileUpdate, UserLookupResponse
from ..core.services import ProfileService
from ..database import get_db_session
from ..middleware.auth import get_current_identity

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=ProfileResponse)
async def get_me(
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_db_session),
):
    """Get the caller's profile."""
    profile_service = ProfileService(session)
    return await profile_service.get_profile(identity)


@router.put("/me", response_model=ProfileResponse)
async def update_me(
    request: ProfileUpdate,
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_db_session),
):
    """Record or update the caller's profile."""
    profile_service = ProfileService(session)
    return await profile_service.update_profile(identity, request)


@router.get("/lookup", response_model=UserLookupResponse)
async def lookup_users(
    q: str = Query(..., min_length=1, max_length=320),
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_db_session),
):
    """Find users by id, email or name."""
    profile_service = ProfileService(session)
    return UserLookupResponse(results=await profile_service.lookup(q))
