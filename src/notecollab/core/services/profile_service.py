"""Profiles mirrored from the identity provider."""

from typing import List

from sqlalchemy.ext.asyncio import AsyncSession

from ..logging import get_logger
from ..repositories.profile_repository import ProfileRepository
from ..schemas.auth import Identity
from ..schemas.users import ProfileResponse, ProfileUpdate

logger = get_logger("services.profiles")

LOOKUP_LIMIT = 5


class ProfileService:
    """Profile reads and writes for the authenticated identity."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.profile_repo = ProfileRepository(session)

    async def get_profile(self, identity: Identity) -> ProfileResponse:
        """Stored profile, or the bare identity when none was recorded yet."""
        profile = await self.profile_repo.get_by_id(identity.id)
        if profile is None:
            return ProfileResponse(id=identity.id, email=identity.email)
        return ProfileResponse.model_validate(profile)

    async def update_profile(self, identity: Identity, request: ProfileUpdate) -> ProfileResponse:
        profile = await self.profile_repo.upsert(
            identity.id,
            identity.email,
            first_name=request.first_name,
            last_name=request.last_name,
        )
        logger.info("Profile updated", extra={"user_id": str(identity.id)})
        return ProfileResponse.model_validate(profile)

    async def lookup(self, query: str) -> List[ProfileResponse]:
        """Find users to collaborate with: by id, else email or name substring."""
        profiles = await self.profile_repo.search(query, limit=LOOKUP_LIMIT)
        return [ProfileResponse.model_validate(profile) for profile in profiles]
