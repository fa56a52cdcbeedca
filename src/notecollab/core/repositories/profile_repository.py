"""Profile repository: the local answer to "which email belongs to this user id"."""

import uuid
from typing import List, Optional
from uuid import UUID

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.base import utcnow
from ..models.profile import Profile


class ProfileRepository:
    """Repository for profile database operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, user_id: UUID) -> Optional[Profile]:
        stmt = select(Profile).where(Profile.id == user_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> Optional[Profile]:
        stmt = select(Profile).where(Profile.email == email.strip().lower())
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_email(self, user_id: UUID) -> Optional[str]:
        stmt = select(Profile.email).where(Profile.id == user_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def upsert(
        self,
        user_id: UUID,
        email: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> Profile:
        """Create or refresh the profile for an identity; names are only overwritten when given."""
        email = email.strip().lower()

        # the email now belongs to this identity
        await self.session.execute(
            delete(Profile)
            .where(Profile.email == email, Profile.id != user_id)
            .execution_options(synchronize_session=False)
        )

        profile = await self.get_by_id(user_id)
        if profile is None:
            profile = Profile(id=user_id, email=email, first_name=first_name, last_name=last_name)
            self.session.add(profile)
        else:
            profile.email = email
            if first_name is not None:
                profile.first_name = first_name
            if last_name is not None:
                profile.last_name = last_name
            profile.updated_at = utcnow()

        await self.session.commit()
        await self.session.refresh(profile)
        return profile

    async def search(self, query: str, limit: int = 5) -> List[Profile]:
        """Exact id match first, otherwise case-insensitive email/name substring."""
        query = query.strip()
        if not query:
            return []

        try:
            profile = await self.get_by_id(uuid.UUID(query))
        except ValueError:
            profile = None
        if profile is not None:
            return [profile]

        pattern = f"%{query.lower()}%"
        stmt = (
            select(Profile)
            .where(
                or_(
                    func.lower(Profile.email).like(pattern),
                    func.lower(Profile.first_name).like(pattern),
                    func.lower(Profile.last_name).like(pattern),
                )
            )
            .order_by(Profile.email)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars())
