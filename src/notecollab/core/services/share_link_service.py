"""Share-link tokens: bearer links granting view access to anyone holding them."""

from typing import Optional
from urllib.parse import urlencode
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from ...config import Settings, get_settings
from ...security import generate_token, tokens_match
from ..errors import InvalidShareToken
from ..logging import get_logger
from ..models.note import Permission
from ..repositories.note_repository import NoteRepository
from ..schemas.notes import NoteResponse
from .access_resolver import AccessResolver
from .interfaces import IShareLinkService
from .note_service import build_note_response

logger = get_logger("services.share_links")


class ShareLinkService(IShareLinkService):
    """One token per note; generating a new one invalidates the previous link."""

    def __init__(self, session: AsyncSession, settings: Optional[Settings] = None):
        self.session = session
        self.settings = settings or get_settings()
        self.note_repo = NoteRepository(session)
        self.access = AccessResolver(self.settings)

    def build_url(self, note_id: UUID, token: str) -> str:
        origin = self.settings.public_origin.rstrip("/")
        return f"{origin}/share/{note_id}?{urlencode({'token': token})}"

    async def generate(self, note_id: UUID, caller_id: UUID) -> str:
        """Replace the note's share token; requires edit permission."""
        note = await self.note_repo.get_by_id(note_id)
        self.access.require(note, caller_id, minimum=Permission.EDIT)

        token = generate_token(32)
        await self.note_repo.set_sharing_token(note_id, token)
        logger.info(
            "Share link generated",
            extra={"note_id": str(note_id), "user_id": str(caller_id)},
        )
        return self.build_url(note_id, token)

    async def validate(self, note_id: UUID, token: Optional[str]) -> bool:
        """True only for the note's current, non-null token."""
        if not token:
            return False
        stored = await self.note_repo.get_sharing_token(note_id)
        return tokens_match(stored, token)

    async def open_shared_note(self, note_id: UUID, token: Optional[str]) -> NoteResponse:
        """The note as a read-only view for a link holder."""
        note = await self.note_repo.get_by_id(note_id)
        if note is None or not token or not tokens_match(note.sharing_token, token):
            logger.info("Rejected share link", extra={"note_id": str(note_id)})
            raise InvalidShareToken()
        return build_note_response(note, Permission.VIEW, is_owner=False)
